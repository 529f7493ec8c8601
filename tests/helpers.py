"""
Funciones helper compartidas para todos los tests.

Proporciona carga dinámica de migradores basándose en config.py (sin
imports hardcodeados) y un destino en memoria que reemplaza a PostgresStore.
"""

import sys
import os
import importlib

# Agregar directorio raíz al path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from bson import ObjectId

import config


def get_migrator_class_for_collection(tag):
    """
    Carga dinámicamente la clase migrador para un tag.

    Sigue la convención de nombres:
    - users → UsersMigrator (en migrators/core.py)
    - internshipApplications → InternshipApplicationsMigrator (en migrators/internships.py)

    Raises:
        ImportError: Si no existe el módulo
        AttributeError: Si no existe la clase
    """
    cfg = config.get_collection_config(tag)
    module = importlib.import_module(f"migrators.{cfg['module']}")
    class_name = tag[0].upper() + tag[1:] + "Migrator"
    return getattr(module, class_name)


def get_all_migrator_classes():
    """
    Retorna lista de tuplas (nombre_clase, clase) en orden de migración.
    """
    migradores = []

    for tag in config.MIGRATION_ORDER:
        try:
            migrator_class = get_migrator_class_for_collection(tag)
            migradores.append((migrator_class.__name__, migrator_class))
        except (ImportError, AttributeError) as e:
            # Registrar y seguir: el test de interfaz reporta el faltante
            print(f"⚠️  No se pudo cargar migrador para {tag}: {e}")
            continue

    return migradores


def get_all_migrator_instances():
    """Retorna lista de tuplas (tag, instancia) en orden de migración."""
    return [
        (tag, get_migrator_class_for_collection(tag)())
        for tag in config.MIGRATION_ORDER
    ]


# === DESTINO EN MEMORIA ===


class FakeStore:
    """
    Reemplazo de PostgresStore que registra cada llamada.

    Args:
        failures: Dict tabla → función(data) que retorna una excepción a
            lanzar (o None para insertar normalmente)
    """

    def __init__(self, failures=None):
        self.calls = []
        self.rows = {}
        self.failures = failures or {}

    def create(self, table, data):
        self.calls.append(("create", table, data))
        fail = self.failures.get(table)
        if fail is not None:
            error = fail(data)
            if error is not None:
                raise error
        self.rows.setdefault(table, []).append(data)

    def commit(self):
        self.calls.append(("commit",))

    def rollback(self):
        self.calls.append(("rollback",))

    def count(self, table):
        return len(self.rows.get(table, []))

    def created(self, table):
        return self.rows.get(table, [])


def oid():
    """ObjectId nuevo (atajo para armar documentos de prueba)."""
    return ObjectId()
