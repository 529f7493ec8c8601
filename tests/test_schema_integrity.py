"""
Test de integridad entre migradores y config.py.

Valida que:
1. Cada FK que resuelve un migrador apunta a una entidad declarada en depends_on
   (si no, MIGRATION_ORDER podría migrar al hijo antes que al padre)
2. No hay dos entidades escribiendo en la misma tabla
3. Los nombres de colección (tag, colección MongoDB, tabla, alias) no son ambiguos
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import config
from tests.helpers import get_all_migrator_instances


def check_references_declared_in_config():
    print("\n🔍 Test: Referencias declaradas en depends_on")

    errors = []

    for tag, migrator in get_all_migrator_instances():
        declared = set(config.validate_migration_order(tag))
        undeclared = migrator.referenced_tags() - declared
        if undeclared:
            errors.append(f"{tag}: referencia a {sorted(undeclared)} sin declarar en depends_on")
            print(f"   ❌ {tag}: {sorted(undeclared)}")
        else:
            print(f"   ✅ {tag}")

    return len(errors) == 0, errors


def check_unique_tables():
    print("\n🔍 Test: Una entidad por tabla")

    seen = {}
    errors = []
    for tag, cfg in config.COLLECTIONS.items():
        table = cfg["table"]
        if table in seen:
            errors.append(f"Tabla \"{table}\" usada por {seen[table]} y {tag}")
        seen[table] = tag

    print(f"   {'✅' if not errors else '❌'} {len(seen)} tablas distintas")
    return len(errors) == 0, errors


def check_unambiguous_names():
    print("\n🔍 Test: Nombres de colección sin ambigüedad")

    owners = {}
    errors = []
    for tag, cfg in config.COLLECTIONS.items():
        names = {tag, cfg["mongo_collection"], cfg["table"], *cfg.get("aliases", [])}
        for name in {name.lower() for name in names}:
            if name in owners and owners[name] != tag:
                errors.append(f"'{name}' corresponde a {owners[name]} y a {tag}")
            owners[name] = tag

    print(f"   {'✅' if not errors else '❌'} {len(owners)} nombres registrados")
    return len(errors) == 0, errors


def test_references_declared_in_config():
    success, errors = check_references_declared_in_config()
    assert success, errors


def test_unique_tables():
    success, errors = check_unique_tables()
    assert success, errors


def test_unambiguous_names():
    success, errors = check_unambiguous_names()
    assert success, errors


def run_all_tests():
    """Ejecuta todos los tests de integridad."""
    all_errors = []
    for check in (check_references_declared_in_config, check_unique_tables, check_unambiguous_names):
        success, errors = check()
        all_errors.extend(errors)

    print("\n" + "=" * 70)
    if not all_errors:
        print("✅ Migradores y configuración son consistentes")
    else:
        print(f"❌ {len(all_errors)} inconsistencias:")
        for error in all_errors:
            print(f"   - {error}")
    print("=" * 70)

    return not all_errors


if __name__ == "__main__":
    sys.exit(0 if run_all_tests() else 1)
