"""
Módulo base para migradores de entidades del CMS MongoDB → PostgreSQL.

Define la interfaz común que todos los migradores específicos deben
implementar. cmsmigra.py carga cada migrador dinámicamente y sólo conoce
esta interfaz.

Patrón de diseño: Template Method
- BaseMigrator.migrate() = Algoritmo fijo (recorrer bucket, resolver FKs,
  detectar duplicados, insertar, contabilizar)
- transform() = Paso variable (mapeo de campos de cada entidad)

Flujo por documento (migrate_document):
1. Resolver referencias requeridas vía IdentifierTranslator.resolve()
   → si alguna no está migrada: Skipped
2. Resolver referencias opcionales (None si no están migradas)
3. Duplicados "primero gana": si la clave ya fue migrada, el id de origen
   se apunta al registro retenido y el documento se omite
4. Asignar id destino con translate() y construir la fila con transform()
5. store.create(); si falla, se elimina el mapeo del id de origen

Ejemplo de implementación:
    class NoticesMigrator(BaseMigrator):
        tag = 'notices'
        optional_references = (('institutionId', 'institutions'),)
        has_updated_at = True

        def transform(self, doc, refs):
            return {
                'institutionId': refs['institutionId'],
                'title': doc.get('title') or 'Notice',
                'message': doc.get('message') or '',
            }
"""

from abc import ABC, abstractmethod

import psycopg2
from psycopg2.errors import ForeignKeyViolation, UniqueViolation

import config
from stats import CollectionStats, Failed, Skipped, Success
from .coerce import to_date, utcnow


def _error_detail(error) -> str:
    message = getattr(error, "pgerror", None) or str(error)
    lines = message.strip().splitlines()
    return lines[0] if lines else type(error).__name__


def _error_kind(error) -> str:
    if isinstance(error, UniqueViolation):
        return "unique_violation"
    if isinstance(error, ForeignKeyViolation):
        return "foreign_key_violation"
    return "database"


class BaseMigrator(ABC):
    """
    Clase abstracta para migradores de una entidad.

    Atributos de clase que define cada subclase:
        tag (str): Tag de la entidad en config.COLLECTIONS
        required_references (tuple): (columna, tag) que deben resolverse;
            si alguna no está migrada el documento se omite
        optional_references (tuple): (columna, tag) que quedan en None si no se resuelven
        anticipated_violations (tuple): Errores de psycopg2 que cuentan como
            omitidos y no como errores
        has_created_at (bool): La tabla tiene columna createdAt
        has_updated_at (bool): La tabla tiene updatedAt NOT NULL sin default

    Attributes:
        table (str): Tabla destino en PostgreSQL
    """

    tag = None
    required_references = ()
    optional_references = ()
    anticipated_violations = (ForeignKeyViolation,)
    has_created_at = True
    has_updated_at = False

    def __init__(self, table: str = None):
        """
        Args:
            table: Tabla destino; por defecto la de config.COLLECTIONS[tag]
        """
        self.table = table or config.get_table_for_collection(self.tag)
        self.reset()

    # =========================================================================
    # MÉTODOS PÚBLICOS
    # =========================================================================

    def reset(self):
        """Limpia el estado de una ejecución anterior (claves de duplicados retenidas)."""
        self._retained = {}

    def migrate(self, documents, store, translator, dry_run=False, verbose=False):
        """
        Migra todos los documentos del bucket de esta entidad.

        En simulación no se llama a store ni al traductor: sólo se informa
        cuántos registros se migrarían.

        Args:
            documents: Lista de documentos del bucket
            store: Destino con create(table, data) y commit() (PostgresStore)
            translator: IdentifierTranslator de la ejecución
            dry_run: Simular sin escribir
            verbose: Imprimir cada registro omitido o con error

        Returns:
            CollectionStats: Contadores de la colección
        """
        print(f"\n📦 {self.tag} → \"{self.table}\" ({len(documents):,} documentos)")
        stats = CollectionStats(self.tag, len(documents), dry_run=dry_run)

        if dry_run:
            stats.finish()
            print(f"   ⚠️  {stats.summary_line()}")
            return stats

        self.reset()
        for document in documents:
            result = self.migrate_document(document, store, translator)
            stats.record(result, document.get("_id"))
            if verbose and not isinstance(result, Success):
                print(f"   ⚠️  {self.tag} {document.get('_id')}: {result}")

        store.commit()
        stats.finish()
        print(f"   ✅ {stats.summary_line()}")
        return stats

    def migrate_document(self, document, store, translator):
        """
        Migra un documento y retorna Success, Skipped o Failed.

        Nunca propaga errores de base de datos: el fallo de un registro no
        aborta la colección.
        """
        refs, missing = self.resolve_references(document, translator)
        if missing:
            return Skipped(f"referencia sin migrar: {missing[0]}")

        key = self.duplicate_key(document, refs)
        if key is not None and key in self._retained:
            translator.alias(document.get("_id"), self.tag, self._retained[key])
            return Skipped("duplicado")

        source_id = document.get("_id")
        if translator.resolve(source_id, self.tag) is not None:
            return Skipped("id de origen repetido")

        destination_id = translator.translate(source_id, self.tag)
        try:
            row = {"id": destination_id}
            row.update(self.transform(document, refs))
            self._stamp(document, row)
        except (TypeError, ValueError, KeyError, AttributeError) as e:
            translator.forget(source_id, self.tag)
            return Failed("transform", f"{type(e).__name__}: {e}")

        try:
            store.create(self.table, row)
        except self.anticipated_violations as e:
            translator.forget(source_id, self.tag)
            return Skipped(_error_kind(e))
        except psycopg2.Error as e:
            translator.forget(source_id, self.tag)
            return Failed(_error_kind(e), _error_detail(e))

        if key is not None:
            self._retained[key] = destination_id
        self.on_created(row)
        return Success(destination_id)

    def resolve_references(self, document, translator):
        """
        Resuelve las FKs del documento.

        Returns:
            tuple: (refs, missing) donde refs es columna → id destino|None
                   y missing las columnas requeridas que no se resolvieron
        """
        refs = {}
        missing = []
        for column, tag in self.required_references:
            refs[column] = translator.resolve(self.reference_value(document, column), tag)
            if refs[column] is None:
                missing.append(column)
        for column, tag in self.optional_references:
            refs[column] = translator.resolve(self.reference_value(document, column), tag)
        return refs, missing

    def referenced_tags(self) -> set:
        """Tags que este migrador necesita ya migrados."""
        return {tag for _, tag in self.required_references + self.optional_references}

    # =========================================================================
    # PUNTOS DE EXTENSIÓN
    # =========================================================================

    def reference_value(self, document, column):
        """Id de origen de una referencia (por defecto, el campo homónimo)."""
        return document.get(column)

    def duplicate_key(self, document, refs):
        """
        Clave de unicidad "primero gana", o None si la entidad no la tiene.

        El primer documento con una clave se migra; los siguientes se omiten
        y su id de origen resuelve al registro retenido.
        """
        return None

    def on_created(self, row):
        """Se llama sólo después de un INSERT exitoso con la fila escrita."""

    @abstractmethod
    def transform(self, document: dict, refs: dict) -> dict:
        """
        Construye la fila destino (sin 'id') a partir del documento.

        Args:
            document: Documento de MongoDB
            refs: Columna → id destino resuelto (requeridos nunca son None)

        Returns:
            dict: Columna → valor. createdAt/updatedAt se completan si faltan.
        """

    # =========================================================================
    # MÉTODOS PRIVADOS
    # =========================================================================

    def _stamp(self, document, row):
        if self.has_created_at and "createdAt" not in row:
            row["createdAt"] = to_date(document.get("createdAt")) or utcnow()
        if self.has_updated_at and "updatedAt" not in row:
            row["updatedAt"] = to_date(document.get("updatedAt")) or utcnow()
