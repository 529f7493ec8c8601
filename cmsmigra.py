r"""
Script principal de migración del CMS de prácticas MongoDB → PostgreSQL.

Arquitectura con carga dinámica de migradores:
- cmsmigra.py: Infraestructura genérica (fuentes, conexiones, orden, reporte)
- migrators/*.py: Mapeo específico por entidad (implementan BaseMigrator)
- config.py: Configuración centralizada de entidades y dependencias

Flujo de ejecución:
1. Leer la fuente: respaldo .gz (archive de mongodump), directorio de dump
   o MongoDB en vivo
2. Clasificar cada documento en un bucket por entidad
3. Vaciar las tablas destino (salvo --skip-clear o --dry-run)
4. Ejecutar los migradores en config.MIGRATION_ORDER (padres primero)
5. Imprimir el reporte y verificar conteos en PostgreSQL

Prerrequisitos:
- Schema destino creado por las migraciones del ORM del CMS
- Variables de conexión en .env (ver config.py)

Uso:
    python cmsmigra.py --backup respaldo.gz
    python cmsmigra.py --backup ./dump/internship --dry-run
    python cmsmigra.py --mongodb-url mongodb://localhost:27017 --only users,students --skip-clear
"""

from pathlib import Path
import argparse
import sys
import io
import importlib
import traceback

import psycopg2
from pymongo import MongoClient
from pymongo.errors import ConnectionFailure, PyMongoError

# Asegurar que el directorio raíz esté en sys.path para imports dinámicos
project_root = Path(__file__).resolve().parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import config
from archive import ArchiveError, load_dump_directory, read_archive, scan_documents
from buckets import CollectionBuckets
from classifier import bucket_documents, format_unidentified_patterns, summarize_unidentified
from id_translator import IdentifierTranslator
from migrators.base import BaseMigrator
from stats import MigrationReport
from store import PostgresStore, connect_to_postgres


def build_parser():
    parser = argparse.ArgumentParser(
        description="Migra el CMS de prácticas desde MongoDB a PostgreSQL."
    )
    parser.add_argument(
        "-b", "--backup", help="Respaldo .gz (mongodump --archive --gzip) o directorio de dump"
    )
    parser.add_argument(
        "-m", "--mongodb-url", help="URL de MongoDB para leer en vivo (default: SOURCE_MONGODB_URL)"
    )
    parser.add_argument(
        "-p", "--postgres-url", help="URL de PostgreSQL destino (default: TARGET_DATABASE_URL)"
    )
    parser.add_argument(
        "-d", "--dry-run", action="store_true", help="Simular sin escribir en PostgreSQL"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Mostrar cada registro omitido o con error"
    )
    parser.add_argument(
        "-s", "--skip-clear", action="store_true", help="No vaciar las tablas destino antes de migrar"
    )
    parser.add_argument(
        "-n", "--batch-size", type=int, default=config.BATCH_SIZE,
        help=f"Registros entre commits (default: {config.BATCH_SIZE})",
    )
    parser.add_argument(
        "-o", "--only", help="Tags a migrar separados por coma (ej: institutions,users); requiere --skip-clear"
    )
    return parser


def load_migrator_for_collection(tag):
    """
    Carga dinámicamente el migrador correspondiente a un tag.

    Convención de nombres:
        internshipApplications → migrators.internships → InternshipApplicationsMigrator
        users → migrators.core → UsersMigrator

    El módulo sale de config.COLLECTIONS[tag]['module']; la clase es el tag
    con la primera letra en mayúscula más 'Migrator'.

    Args:
        tag: Tag de la entidad en config.COLLECTIONS

    Returns:
        BaseMigrator: Instancia del migrador específico

    Raises:
        SystemExit: Si no existe el módulo o la clase
    """
    collection_config = config.get_collection_config(tag)
    module_name = collection_config["module"]
    class_name = tag[0].upper() + tag[1:] + "Migrator"

    try:
        module = importlib.import_module(f"migrators.{module_name}")
        migrator_class = getattr(module, class_name)

        # Verificar que hereda de BaseMigrator (type safety en runtime)
        if not issubclass(migrator_class, BaseMigrator):
            print(f"❌ {class_name} no hereda de BaseMigrator", file=sys.stderr)
            sys.exit(1)

        return migrator_class(table=collection_config["table"])

    except ModuleNotFoundError:
        print(f"❌ No existe el módulo de migradores para '{tag}'", file=sys.stderr)
        print(f"   Se esperaba: migrators/{module_name}.py", file=sys.stderr)
        sys.exit(1)
    except AttributeError:
        print(
            f"❌ El módulo migrators.{module_name} no tiene la clase '{class_name}'",
            file=sys.stderr,
        )
        sys.exit(1)


def connect_to_mongo(url):
    """
    Establece conexión a MongoDB.

    Returns:
        tuple: (client, database) de pymongo

    Raises:
        SystemExit: Si no puede conectar
    """
    try:
        print("🔌 Conectando a MongoDB...")
        client = MongoClient(url, serverSelectionTimeoutMS=5000)
        client.admin.command("ping")
        db = client[config.MONGO_DATABASE_NAME]
        print("✅ Conexión a MongoDB exitosa")
        return client, db
    except ConnectionFailure as e:
        print("❌ Error de conexión a MongoDB", file=sys.stderr)
        print(f"   Detalle: {e}", file=sys.stderr)
        sys.exit(1)


# =============================================================================
# LECTURA DE LA FUENTE
# =============================================================================

def bucket_named_collections(named_documents, buckets=None) -> CollectionBuckets:
    """
    Agrupa colecciones que llegan con nombre (dump o MongoDB en vivo).

    Si el nombre corresponde a una entidad configurada se usa directamente;
    si no, cada documento pasa por el clasificador.

    Args:
        named_documents: Iterable de (nombre_colección, documentos)
    """
    if buckets is None:
        buckets = CollectionBuckets()
    for name, documents in named_documents:
        tag = config.tag_for_collection_name(name)
        if tag is None:
            print(f"   ℹ️  Colección '{name}' sin entidad configurada: se clasifica por contenido")
        bucket_documents(documents, buckets, tag=tag)
    return buckets


def load_archive_source(path) -> CollectionBuckets:
    """Descomprime el respaldo y clasifica cada documento BSON encontrado."""
    print(f"📂 Leyendo respaldo: {path}")
    buffer = read_archive(path)
    print(f"   Tamaño descomprimido: {len(buffer) / (1024 * 1024):.2f} MB")

    scanned = scan_documents(buffer)
    return bucket_documents(item.document for item in scanned)


def load_live_source(db) -> CollectionBuckets:
    """Lee todas las colecciones de la base MongoDB."""
    names = sorted(db.list_collection_names())
    print(f"📂 Leyendo {len(names)} colecciones de MongoDB en vivo")
    return bucket_named_collections((name, list(db[name].find())) for name in names)


def load_source(args):
    """
    Lee la fuente indicada por los argumentos.

    Returns:
        tuple: (buckets, mongo_client|None)

    Raises:
        SystemExit: Si no se indicó ninguna fuente o la fuente es inválida
    """
    mongo_client = None
    try:
        if args.backup:
            backup_path = Path(args.backup)
            if backup_path.is_dir():
                print(f"📂 Leyendo directorio de dump: {backup_path}")
                buckets = bucket_named_collections(load_dump_directory(backup_path).items())
            else:
                buckets = load_archive_source(backup_path)
        else:
            url = args.mongodb_url or config.MONGODB_URL
            if not url:
                print("❌ Indique --backup o --mongodb-url (o SOURCE_MONGODB_URL en .env)",
                      file=sys.stderr)
                sys.exit(1)
            mongo_client, db = connect_to_mongo(url)
            buckets = load_live_source(db)
    except ArchiveError as e:
        print(f"❌ {e}", file=sys.stderr)
        sys.exit(1)
    except PyMongoError as e:
        print(f"❌ Error leyendo MongoDB: {e}", file=sys.stderr)
        sys.exit(1)

    return buckets, mongo_client


def print_buckets(buckets):
    print("\n📚 Documentos por entidad:")
    for tag, count in sorted(buckets.counts().items(), key=lambda item: -item[1]):
        print(f"   • {tag}: {count:,}")

    unidentified = buckets.unidentified
    if unidentified:
        print(f"\n⚠️  {len(unidentified):,} documentos no identificados. Patrones más frecuentes:")
        for line in format_unidentified_patterns(summarize_unidentified(unidentified)):
            print(f"   {line}")


# =============================================================================
# MIGRACIÓN
# =============================================================================

def resolve_run_order(only=None) -> list:
    """
    Tags a migrar en orden de dependencias.

    Raises:
        SystemExit: Si --only incluye un tag desconocido
    """
    if not only:
        return list(config.MIGRATION_ORDER)

    requested = [tag.strip() for tag in only.split(",") if tag.strip()]
    unknown = [tag for tag in requested if tag not in config.COLLECTIONS]
    if unknown:
        print(f"❌ Entidades desconocidas: {', '.join(unknown)}", file=sys.stderr)
        print(f"   Disponibles: {', '.join(config.MIGRATION_ORDER)}", file=sys.stderr)
        sys.exit(1)
    return [tag for tag in config.MIGRATION_ORDER if tag in requested]


def run_migrations(buckets, store, translator, order, dry_run=False, verbose=False):
    """
    Ejecuta los migradores en orden, uno a la vez.

    Returns:
        MigrationReport: Estadísticas de todas las colecciones
    """
    report = MigrationReport(dry_run=dry_run)
    for tag in order:
        migrator = load_migrator_for_collection(tag)
        report.add(
            migrator.migrate(buckets.get(tag), store, translator, dry_run=dry_run, verbose=verbose)
        )
    return report


def verify_counts(store, order):
    """Imprime la cantidad de filas de cada tabla migrada."""
    print("\n🔍 Verificación de conteos en PostgreSQL:")
    for tag in order:
        table = config.get_table_for_collection(tag)
        print(f"   • \"{table}\": {store.count(table):,} filas")


def main(argv=None):
    """
    Función principal que coordina el flujo completo de migración.

    Exit Codes:
        0: Éxito
        1: Error de fuente, conexión o migración
    """
    args = build_parser().parse_args(argv)

    print("=" * 70)
    print("🚀 MIGRACIÓN CMS DE PRÁCTICAS: MONGODB → POSTGRESQL")
    print("=" * 70)
    if args.dry_run:
        print("⚠️  Modo simulación: no se escribirá en PostgreSQL")

    order = resolve_run_order(args.only)
    if args.only and not args.skip_clear and not args.dry_run:
        # Vaciar todo para migrar un subconjunto borraría las demás entidades
        print("❌ --only requiere --skip-clear (o --dry-run): el vaciado afecta a todas las tablas",
              file=sys.stderr)
        return 1

    buckets, mongo_client = load_source(args)
    print_buckets(buckets)
    unidentified = buckets.discard_unidentified()

    store = None
    if not args.dry_run:
        store = PostgresStore(connect_to_postgres(args.postgres_url), batch_size=args.batch_size)

    try:
        if store is not None and not args.skip_clear:
            print("\n🗑️  Vaciando tablas destino...")
            tables = store.truncate_all()
            print(f"   ✅ {len(tables)} tablas vaciadas")

        translator = IdentifierTranslator()
        report = run_migrations(
            buckets, store, translator, order, dry_run=args.dry_run, verbose=args.verbose
        )
        report.unidentified = unidentified

        print("\n" + report.render(id_summary=translator.summary()))

        if store is not None:
            verify_counts(store, order)

        print("\n" + "=" * 70)
        print("✅ PROCESO COMPLETADO EXITOSAMENTE")
        print("=" * 70)
        return 0

    except psycopg2.Error as e:
        print(f"\n❌ Error durante la migración: {e}", file=sys.stderr)
        if args.verbose:
            traceback.print_exc()
        if store is not None:
            store.rollback()
        return 1

    finally:
        print("\n🔒 Cerrando conexiones...")
        if store is not None:
            store.close()
        if mongo_client is not None:
            mongo_client.close()
        print("✅ Conexiones cerradas correctamente")


if __name__ == "__main__":
    # Forzar UTF-8 en stdout/stderr para emojis en Windows
    sys.stdout = io.TextIOWrapper(sys.stdout.buffer, encoding="utf-8")
    sys.stderr = io.TextIOWrapper(sys.stderr.buffer, encoding="utf-8")
    sys.exit(main())
