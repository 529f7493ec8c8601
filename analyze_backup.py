# analyze_backup.py
"""
Script de análisis de un respaldo del CMS antes de migrarlo.

Descubre automáticamente:
- Cuántos documentos hay por entidad y cuáles no se pudieron identificar
- Cobertura de campos por entidad (en cuántos documentos aparece cada campo
  y con qué tipos)
- Usuarios con rol STUDENT sin registro de alumno (quedarán sin Student)

Opcionalmente exporta una muestra por entidad en Extended JSON.

Uso:
    python analyze_backup.py respaldo.gz
    python analyze_backup.py ./dump/internship --export samples --limit 200
"""

import argparse
import sys
from datetime import datetime
from pathlib import Path

from bson import ObjectId
from bson.json_util import dumps

from archive import ArchiveError, load_dump_directory
from classifier import format_unidentified_patterns, summarize_unidentified
from cmsmigra import bucket_named_collections, load_archive_source
from id_translator import IdentifierTranslator


def _field_type(value) -> str:
    if value is None:
        return "null"
    if isinstance(value, dict):
        return "object"
    if isinstance(value, list):
        return "array"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "float"
    if isinstance(value, datetime):
        return "date"
    if isinstance(value, ObjectId):
        return "objectId"
    return "string"


def analyze_field_coverage(documents):
    """
    Analiza qué campos existen y en cuántos documentos aparecen.

    Returns:
        dict: campo → {'count', 'coverage' (%), 'types' (lista ordenada)}
    """
    field_stats = {}
    total_docs = len(documents)

    for doc in documents:
        for field_name, value in doc.items():
            stats = field_stats.setdefault(field_name, {"count": 0, "types": set()})
            stats["count"] += 1
            stats["types"].add(_field_type(value))

    for stats in field_stats.values():
        stats["coverage"] = (stats["count"] / total_docs) * 100 if total_docs else 0.0
        stats["types"] = sorted(stats["types"])

    return field_stats


def find_orphaned_student_users(buckets):
    """
    Usuarios con rol STUDENT que ningún documento de students referencia.

    Returns:
        list: Documentos de users huérfanos
    """
    referenced = {
        IdentifierTranslator.normalize(student.get("userId"))
        for student in buckets.get("students")
    }
    return [
        user
        for user in buckets.get("users")
        if user.get("role") == "STUDENT"
        and IdentifierTranslator.normalize(user.get("_id")) not in referenced
    ]


def export_samples(buckets, output_dir, limit=200):
    """
    Exporta hasta `limit` documentos por entidad a <tag>_sample.json.

    Se serializa con bson.json_util para conservar ObjectId y fechas.

    Returns:
        list: Archivos escritos
    """
    samples_dir = Path(output_dir)
    samples_dir.mkdir(parents=True, exist_ok=True)

    written = []
    for tag in buckets.tags():
        docs = buckets.get(tag)[:limit]
        json_output = dumps(docs, indent=2, ensure_ascii=False)
        filename = samples_dir / f"{tag}_sample.json"
        with open(filename, "w", encoding="utf-8") as f:
            f.write(json_output)
        written.append(filename)
        print(f"   📄 {filename} ({len(docs)} documentos, {len(json_output) / 1024:.2f} KB)")
    return written


def print_coverage(tag, documents):
    print(f"\n📋 {tag} ({len(documents):,} documentos)")
    coverage = analyze_field_coverage(documents)
    for field_name, stats in sorted(coverage.items(), key=lambda item: -item[1]["count"]):
        print(
            f"   {field_name:<32} {stats['coverage']:6.1f}%  ({', '.join(stats['types'])})"
        )


def main(argv=None):
    parser = argparse.ArgumentParser(description="Analiza un respaldo del CMS.")
    parser.add_argument("backup", help="Respaldo .gz o directorio de dump")
    parser.add_argument("--export", help="Directorio donde exportar muestras por entidad")
    parser.add_argument("--limit", type=int, default=200, help="Documentos por muestra")
    args = parser.parse_args(argv)

    print("=" * 70)
    print("🔍 ANÁLISIS DE RESPALDO")
    print("=" * 70)

    try:
        backup_path = Path(args.backup)
        if backup_path.is_dir():
            buckets = bucket_named_collections(load_dump_directory(backup_path).items())
        else:
            buckets = load_archive_source(backup_path)
    except ArchiveError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1

    print("\n📚 Documentos por entidad:")
    for tag, count in sorted(buckets.counts().items(), key=lambda item: -item[1]):
        print(f"   • {tag}: {count:,}")

    unidentified = buckets.unidentified
    if unidentified:
        print(f"\n⚠️  {len(unidentified):,} documentos no identificados:")
        for line in format_unidentified_patterns(summarize_unidentified(unidentified)):
            print(f"   {line}")

    for tag in buckets.tags():
        print_coverage(tag, buckets.get(tag))

    orphaned = find_orphaned_student_users(buckets)
    print(f"\n👤 Usuarios STUDENT sin registro de alumno: {len(orphaned):,}")
    for user in orphaned[:10]:
        print(f"   - {user.get('_id')} {user.get('email')} {user.get('rollNumber')}")

    if args.export:
        print(f"\n📥 Exportando muestras a '{args.export}'...")
        export_samples(buckets, args.export, args.limit)

    return 0


if __name__ == "__main__":
    sys.exit(main())
