"""
Tests del script principal y del análisis de respaldos (sin bases de datos).
"""

import sys
import os
import contextlib
import gzip
import io
import tempfile
from pathlib import Path

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import bson
import psycopg2
from bson import json_util

import cmsmigra
import config
from analyze_backup import analyze_field_coverage, export_samples, find_orphaned_student_users
from buckets import CollectionBuckets
from cmsmigra import (
    bucket_named_collections,
    build_parser,
    load_archive_source,
    load_migrator_for_collection,
    resolve_run_order,
    run_migrations,
)
from id_translator import IdentifierTranslator
from migrators.core import UsersMigrator
from tests.helpers import FakeStore, oid


def test_parser_defaults():
    args = build_parser().parse_args(["-b", "respaldo.gz", "-d", "-o", "users"])
    assert args.backup == "respaldo.gz"
    assert args.dry_run and not args.skip_clear
    assert args.batch_size == config.BATCH_SIZE
    assert args.only == "users"


def test_load_migrator_for_collection():
    migrator = load_migrator_for_collection("users")
    assert isinstance(migrator, UsersMigrator)
    assert migrator.table == "User"


def test_resolve_run_order():
    print("\n🔍 Test: resolve_run_order")

    assert resolve_run_order(None) == config.MIGRATION_ORDER
    # --only respeta el orden de dependencias, no el de la línea de comandos
    assert resolve_run_order("students, users") == ["users", "students"]

    try:
        resolve_run_order("users,inexistente")
    except SystemExit as e:
        assert e.code == 1
        print("   ✅ Tag desconocido → exit 1")
    else:
        raise AssertionError("Un tag desconocido debería terminar el proceso")


def test_bucket_named_collections():
    print("\n🔍 Test: bucket_named_collections")

    user = {"_id": oid(), "email": "a@b.com", "password": "x", "role": "STUDENT"}
    notice = {"_id": oid(), "title": "Aviso", "message": "m"}

    buckets = bucket_named_collections(
        [
            ("User", [user]),
            ("internship_applications", [{"_id": oid(), "studentId": oid()}]),
            ("misc", [notice, {"_id": oid(), "randomField": 1}]),
        ]
    )

    assert buckets.get("users") == [user]
    assert len(buckets.get("internshipApplications")) == 1
    assert buckets.get("notices") == [notice]
    assert len(buckets.unidentified) == 1
    print("   ✅ Nombre conocido → tag directo; desconocido → clasificador")


def test_load_archive_source():
    user = {"_id": oid(), "email": "a@b.com", "password": "x", "role": "ADMIN"}
    header = {"db": "internship", "collection": "User"}

    with tempfile.TemporaryDirectory() as tmp:
        backup = Path(tmp) / "respaldo.gz"
        with gzip.open(backup, "wb") as f:
            f.write(b"\x6d\xe2\x99\x81" + bson.encode(header) + bson.encode(user))
        buckets = load_archive_source(backup)

    assert buckets.get("users") == [user]
    assert buckets.unidentified == []


def test_run_migrations_end_to_end():
    print("\n🔍 Test: run_migrations")

    institution = {"_id": oid(), "code": "GPL", "affiliatedTo": "PSBTE"}
    user = {"_id": oid(), "email": "a@b.com", "password": "x", "role": "STUDENT",
            "institutionId": institution["_id"]}
    student = {"_id": oid(), "userId": user["_id"], "rollNumber": "21CSE01",
               "institutionId": institution["_id"]}
    orphan = {"_id": oid(), "userId": oid(), "rollNumber": "21CSE02"}

    buckets = CollectionBuckets()
    buckets.add("institutions", institution)
    buckets.add("users", user)
    buckets.extend("students", [student, orphan])

    store = FakeStore()
    translator = IdentifierTranslator()
    report = run_migrations(buckets, store, translator, config.MIGRATION_ORDER)

    assert report.totals() == {"total": 4, "migrated": 3, "skipped": 1, "errors": 0}
    assert report.unbalanced() == []
    assert len(report.collections) == len(config.MIGRATION_ORDER)
    row = store.created("Student")[0]
    assert row["userId"] == translator.resolve(user["_id"], "users")
    assert row["institutionId"] == translator.resolve(institution["_id"], "institutions")
    print("   ✅ Padres primero; huérfano omitido")


def test_run_migrations_dry_run():
    buckets = CollectionBuckets()
    buckets.add("users", {"_id": oid(), "email": "a@b.com"})

    report = run_migrations(buckets, None, IdentifierTranslator(), ["users"], dry_run=True)

    assert report.totals() == {"total": 1, "migrated": 0, "skipped": 0, "errors": 0}
    assert report.dry_run


# =============================================================================
# main (fuente y destino reemplazados)
# =============================================================================


class MainStore(FakeStore):
    """FakeStore con el mantenimiento que usa main()."""

    def __init__(self, truncate_error=None):
        super().__init__()
        self.truncate_error = truncate_error

    def truncate_all(self, preserved=None):
        self.calls.append(("truncate_all",))
        if self.truncate_error is not None:
            raise self.truncate_error
        return ["Notice", "User"]

    def close(self):
        self.calls.append(("close",))


def run_main(argv, store, buckets=None):
    """Ejecuta cmsmigra.main con la fuente y PostgreSQL reemplazados."""
    if buckets is None:
        buckets = CollectionBuckets()
        buckets.add("notices", {"_id": oid(), "title": "Aviso", "message": "m"})

    saved = (cmsmigra.load_source, cmsmigra.connect_to_postgres, cmsmigra.PostgresStore)
    cmsmigra.load_source = lambda args: (buckets, None)
    cmsmigra.connect_to_postgres = lambda url=None: object()
    cmsmigra.PostgresStore = lambda conn, batch_size=None: store
    try:
        return cmsmigra.main(argv)
    finally:
        cmsmigra.load_source, cmsmigra.connect_to_postgres, cmsmigra.PostgresStore = saved


def test_main_only_requires_skip_clear():
    print("\n🔍 Test: --only sin --skip-clear")

    store = MainStore()
    with contextlib.redirect_stderr(io.StringIO()) as err:
        code = run_main(["-b", "respaldo.gz", "-o", "notices"], store)

    assert code == 1
    assert store.calls == []
    assert "--skip-clear" in err.getvalue()
    print("   ✅ Se rechaza antes de conectar: no se vacía ninguna tabla")


def test_main_only_with_skip_clear_keeps_other_tables():
    store = MainStore()

    code = run_main(["-b", "respaldo.gz", "-o", "notices", "-s"], store)

    assert code == 0
    assert ("truncate_all",) not in store.calls
    assert [row["title"] for row in store.created("Notice")] == ["Aviso"]
    assert store.calls[-1] == ("close",)


def test_main_full_run_truncates():
    store = MainStore()

    assert run_main(["-b", "respaldo.gz"], store) == 0
    assert store.calls[0] == ("truncate_all",)
    assert len(store.created("Notice")) == 1


def test_main_database_error_traceback_only_verbose():
    print("\n🔍 Test: traza de error sólo con --verbose")

    for argv, expect_traceback in ((["-b", "respaldo.gz"], False), (["-b", "respaldo.gz", "-v"], True)):
        store = MainStore(truncate_error=psycopg2.Error("relation does not exist"))
        with contextlib.redirect_stderr(io.StringIO()) as err:
            code = run_main(argv, store)

        assert code == 1
        assert ("rollback",) in store.calls
        assert "relation does not exist" in err.getvalue()
        assert ("Traceback" in err.getvalue()) == expect_traceback, argv
    print("   ✅ Mensaje siempre, traza sólo en modo verbose")


# =============================================================================
# analyze_backup
# =============================================================================


def test_analyze_field_coverage():
    coverage = analyze_field_coverage(
        [{"_id": oid(), "name": "Ana", "age": 20}, {"_id": oid(), "name": None}]
    )
    assert coverage["_id"]["coverage"] == 100.0
    assert coverage["name"]["types"] == ["null", "string"]
    assert coverage["age"]["count"] == 1
    assert coverage["age"]["coverage"] == 50.0
    assert analyze_field_coverage([]) == {}


def test_find_orphaned_student_users():
    with_student = {"_id": oid(), "role": "STUDENT"}
    without_student = {"_id": oid(), "role": "STUDENT"}
    faculty = {"_id": oid(), "role": "FACULTY"}

    buckets = CollectionBuckets()
    buckets.extend("users", [with_student, without_student, faculty])
    buckets.add("students", {"_id": oid(), "userId": {"$oid": str(with_student["_id"])}})

    assert find_orphaned_student_users(buckets) == [without_student]


def test_export_samples():
    buckets = CollectionBuckets()
    buckets.extend("users", [{"_id": oid(), "email": f"{i}@b.com"} for i in range(5)])
    buckets.add("_unidentified", {"_id": oid()})

    with tempfile.TemporaryDirectory() as tmp:
        written = export_samples(buckets, Path(tmp) / "samples", limit=2)
        assert [path.name for path in written] == ["users_sample.json"]
        exported = json_util.loads(written[0].read_text(encoding="utf-8"))

    assert len(exported) == 2
    assert exported[0]["email"] == "0@b.com"


if __name__ == "__main__":
    tests = [
        test_parser_defaults,
        test_load_migrator_for_collection,
        test_resolve_run_order,
        test_bucket_named_collections,
        test_load_archive_source,
        test_run_migrations_end_to_end,
        test_run_migrations_dry_run,
        test_main_only_requires_skip_clear,
        test_main_only_with_skip_clear_keeps_other_tables,
        test_main_full_run_truncates,
        test_main_database_error_traceback_only_verbose,
        test_analyze_field_coverage,
        test_find_orphaned_student_users,
        test_export_samples,
    ]

    failed = 0
    for test_func in tests:
        try:
            test_func()
        except AssertionError as e:
            print(f"\n❌ FALLO: {test_func.__name__}: {e}")
            failed += 1

    print("\n" + "=" * 70)
    print("✅ TODOS LOS TESTS PASARON" if not failed else f"❌ {failed} TEST(S) FALLARON")
    print("=" * 70)
    sys.exit(1 if failed else 0)
