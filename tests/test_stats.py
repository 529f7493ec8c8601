"""
Tests de estadísticas por colección y del reporte final.
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import config
from stats import CollectionStats, Failed, MigrationReport, Skipped, Success


def _stats(collection="users", total=4):
    stats = CollectionStats(collection, total)
    stats.record(Success("id-1"))
    stats.record(Success("id-2"))
    stats.record(Skipped("duplicado"))
    stats.record(Failed("database", "null value in column"), "abc123")
    stats.finish()
    return stats


def test_collection_stats_balance():
    print("\n🔍 Test: balance de CollectionStats")

    stats = _stats()
    assert (stats.migrated, stats.skipped, stats.errors) == (2, 1, 1)
    assert stats.is_balanced
    assert stats.success_rate == 50.0
    assert stats.skip_reasons == {"duplicado": 1}
    assert stats.error_details == ["[database] abc123: null value in column"]
    assert "Migrados: 2/4 (50.0%)" in stats.summary_line()
    print(f"   ✅ {stats.summary_line()}")


def test_unbalanced_and_empty():
    stats = CollectionStats("notices", 3)
    stats.record(Success("x"))
    assert not stats.is_balanced

    empty = CollectionStats("notices", 0)
    assert empty.is_balanced
    assert empty.success_rate == 0.0


def test_dry_run_stats():
    stats = CollectionStats("users", 10, dry_run=True)
    stats.finish()
    assert stats.is_balanced
    assert stats.summary_line() == "Simulación: se migrarían 10 registros"


def test_error_details_are_capped():
    stats = CollectionStats("users", 50)
    for index in range(50):
        stats.record(Failed("database", f"error {index}"))
    assert stats.errors == 50
    assert len(stats.error_details) == config.ERROR_DETAIL_LIMIT


def test_record_rejects_unknown_results():
    stats = CollectionStats("users", 1)
    try:
        stats.record("ok")
    except TypeError:
        pass
    else:
        raise AssertionError("record() debería rechazar resultados desconocidos")


def test_report_totals_and_render():
    print("\n🔍 Test: MigrationReport")

    report = MigrationReport()
    report.add(_stats("users"))
    report.add(_stats("students"))
    unbalanced = CollectionStats("notices", 2)
    unbalanced.record(Success("n"))
    report.add(unbalanced)
    report.unidentified = 7

    assert report.totals() == {"total": 10, "migrated": 5, "skipped": 2, "errors": 2}
    assert report.unbalanced() == ["notices"]

    text = report.render(id_summary={"users": 2, "students": 2})
    assert "RESUMEN DE MIGRACIÓN" in text
    assert "omitidos (duplicado): 1" in text
    assert "[database] abc123: null value in column" in text
    assert "Documentos no identificados (descartados): 7" in text
    assert "Conteos inconsistentes en: notices" in text
    assert "• users: 2" in text
    print("   ✅ Totales, errores e inconsistencias en el reporte")


def test_dry_run_report():
    report = MigrationReport(dry_run=True)
    stats = CollectionStats("users", 3, dry_run=True)
    stats.finish()
    report.add(stats)

    text = report.render()
    assert "SIMULACIÓN" in text
    assert "Total migrados" not in text
    assert "Total de registros leídos: 3" in text


if __name__ == "__main__":
    tests = [
        test_collection_stats_balance,
        test_unbalanced_and_empty,
        test_dry_run_stats,
        test_error_details_are_capped,
        test_record_rejects_unknown_results,
        test_report_totals_and_render,
        test_dry_run_report,
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
