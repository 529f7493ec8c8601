"""
Tests de contabilidad y reglas de los migradores.

Usan FakeStore en lugar de PostgreSQL: los errores de base de datos se
simulan lanzando las excepciones de psycopg2.errors desde create().
"""

import sys
import os
from datetime import datetime

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from psycopg2.errors import ForeignKeyViolation, NotNullViolation, UniqueViolation

import config
from id_translator import IdentifierTranslator
from migrators.academic import BatchesMigrator, FeeStructuresMigrator
from migrators.core import InstitutionsMigrator, UsersMigrator
from migrators.internships import (
    InternshipApplicationsMigrator,
    MonthlyReportsMigrator,
    derive_internship_phase,
)
from migrators.students import StudentsMigrator
from migrators.support import AuditLogsMigrator, NoticesMigrator, NotificationsMigrator
from stats import Failed, Skipped, Success
from tests.helpers import FakeStore, get_migrator_class_for_collection, oid

NOW = datetime(2024, 6, 1)
PAST = datetime(2024, 1, 1)
FUTURE = datetime(2025, 1, 1)


def build_dataset():
    """
    Un documento válido por entidad, más un huérfano (referencia requerida
    a un id inexistente) por cada entidad que tiene referencias requeridas.

    Returns:
        tuple: (documentos por tag, ids de origen de los válidos por tag)
    """
    source_ids = {tag: oid() for tag in config.MIGRATION_ORDER}
    documents = {}

    for tag in config.MIGRATION_ORDER:
        migrator_class = get_migrator_class_for_collection(tag)
        document = {"_id": source_ids[tag], "createdAt": PAST}
        for column, referenced_tag in migrator_class.required_references + migrator_class.optional_references:
            document[column] = source_ids[referenced_tag]
        documents[tag] = [document]

        if migrator_class.required_references:
            orphan = dict(document, _id=oid())
            orphan[migrator_class.required_references[0][0]] = oid()
            documents[tag].append(orphan)

    return documents, source_ids


# =============================================================================
# BALANCE DE TODOS LOS MIGRADORES
# =============================================================================


def test_all_migrators_balance():
    print("\n🔍 Test: migrados + omitidos + errores == total (todas las entidades)")

    documents, source_ids = build_dataset()
    store = FakeStore()
    translator = IdentifierTranslator()

    for tag in config.MIGRATION_ORDER:
        migrator = get_migrator_class_for_collection(tag)()
        stats = migrator.migrate(documents[tag], store, translator)

        assert stats.is_balanced, f"{tag}: {stats.summary_line()}"
        assert stats.total == len(documents[tag])
        assert stats.errors == 0, f"{tag}: {stats.error_details}"
        assert stats.migrated == 1, f"{tag}: {stats.summary_line()}"
        assert stats.skipped == len(documents[tag]) - 1
        assert store.count(migrator.table) == 1
        print(f"   ✅ {tag}: {stats.migrated} migrado, {stats.skipped} omitido")

    # Las FKs apuntan a los ids destino de los padres
    student = store.created("Student")[0]
    assert student["userId"] == translator.resolve(source_ids["users"], "users")
    assert student["feeStructureId"] == translator.resolve(source_ids["feeStructures"], "feeStructures")
    report = store.created("monthly_reports")[0]
    assert report["applicationId"] == translator.resolve(
        source_ids["internshipApplications"], "internshipApplications"
    )


def test_dry_run_touches_nothing():
    print("\n🔍 Test: simulación sin escrituras")

    documents, _ = build_dataset()
    store = FakeStore()
    translator = IdentifierTranslator()

    for tag in config.MIGRATION_ORDER:
        migrator = get_migrator_class_for_collection(tag)()
        stats = migrator.migrate(documents[tag], store, translator, dry_run=True)
        assert stats.is_balanced
        assert stats.total == len(documents[tag])
        assert stats.migrated == stats.skipped == stats.errors == 0

    assert store.calls == []
    assert translator.summary() == {}
    print("   ✅ Ninguna llamada al destino ni al traductor")


# =============================================================================
# REFERENCIAS Y DUPLICADOS
# =============================================================================


def test_student_skipped_when_user_missing():
    store = FakeStore()
    translator = IdentifierTranslator()
    student = {"_id": oid(), "userId": oid(), "rollNumber": "21CSE01"}

    result = StudentsMigrator().migrate_document(student, store, translator)

    assert result == Skipped("referencia sin migrar: userId")
    assert store.calls == []
    assert translator.resolve(student["_id"], "students") is None


def test_optional_reference_left_empty():
    store = FakeStore()
    translator = IdentifierTranslator()
    user = {"_id": oid(), "email": "a@b.com", "institutionId": oid()}

    result = UsersMigrator().migrate_document(user, store, translator)

    assert isinstance(result, Success)
    assert store.created("User")[0]["institutionId"] is None


def test_duplicate_users_alias_to_first():
    print("\n🔍 Test: usuarios duplicados por email")

    store = FakeStore()
    translator = IdentifierTranslator()
    first = {"_id": oid(), "email": "Ana@Poly.in", "role": "STUDENT"}
    second = {"_id": oid(), "email": " ana@poly.in ", "role": "STUDENT"}
    notification = {"_id": oid(), "userId": second["_id"], "title": "Hola"}

    stats = UsersMigrator().migrate([first, second], store, translator)
    assert (stats.migrated, stats.skipped) == (1, 1)
    assert stats.skip_reasons == {"duplicado": 1}

    retained = translator.resolve(first["_id"], "users")
    assert translator.resolve(second["_id"], "users") == retained

    NotificationsMigrator().migrate([notification], store, translator)
    assert store.created("Notification")[0]["userId"] == retained
    print("   ✅ El duplicado resuelve al usuario retenido")


def test_users_without_email_are_not_duplicates():
    store = FakeStore()
    translator = IdentifierTranslator()
    users = [{"_id": oid(), "role": "ADMIN"}, {"_id": oid(), "email": "", "role": "ADMIN"}]

    stats = UsersMigrator().migrate(users, store, translator)
    assert stats.migrated == 2
    assert store.created("User")[0]["password"] == "default_password_hash"
    assert store.created("User")[0]["name"] == "Unknown"


def test_duplicate_students_per_user():
    store = FakeStore()
    translator = IdentifierTranslator()
    user = {"_id": oid(), "email": "a@b.com"}
    UsersMigrator().migrate([user], store, translator)

    students = [
        {"_id": oid(), "userId": user["_id"], "feeStuctureId": None},
        {"_id": oid(), "userId": user["_id"]},
    ]
    stats = StudentsMigrator().migrate(students, store, translator)

    assert (stats.migrated, stats.skipped) == (1, 1)
    assert translator.resolve(students[1]["_id"], "students") == translator.resolve(
        students[0]["_id"], "students"
    )


def test_fee_structure_reference_with_legacy_field_name():
    store = FakeStore()
    translator = IdentifierTranslator()
    user = {"_id": oid(), "email": "a@b.com"}
    fee_structure = {"_id": oid(), "admissionType": "LEET", "scholarshipScheme": "CM", "semesterNumber": 2}
    UsersMigrator().migrate([user], store, translator)
    FeeStructuresMigrator().migrate([fee_structure], store, translator)

    StudentsMigrator().migrate(
        [{"_id": oid(), "userId": user["_id"], "feeStuctureId": fee_structure["_id"]}],
        store,
        translator,
    )
    assert store.created("Student")[0]["feeStructureId"] == translator.resolve(
        fee_structure["_id"], "feeStructures"
    )


def test_repeated_source_id():
    store = FakeStore()
    translator = IdentifierTranslator()
    notice = {"_id": oid(), "title": "Aviso", "message": "m"}

    stats = NoticesMigrator().migrate([notice, dict(notice)], store, translator)
    assert (stats.migrated, stats.skipped) == (1, 1)
    assert stats.skip_reasons == {"id de origen repetido": 1}


def test_fee_structure_duplicates():
    store = FakeStore()
    translator = IdentifierTranslator()
    documents = [
        {"_id": oid(), "admissionType": "FIRST_YEAR", "semesterNumber": 1, "total": 1500},
        {"_id": oid(), "semesterNumber": "1"},
        {"_id": oid(), "admissionType": "LEET", "semesterNumber": 3},
    ]

    stats = FeeStructuresMigrator().migrate(documents, store, translator)
    assert (stats.migrated, stats.skipped) == (2, 1)
    rows = store.created("FeeStructure")
    assert rows[0]["total"] == "1500"
    assert rows[1]["total"] == "0"


def test_monthly_report_duplicates():
    store = FakeStore()
    translator = IdentifierTranslator()
    application_id, student_id = oid(), oid()
    translator.translate(application_id, "internshipApplications")
    translator.translate(student_id, "students")

    base = {"applicationId": application_id, "studentId": student_id, "reportYear": 2024}
    documents = [
        dict(base, _id=oid(), reportMonth=1),
        dict(base, _id=oid(), reportMonth="1"),
        dict(base, _id=oid(), reportMonth=2),
    ]

    stats = MonthlyReportsMigrator().migrate(documents, store, translator)
    assert (stats.migrated, stats.skipped) == (2, 1)


# =============================================================================
# ERRORES DE BASE DE DATOS
# =============================================================================


def test_anticipated_unique_violation_is_skipped():
    print("\n🔍 Test: violación de unicidad prevista")

    store = FakeStore(failures={"Institution": lambda data: UniqueViolation("duplicate key value")})
    translator = IdentifierTranslator()
    institution = {"_id": oid(), "code": "GPL"}

    stats = InstitutionsMigrator().migrate([institution], store, translator)

    assert (stats.migrated, stats.skipped, stats.errors) == (0, 1, 0)
    assert stats.skip_reasons == {"unique_violation": 1}
    assert translator.resolve(institution["_id"], "institutions") is None
    print("   ✅ Omitido y mapeo eliminado")


def test_foreign_key_violation_is_skipped():
    store = FakeStore(failures={"Notice": lambda data: ForeignKeyViolation("violates foreign key")})
    translator = IdentifierTranslator()

    stats = NoticesMigrator().migrate([{"_id": oid(), "title": "Aviso"}], store, translator)
    assert stats.skip_reasons == {"foreign_key_violation": 1}


def test_unanticipated_error_fails_and_forgets():
    print("\n🔍 Test: error no previsto")

    store = FakeStore(
        failures={
            "Notice": lambda data: NotNullViolation('null value in column "title"\nDETAIL: fila')
            if data["message"] == "roto"
            else None
        }
    )
    translator = IdentifierTranslator()
    broken = {"_id": oid(), "title": "Aviso", "message": "roto"}
    fine = {"_id": oid(), "title": "Aviso", "message": "ok"}

    stats = NoticesMigrator().migrate([broken, fine], store, translator)

    assert (stats.migrated, stats.skipped, stats.errors) == (1, 0, 1)
    assert stats.is_balanced
    assert stats.error_details == [f'[database] {broken["_id"]}: null value in column "title"']
    assert translator.resolve(broken["_id"], "notices") is None
    assert translator.resolve(fine["_id"], "notices") is not None
    assert store.calls[-1] == ("commit",)
    print("   ✅ Registro fallido no aborta la colección")


def test_transform_error_fails():
    class BrokenNoticesMigrator(NoticesMigrator):
        def transform(self, doc, refs):
            raise ValueError("fecha imposible")

    store = FakeStore()
    translator = IdentifierTranslator()
    notice = {"_id": oid()}

    result = BrokenNoticesMigrator().migrate_document(notice, store, translator)

    assert result == Failed("transform", "ValueError: fecha imposible")
    assert store.calls == []
    assert translator.resolve(notice["_id"], "notices") is None


# =============================================================================
# REGLAS POR ENTIDAD
# =============================================================================


def test_timestamps():
    store = FakeStore()
    translator = IdentifierTranslator()

    NoticesMigrator().migrate(
        [{"_id": oid(), "title": "Aviso", "createdAt": {"$date": "2024-01-01T00:00:00Z"}}],
        store,
        translator,
    )
    notice = store.created("Notice")[0]
    assert notice["createdAt"] == PAST
    assert isinstance(notice["updatedAt"], datetime)

    AuditLogsMigrator().migrate([{"_id": oid(), "action": "USER_LOGIN"}], store, translator)
    audit = store.created("AuditLog")[0]
    assert "createdAt" not in audit and "updatedAt" not in audit
    assert isinstance(audit["timestamp"], datetime)


def test_batch_names_are_renamed():
    print("\n🔍 Test: nombres de batch repetidos")

    store = FakeStore()
    translator = IdentifierTranslator()
    first, second = {"_id": oid(), "name": "2023-2026"}, {"_id": oid(), "name": "2023-2026"}
    migrator = BatchesMigrator()

    stats = migrator.migrate([first, second], store, translator)

    assert stats.migrated == 2
    names = [row["name"] for row in store.created("Batch")]
    assert names == ["2023-2026", f"2023-2026-{str(second['_id'])[-8:]}"]

    # Una nueva ejecución no arrastra los nombres anteriores
    other = FakeStore()
    migrator.migrate([first], other, IdentifierTranslator())
    assert other.created("Batch")[0]["name"] == "2023-2026"
    print(f"   ✅ {names}")


def test_batch_name_kept_when_first_insert_skipped():
    # El primer "2021-2024" choca con una fila existente: el nombre no queda tomado
    calls = []

    def fail_first(data):
        calls.append(data["name"])
        return UniqueViolation("duplicate key value") if len(calls) == 1 else None

    store = FakeStore(failures={"Batch": fail_first})
    first, second = {"_id": oid(), "name": "2021-2024"}, {"_id": oid(), "name": "2021-2024"}

    stats = BatchesMigrator().migrate([first, second], store, IdentifierTranslator())

    assert stats.skipped == 1 and stats.migrated == 1
    assert [row["name"] for row in store.created("Batch")] == ["2021-2024"]


def test_derive_internship_phase():
    print("\n🔍 Test: derive_internship_phase")

    cases = [
        ({}, "NOT_STARTED"),
        ({"internshipStatus": "ONGOING"}, "ACTIVE"),
        ({"internshipStatus": "IN_PROGRESS"}, "ACTIVE"),
        ({"internshipStatus": "COMPLETED"}, "COMPLETED"),
        ({"internshipStatus": "CANCELLED"}, "TERMINATED"),
        ({"internshipStatus": "TERMINATED"}, "TERMINATED"),
        ({"internshipStatus": "PENDING", "startDate": PAST}, "ACTIVE"),
        ({"internshipStatus": "PENDING", "startDate": PAST, "endDate": PAST}, "COMPLETED"),
        ({"internshipStatus": "PENDING", "startDate": FUTURE}, "NOT_STARTED"),
        ({"status": "JOINED"}, "ACTIVE"),
        ({"status": "JOINED", "internshipStatus": "PENDING"}, "NOT_STARTED"),
        ({"joiningDate": "2024-02-01T00:00:00Z"}, "ACTIVE"),
        ({"internshipStatus": "CANCELLED", "completionDate": PAST}, "COMPLETED"),
    ]

    for document, expected in cases:
        assert derive_internship_phase(document, now=NOW) == expected, document
        print(f"   ✅ {document} → {expected}")


def test_application_row_has_no_legacy_columns():
    store = FakeStore()
    translator = IdentifierTranslator()
    student_id = oid()
    translator.translate(student_id, "students")

    InternshipApplicationsMigrator().migrate(
        [{"_id": oid(), "studentId": student_id, "status": "JOINED", "hasJoined": True,
          "internshipStatus": "ONGOING", "reviewedBy": "x"}],
        store,
        translator,
    )
    row = store.created("internship_applications")[0]
    assert row["internshipPhase"] == "ACTIVE"
    assert row["internshipId"] is None
    for legacy in ("hasJoined", "reviewedBy", "internshipStatus"):
        assert legacy not in row


if __name__ == "__main__":
    tests = [
        test_all_migrators_balance,
        test_dry_run_touches_nothing,
        test_student_skipped_when_user_missing,
        test_optional_reference_left_empty,
        test_duplicate_users_alias_to_first,
        test_users_without_email_are_not_duplicates,
        test_duplicate_students_per_user,
        test_fee_structure_reference_with_legacy_field_name,
        test_repeated_source_id,
        test_fee_structure_duplicates,
        test_monthly_report_duplicates,
        test_anticipated_unique_violation_is_skipped,
        test_foreign_key_violation_is_skipped,
        test_unanticipated_error_fails_and_forgets,
        test_transform_error_fails,
        test_timestamps,
        test_batch_names_are_renamed,
        test_batch_name_kept_when_first_insert_skipped,
        test_derive_internship_phase,
        test_application_row_has_no_legacy_columns,
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
