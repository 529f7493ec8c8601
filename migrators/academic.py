"""
Migradores de la estructura académica.

Entidades: branches, departments, batches, semesters, scholarships,
feeStructures, subjects. Todas cuelgan opcionalmente de una institución;
subjects además de una rama.

Los códigos UNIQUE faltantes (branches.code, departments.code,
Subject.subjectCode) se generan con el final del ObjectId para que sean
estables entre ejecuciones.
"""

from datetime import datetime

from psycopg2.errors import ForeignKeyViolation, UniqueViolation

from .base import BaseMigrator
from .coerce import to_bool, to_int, to_number, to_text


def _id_suffix(doc) -> str:
    return str(doc.get("_id"))[-8:]


INSTITUTION_REFERENCE = (("institutionId", "institutions"),)


class BranchesMigrator(BaseMigrator):
    tag = "branches"
    optional_references = INSTITUTION_REFERENCE
    anticipated_violations = (UniqueViolation, ForeignKeyViolation)
    has_updated_at = True

    def transform(self, doc, refs):
        name = to_text(doc.get("name")) or "Unknown"
        short_name = to_text(doc.get("shortName")) or name[:10] or "BR"
        return {
            "name": name,
            "shortName": short_name,
            "code": to_text(doc.get("code")) or f"{short_name}-{_id_suffix(doc)}",
            "duration": to_int(doc.get("duration")) or 3,
            "isActive": to_bool(doc.get("isActive"), True),
            "institutionId": refs["institutionId"],
        }


class DepartmentsMigrator(BaseMigrator):
    tag = "departments"
    optional_references = INSTITUTION_REFERENCE
    anticipated_violations = (UniqueViolation, ForeignKeyViolation)
    has_updated_at = True

    def transform(self, doc, refs):
        return {
            "name": to_text(doc.get("name")) or "Unknown",
            "shortName": to_text(doc.get("shortName")),
            "code": to_text(doc.get("code")) or f"DEPT-{_id_suffix(doc)}",
            # hodId no tiene FK: se conserva el id de origen
            "hodId": to_text(doc.get("hodId")),
            "isActive": to_bool(doc.get("isActive"), True),
            "institutionId": refs["institutionId"],
        }


class BatchesMigrator(BaseMigrator):
    """
    Batch.name es UNIQUE pero el origen repite nombres entre instituciones.

    A diferencia de otros duplicados no se omiten: el nombre repetido se
    renombra a '<name>-<final del ObjectId>'.
    """

    tag = "batches"
    optional_references = INSTITUTION_REFERENCE
    anticipated_violations = (UniqueViolation, ForeignKeyViolation)

    def reset(self):
        super().reset()
        self._names = set()

    def transform(self, doc, refs):
        name = to_text(doc.get("name")) or "Batch"
        if name in self._names:
            name = f"{name}-{_id_suffix(doc)}"
        return {
            "name": name,
            "isActive": to_bool(doc.get("isActive"), True),
            "institutionId": refs["institutionId"],
        }

    def on_created(self, row):
        self._names.add(row["name"])


class SemestersMigrator(BaseMigrator):
    tag = "semesters"
    optional_references = INSTITUTION_REFERENCE
    has_created_at = False

    def transform(self, doc, refs):
        return {
            "number": to_int(doc.get("number")) or 1,
            "isActive": to_bool(doc.get("isActive"), True),
            "institutionId": refs["institutionId"],
        }


class ScholarshipsMigrator(BaseMigrator):
    tag = "scholarships"
    optional_references = INSTITUTION_REFERENCE

    def transform(self, doc, refs):
        return {
            "type": doc.get("type") or "PMS",
            "amount": to_number(doc.get("amount")) or 0,
            "status": doc.get("status") or None,
            "institutionId": refs["institutionId"],
        }


class FeeStructuresMigrator(BaseMigrator):
    """Una estructura por (admissionType, scholarshipScheme, semesterNumber)."""

    tag = "feeStructures"
    optional_references = INSTITUTION_REFERENCE
    anticipated_violations = (UniqueViolation, ForeignKeyViolation)

    def duplicate_key(self, doc, refs):
        return (
            doc.get("admissionType") or "FIRST_YEAR",
            doc.get("scholarshipScheme") or "PMS",
            to_int(doc.get("semesterNumber")) or 1,
        )

    def transform(self, doc, refs):
        admission_type, scholarship_scheme, semester_number = self.duplicate_key(doc, refs)
        total = doc.get("total")
        return {
            "admissionType": admission_type,
            "scholarshipScheme": scholarship_scheme,
            "semesterNumber": semester_number,
            "df": to_number(doc.get("df")) or 0,
            "sf": to_number(doc.get("sf")) or 0,
            "security": to_number(doc.get("security")) or 0,
            "tf": to_number(doc.get("tf")) or 0,
            "total": to_text(total) if total is not None else "0",
            "isActive": to_bool(doc.get("isActive"), True),
            "institutionId": refs["institutionId"],
        }


class SubjectsMigrator(BaseMigrator):
    tag = "subjects"
    optional_references = INSTITUTION_REFERENCE + (("branchId", "branches"),)

    def transform(self, doc, refs):
        semester_number = doc.get("semesterNumber")
        return {
            "subjectName": to_text(doc.get("subjectName")) or "Unknown Subject",
            "subjectCode": to_text(doc.get("subjectCode")) or f"SUB-{_id_suffix(doc)}",
            "syllabusYear": to_int(doc.get("syllabusYear")) or datetime.now().year,
            "semesterNumber": to_text(semester_number),
            "branchName": to_text(doc.get("branchName")) or "Unknown",
            "maxMarks": to_number(doc.get("maxMarks")) or 100,
            "subjectType": to_text(doc.get("subjectType")) or "THEORY",
            "branchId": refs["branchId"],
            "institutionId": refs["institutionId"],
        }
