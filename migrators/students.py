"""
Migradores del alumno y sus registros asociados.

Student referencia a su User (obligatorio y UNIQUE); el resto de entidades
de este módulo referencian al Student. Un documento cuyo alumno no llegó a
migrarse se omite: la FK studentId es NOT NULL en todas las tablas.
"""

from psycopg2.errors import ForeignKeyViolation, UniqueViolation

import config
from .base import BaseMigrator
from .coerce import first_present, to_bool, to_date, to_int, to_list, to_number, to_text, utcnow

STUDENT_REFERENCE = (("studentId", "students"),)


class StudentsMigrator(BaseMigrator):
    """
    Student: un registro por usuario.

    Si dos documentos apuntan al mismo usuario migrado gana el primero y el
    segundo resuelve al alumno retenido.
    """

    tag = "students"
    required_references = (("userId", "users"),)
    optional_references = (
        ("institutionId", "institutions"),
        ("branchId", "branches"),
        ("batchId", "batches"),
        ("scholarshipId", "scholarships"),
        ("feeStructureId", "feeStructures"),
    )
    anticipated_violations = (UniqueViolation, ForeignKeyViolation)

    def reference_value(self, document, column):
        if column == "feeStructureId":
            # el CMS guardó el campo con una errata durante años
            return first_present(document, "feeStuctureId", "feeStructureId")
        return document.get(column)

    def duplicate_key(self, doc, refs):
        return refs["userId"]

    def transform(self, doc, refs):
        return {
            "userId": refs["userId"],
            "rollNumber": to_text(doc.get("rollNumber")),
            "admissionNumber": to_text(doc.get("admissionNumber")),
            "name": to_text(doc.get("name")) or "Unknown",
            "email": doc.get("email"),
            "contact": to_text(doc.get("contact")),
            "gender": doc.get("gender"),
            "dob": to_text(doc.get("dob")),
            "address": doc.get("address"),
            "city": doc.get("city"),
            "state": doc.get("state"),
            "pinCode": to_text(doc.get("pinCode")),
            "tehsil": doc.get("tehsil"),
            "district": doc.get("district"),
            "parentName": doc.get("parentName"),
            "parentContact": to_text(doc.get("parentContact")),
            "motherName": doc.get("motherName"),
            "institutionId": refs["institutionId"],
            "branchId": refs["branchId"],
            "branchName": doc.get("branchName"),
            "batchId": refs["batchId"],
            "currentYear": to_int(doc.get("currentYear")),
            "currentSemester": to_int(doc.get("currentSemester")),
            "currentSemesterMarks": to_number(doc.get("currentSemesterMarks")),
            "tenthper": to_number(doc.get("tenthper")),
            "twelthper": to_number(doc.get("twelthper")),
            "diplomaPercentage": to_number(doc.get("diplomaPercentage")),
            "totalBacklogs": to_int(doc.get("totalBacklogs")) or 0,
            "admissionType": doc.get("admissionType") or None,
            "category": doc.get("category") or None,
            "clearanceStatus": doc.get("clearanceStatus") or "PENDING",
            "isActive": to_bool(doc.get("isActive"), True),
            "profileImage": first_present(doc, "profilePicture", "profileImage"),
            "scholarshipId": refs["scholarshipId"],
            "feeStructureId": refs["feeStructureId"],
        }


class DocumentsMigrator(BaseMigrator):
    tag = "documents"
    required_references = STUDENT_REFERENCE

    def transform(self, doc, refs):
        return {
            "studentId": refs["studentId"],
            "type": doc.get("type") or "OTHER",
            "fileName": to_text(doc.get("fileName")) or "unknown_file",
            "fileUrl": to_text(doc.get("fileUrl")) or "",
        }


class FeesMigrator(BaseMigrator):
    tag = "fees"
    required_references = STUDENT_REFERENCE + (("semesterId", "semesters"),)
    optional_references = (
        ("feeStructureId", "feeStructures"),
        ("institutionId", "institutions"),
    )

    def transform(self, doc, refs):
        return {
            "studentId": refs["studentId"],
            "semesterId": refs["semesterId"],
            "feeStructureId": refs["feeStructureId"],
            "amountDue": to_number(doc.get("amountDue")) or 0,
            "amountPaid": to_number(doc.get("amountPaid")) or 0,
            "dueDate": to_date(doc.get("dueDate")) or utcnow(),
            "status": doc.get("status") or "PENDING",
            "institutionId": refs["institutionId"],
        }


class ExamResultsMigrator(BaseMigrator):
    tag = "examResults"
    required_references = STUDENT_REFERENCE + (
        ("semesterId", "semesters"),
        ("subjectId", "subjects"),
    )

    def transform(self, doc, refs):
        return {
            "studentId": refs["studentId"],
            "semesterId": refs["semesterId"],
            "subjectId": refs["subjectId"],
            "marks": to_number(doc.get("marks")) or 0,
            "maxMarks": to_number(doc.get("maxMarks")) or 100,
        }


class GrievancesMigrator(BaseMigrator):
    """
    Grievance: reclamos del alumno.

    escalationHistory (JSONB[]) no se escribe; la columna queda con su
    default (arreglo vacío).
    """

    tag = "grievances"
    required_references = STUDENT_REFERENCE
    optional_references = (
        ("internshipId", "internships"),
        ("industryId", "industries"),
        ("facultySupervisorId", "users"),
        ("assignedToId", "users"),
    )
    has_updated_at = True

    def transform(self, doc, refs):
        return {
            "studentId": refs["studentId"],
            "title": to_text(first_present(doc, "title", "subject")) or "Grievance",
            "category": doc.get("category") or "OTHER",
            "description": to_text(doc.get("description")) or "",
            "severity": first_present(doc, "severity", "priority") or "MEDIUM",
            "status": doc.get("status") or "PENDING",
            "internshipId": refs["internshipId"],
            "industryId": refs["industryId"],
            "facultySupervisorId": refs["facultySupervisorId"],
            "assignedToId": refs["assignedToId"],
            "actionRequested": doc.get("actionRequested"),
            "preferredContactMethod": doc.get("preferredContactMethod"),
            "submittedDate": to_date(doc.get("submittedDate")) or utcnow(),
            "addressedDate": to_date(doc.get("addressedDate")),
            "resolvedDate": to_date(first_present(doc, "resolvedDate", "resolvedAt")),
            "resolution": doc.get("resolution"),
            "comments": first_present(doc, "comments", "remarks"),
            "attachments": to_list(doc.get("attachments")),
            "escalatedById": to_text(doc.get("escalatedById")),
            "escalatedAt": to_date(doc.get("escalatedAt")),
            "escalationCount": to_int(doc.get("escalationCount")) or 0,
            "previousAssignees": to_list(doc.get("previousAssignees")),
        }


class PlacementsMigrator(BaseMigrator):
    tag = "placements"
    required_references = STUDENT_REFERENCE
    optional_references = (("institutionId", "institutions"),)

    def transform(self, doc, refs):
        return {
            "studentId": refs["studentId"],
            "companyName": to_text(doc.get("companyName")) or "Unknown Company",
            "jobRole": to_text(doc.get("jobRole")) or "Unknown Role",
            "salary": to_number(doc.get("salary")),
            "offerDate": to_date(doc.get("offerDate")) or utcnow(),
            "status": doc.get("status") or "OFFERED",
            "institutionId": refs["institutionId"],
        }


class InternshipPreferencesMigrator(BaseMigrator):
    """Una preferencia por alumno (studentId UNIQUE)."""

    tag = "internshipPreferences"
    required_references = STUDENT_REFERENCE
    anticipated_violations = (UniqueViolation, ForeignKeyViolation)
    has_updated_at = True

    def duplicate_key(self, doc, refs):
        return refs["studentId"]

    def transform(self, doc, refs):
        return {
            "studentId": refs["studentId"],
            "preferredFields": to_list(doc.get("preferredFields")),
            "preferredLocations": to_list(doc.get("preferredLocations")),
            "preferredDurations": to_list(doc.get("preferredDurations")),
            "minimumStipend": to_number(doc.get("minimumStipend")),
            "isRemotePreferred": to_bool(doc.get("isRemotePreferred")),
            "additionalRequirements": doc.get("additionalRequirements"),
        }


class ComplianceRecordsMigrator(BaseMigrator):
    tag = "complianceRecords"
    required_references = STUDENT_REFERENCE
    has_updated_at = True

    def transform(self, doc, refs):
        return {
            "studentId": refs["studentId"],
            "complianceType": doc.get("complianceType") or "FACULTY_VISIT",
            "status": doc.get("status") or "PENDING_REVIEW",
            "requiredVisits": to_int(doc.get("requiredVisits")),
            "completedVisits": to_int(doc.get("completedVisits")),
            "lastVisitDate": to_date(doc.get("lastVisitDate")),
            "nextVisitDue": to_date(doc.get("nextVisitDue")),
            "requiredFeedbacks": to_int(doc.get("requiredFeedbacks")),
            "completedFeedbacks": to_int(doc.get("completedFeedbacks")),
            "lastFeedbackDate": to_date(doc.get("lastFeedbackDate")),
            "nextFeedbackDue": to_date(doc.get("nextFeedbackDue")),
            "complianceScore": to_number(doc.get("complianceScore")),
            "complianceGrade": doc.get("complianceGrade") or None,
            "remarks": doc.get("remarks"),
            "actionRequired": doc.get("actionRequired"),
            "reviewedBy": to_text(doc.get("reviewedBy")),
            "reviewedAt": to_date(doc.get("reviewedAt")),
            "nextReviewDate": to_date(doc.get("nextReviewDate")),
            "academicYear": to_text(doc.get("academicYear")) or config.DEFAULT_ACADEMIC_YEAR,
            "semester": to_text(doc.get("semester")),
        }
