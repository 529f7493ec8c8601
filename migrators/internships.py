"""
Migradores del ciclo de prácticas.

Cadena de dependencias:
    industries → internships → internshipApplications →
        monthlyFeedbacks, monthlyReports, facultyVisitLogs, completionFeedbacks

Las postulaciones ya no tienen hasJoined, reviewedBy ni internshipStatus:
el estado legado se traduce a internshipPhase al migrar
(ver derive_internship_phase).
"""

from datetime import datetime

from psycopg2.errors import ForeignKeyViolation, UniqueViolation

import config
from .base import BaseMigrator
from .coerce import first_present, to_bool, to_date, to_int, to_list, to_number, to_text, utcnow

APPLICATION_REFERENCE = (("applicationId", "internshipApplications"),)


# =============================================================================
# EMPRESAS Y OFERTAS
# =============================================================================

class IndustriesMigrator(BaseMigrator):
    """
    industries: perfil de la empresa asociado a un User con rol INDUSTRY.

    userId es UNIQUE: el primer perfil de cada usuario gana. Los campos
    NOT NULL que faltan en el origen reciben placeholders reconocibles.
    """

    tag = "industries"
    required_references = (("userId", "users"),)
    optional_references = (
        ("institutionId", "institutions"),
        ("referredById", "users"),
    )
    anticipated_violations = (UniqueViolation, ForeignKeyViolation)
    has_updated_at = True

    def duplicate_key(self, doc, refs):
        return refs["userId"]

    def transform(self, doc, refs):
        return {
            "userId": refs["userId"],
            "companyName": to_text(doc.get("companyName")) or "Unknown Company",
            "companyDescription": doc.get("companyDescription"),
            "industryType": doc.get("industryType") or "OTHER",
            "establishedYear": to_int(doc.get("establishedYear")),
            "companySize": doc.get("companySize") or "SMALL",
            "employeeCount": to_int(doc.get("employeeCount")),
            "contactPersonName": to_text(doc.get("contactPersonName")) or "Contact",
            "contactPersonTitle": to_text(doc.get("contactPersonTitle")) or "Manager",
            "primaryEmail": to_text(doc.get("primaryEmail")) or "contact@company.com",
            "alternateEmail": doc.get("alternateEmail"),
            "primaryPhone": to_text(doc.get("primaryPhone")) or "0000000000",
            "alternatePhone": to_text(doc.get("alternatePhone")),
            "website": doc.get("website"),
            "address": to_text(doc.get("address")) or "Address",
            "city": to_text(doc.get("city")) or "City",
            "state": to_text(doc.get("state")) or "State",
            "pinCode": to_text(doc.get("pinCode")) or "000000",
            "country": to_text(doc.get("country")) or "India",
            "registrationNumber": to_text(doc.get("registrationNumber")) or "REG000",
            "panNumber": to_text(doc.get("panNumber")) or "PAN00000",
            "gstNumber": to_text(doc.get("gstNumber")),
            "isVerified": to_bool(doc.get("isVerified")),
            "verifiedAt": to_date(doc.get("verifiedAt")),
            "verifiedBy": to_text(doc.get("verifiedBy")),
            "isApproved": to_bool(doc.get("isApproved")),
            "approvedAt": to_date(doc.get("approvedAt")),
            "approvedBy": to_text(doc.get("approvedBy")),
            "referredById": refs["referredById"],
            "referralDate": to_date(doc.get("referralDate")),
            "referralNotes": doc.get("referralNotes"),
            "institutionId": refs["institutionId"],
        }


class InternshipsMigrator(BaseMigrator):
    tag = "internships"
    required_references = (("industryId", "industries"),)
    optional_references = (("institutionId", "institutions"),)
    has_updated_at = True

    def transform(self, doc, refs):
        return {
            "title": to_text(doc.get("title")) or "Untitled Internship",
            "description": to_text(doc.get("description")) or "",
            "detailedDescription": doc.get("detailedDescription"),
            "fieldOfWork": to_text(first_present(doc, "fieldOfWork", "field")) or "General",
            "industryId": refs["industryId"],
            "institutionId": refs["institutionId"],
            "numberOfPositions": to_int(first_present(doc, "positions", "numberOfPositions")) or 1,
            "duration": to_text(doc.get("duration")) or "3 months",
            "startDate": to_date(doc.get("startDate")),
            "endDate": to_date(doc.get("endDate")),
            "applicationDeadline": to_date(doc.get("applicationDeadline")) or utcnow(),
            "workLocation": to_text(first_present(doc, "location", "workLocation")) or "",
            "isRemoteAllowed": to_bool(doc.get("isRemoteAllowed")),
            "eligibleBranches": to_list(doc.get("eligibleBranches")),
            "minimumPercentage": to_number(doc.get("minimumPercentage")),
            "eligibleSemesters": to_list(doc.get("eligibleSemesters")),
            "isStipendProvided": to_bool(doc.get("isStipendProvided")),
            "stipendAmount": to_number(first_present(doc, "stipend", "stipendAmount")),
            "stipendDetails": doc.get("stipendDetails"),
            "requiredSkills": to_list(first_present(doc, "skillRequirements", "requiredSkills")),
            "preferredSkills": to_list(doc.get("preferredSkills")),
            "totalFacultyVisits": to_int(doc.get("totalFacultyVisits")) or 4,
            "status": doc.get("status") or "ACTIVE",
            "isActive": to_bool(doc.get("isActive"), True),
        }


# =============================================================================
# POSTULACIONES
# =============================================================================

ACTIVE_STATUSES = ("ONGOING", "IN_PROGRESS")
TERMINATED_STATUSES = ("CANCELLED", "TERMINATED")


def derive_internship_phase(doc: dict, now: datetime = None) -> str:
    """
    Fase de la práctica a partir de los campos legados de la postulación.

    Reglas (en orden):
    1. internshipStatus presente:
       ONGOING/IN_PROGRESS → ACTIVE, COMPLETED → COMPLETED,
       CANCELLED/TERMINATED → TERMINATED; si no, por fechas: inicio pasado
       sin fin → ACTIVE, fin pasado → COMPLETED
    2. Sin internshipStatus y status JOINED → ACTIVE
    3. joiningDate presente y aún NOT_STARTED → ACTIVE
    4. completionDate presente → COMPLETED (siempre gana)

    Args:
        doc: Documento de internship_applications
        now: Fecha de referencia (por defecto, ahora en UTC)

    Returns:
        str: NOT_STARTED | ACTIVE | COMPLETED | TERMINATED
    """
    now = now or utcnow()
    phase = "NOT_STARTED"
    legacy_status = doc.get("internshipStatus")

    if legacy_status is not None:
        start_date = to_date(doc.get("startDate"))
        end_date = to_date(doc.get("endDate"))
        if legacy_status in ACTIVE_STATUSES:
            phase = "ACTIVE"
        elif legacy_status == "COMPLETED":
            phase = "COMPLETED"
        elif legacy_status in TERMINATED_STATUSES:
            phase = "TERMINATED"
        elif start_date is not None and start_date <= now and end_date is None:
            phase = "ACTIVE"
        elif end_date is not None and end_date <= now:
            phase = "COMPLETED"

    if phase == "NOT_STARTED" and doc.get("status") == "JOINED" and not legacy_status:
        phase = "ACTIVE"

    if phase == "NOT_STARTED" and to_date(doc.get("joiningDate")) is not None:
        phase = "ACTIVE"

    if to_date(doc.get("completionDate")) is not None:
        phase = "COMPLETED"

    return phase


class InternshipApplicationsMigrator(BaseMigrator):
    tag = "internshipApplications"
    required_references = (("studentId", "students"),)
    optional_references = (
        ("internshipId", "internships"),
        ("mentorId", "users"),
    )
    has_updated_at = True

    def transform(self, doc, refs):
        return {
            "studentId": refs["studentId"],
            "internshipId": refs["internshipId"],
            "applicationDate": to_date(doc.get("applicationDate")) or utcnow(),
            "coverLetter": doc.get("coverLetter"),
            "resume": to_text(first_present(doc, "resumeUrl", "resume")),
            "additionalInfo": doc.get("additionalInfo"),
            "status": doc.get("status") or "APPLIED",
            "appliedDate": to_date(doc.get("appliedDate")) or utcnow(),
            "reviewedDate": to_date(doc.get("reviewedDate")),
            "isSelected": to_bool(doc.get("isSelected")),
            "selectionDate": to_date(doc.get("selectionDate")),
            "rejectionReason": doc.get("rejectionReason"),
            "joiningDate": to_date(doc.get("joiningDate")),
            "completionDate": to_date(doc.get("completionDate")),
            "mentorId": refs["mentorId"],
            "mentorAssignedAt": to_date(doc.get("mentorAssignedAt")),
            "mentorAssignedBy": to_text(doc.get("mentorAssignedBy")),
            "isSelfIdentified": to_bool(doc.get("isSelfIdentified")),
            "companyName": doc.get("companyName"),
            "companyAddress": doc.get("companyAddress"),
            "companyContact": to_text(doc.get("companyContact")),
            "companyEmail": doc.get("companyEmail"),
            "hrName": doc.get("hrName"),
            "hrDesignation": doc.get("hrDesignation"),
            "hrContact": to_text(doc.get("hrContact")),
            "hrEmail": doc.get("hrEmail"),
            "joiningLetterUrl": to_text(
                first_present(doc, "offerLetterUrl", "offerLetter", "joiningLetterUrl")
            ),
            "joiningLetterUploadedAt": to_date(doc.get("joiningLetterUploadedAt")),
            "facultyMentorName": doc.get("facultyMentorName"),
            "facultyMentorContact": to_text(doc.get("facultyMentorContact")),
            "facultyMentorEmail": doc.get("facultyMentorEmail"),
            "facultyMentorDesignation": doc.get("facultyMentorDesignation"),
            "internshipDuration": to_text(doc.get("internshipDuration")),
            "stipend": to_text(doc.get("stipend")),
            "startDate": to_date(doc.get("startDate")),
            "endDate": to_date(doc.get("endDate")),
            "jobProfile": doc.get("jobProfile"),
            "reviewedAt": to_date(doc.get("reviewedAt")),
            "reviewRemarks": doc.get("reviewRemarks"),
            "notes": to_text(first_present(doc, "noc", "remarks", "notes")),
            "proposedFirstVisit": to_date(doc.get("proposedFirstVisit")),
            "secondVisit": to_date(doc.get("secondVisit")),
            "internshipPhase": derive_internship_phase(doc),
            "isActive": to_bool(doc.get("isActive"), True),
        }


class MentorAssignmentsMigrator(BaseMigrator):
    tag = "mentorAssignments"
    required_references = (
        ("studentId", "students"),
        ("mentorId", "users"),
        ("assignedBy", "users"),
    )
    has_updated_at = True

    def transform(self, doc, refs):
        return {
            "studentId": refs["studentId"],
            "mentorId": refs["mentorId"],
            "assignedBy": refs["assignedBy"],
            "assignmentDate": to_date(doc.get("assignmentDate")) or utcnow(),
            "assignmentReason": doc.get("assignmentReason"),
            "isActive": to_bool(doc.get("isActive"), True),
            "deactivatedAt": to_date(doc.get("deactivatedAt")),
            "deactivatedBy": to_text(doc.get("deactivatedBy")),
            "deactivationReason": doc.get("deactivationReason"),
            "academicYear": to_text(doc.get("academicYear")) or config.DEFAULT_ACADEMIC_YEAR,
            "semester": to_text(doc.get("semester")),
            "specialInstructions": doc.get("specialInstructions"),
        }


# =============================================================================
# SEGUIMIENTO DE LA PRÁCTICA
# =============================================================================

class MonthlyFeedbacksMigrator(BaseMigrator):
    tag = "monthlyFeedbacks"
    required_references = APPLICATION_REFERENCE
    optional_references = (
        ("studentId", "students"),
        ("industryId", "industries"),
        ("internshipId", "internships"),
    )
    has_updated_at = True

    def transform(self, doc, refs):
        return {
            "applicationId": refs["applicationId"],
            "studentId": refs["studentId"],
            "industryId": refs["industryId"],
            "internshipId": refs["internshipId"],
            "imageUrl": doc.get("imageUrl"),
            "feedbackMonth": to_date(doc.get("feedbackMonth")) or utcnow(),
            "attendanceRating": to_int(doc.get("attendanceRating")),
            "performanceRating": to_int(doc.get("performanceRating")),
            "punctualityRating": to_int(doc.get("punctualityRating")),
            "technicalSkillsRating": to_int(doc.get("technicalSkillsRating")),
            "strengths": doc.get("strengths"),
            "areasForImprovement": doc.get("areasForImprovement"),
            "tasksAssigned": to_text(doc.get("tasksAssigned")),
            "tasksCompleted": to_text(doc.get("tasksCompleted")),
            "overallComments": doc.get("overallComments"),
            "overallRating": to_int(doc.get("overallRating")),
            "reportUrl": doc.get("reportUrl"),
            "workDescription": doc.get("workDescription"),
            "skillsLearned": to_text(doc.get("skillsLearned")),
            "challenges": doc.get("challenges"),
            "supervisorFeedback": doc.get("supervisorFeedback"),
            "submittedAt": to_date(doc.get("submittedAt")) or utcnow(),
            "submittedBy": to_text(doc.get("submittedBy")) or "",
        }


class MonthlyReportsMigrator(BaseMigrator):
    """Un informe por (postulación, mes, año)."""

    tag = "monthlyReports"
    required_references = APPLICATION_REFERENCE + (("studentId", "students"),)
    anticipated_violations = (UniqueViolation, ForeignKeyViolation)
    has_updated_at = True

    def _period(self, doc):
        return (
            to_int(doc.get("reportMonth")) or 1,
            to_int(doc.get("reportYear")) or datetime.now().year,
        )

    def duplicate_key(self, doc, refs):
        return (refs["applicationId"],) + self._period(doc)

    def transform(self, doc, refs):
        report_month, report_year = self._period(doc)
        return {
            "applicationId": refs["applicationId"],
            "studentId": refs["studentId"],
            "reportMonth": report_month,
            "reportYear": report_year,
            "monthName": doc.get("monthName"),
            "reportFileUrl": doc.get("reportFileUrl"),
            "status": doc.get("status") or "DRAFT",
            "submittedAt": to_date(doc.get("submittedAt")),
            "reviewedBy": to_text(doc.get("reviewedBy")),
            "reviewedAt": to_date(doc.get("reviewedAt")),
            "reviewComments": first_present(doc, "reviewerComments", "reviewComments"),
            "isApproved": to_bool(doc.get("isApproved")),
            "approvedBy": to_text(doc.get("approvedBy")),
            "approvedAt": to_date(doc.get("approvedAt")),
        }


VISIT_TEXT_FIELDS = (
    "visitLocation",
    "visitDuration",
    "studentPerformance",
    "workEnvironment",
    "industrySupport",
    "skillsDevelopment",
    "attendanceStatus",
    "workQuality",
    "organisationFeedback",
    "projectTopics",
    "titleOfProjectWork",
    "assistanceRequiredFromInstitute",
    "responseFromOrganisation",
    "remarksOfOrganisationSupervisor",
    "significantChangeInPlan",
    "observationsAboutStudent",
    "feedbackSharedWithStudent",
    "issuesIdentified",
    "recommendations",
    "actionRequired",
    "filesUrl",
    "meetingMinutes",
    "reportSubmittedTo",
)

VISIT_RATING_FIELDS = (
    "studentProgressRating",
    "industryCooperationRating",
    "workEnvironmentRating",
    "mentoringSupportRating",
    "overallSatisfactionRating",
)


class FacultyVisitLogsMigrator(BaseMigrator):
    tag = "facultyVisitLogs"
    required_references = APPLICATION_REFERENCE
    optional_references = (
        ("internshipId", "internships"),
        ("facultyId", "users"),
    )
    has_updated_at = True

    def transform(self, doc, refs):
        row = {
            "applicationId": refs["applicationId"],
            "internshipId": refs["internshipId"],
            "facultyId": refs["facultyId"],
            "visitNumber": to_int(doc.get("visitNumber")),
            "visitDate": to_date(doc.get("visitDate")),
            "visitType": doc.get("visitType") or "PHYSICAL",
            "status": doc.get("status") or "SCHEDULED",
            "visitPhotos": to_list(doc.get("visitPhotos")),
            "attendeesList": to_list(doc.get("attendeesList")),
            "followUpRequired": to_bool(doc.get("followUpRequired")),
            "nextVisitDate": to_date(doc.get("nextVisitDate")),
        }
        for field in VISIT_TEXT_FIELDS:
            row[field] = to_text(doc.get(field))
        for field in VISIT_RATING_FIELDS:
            row[field] = to_int(doc.get(field))
        return row


class CompletionFeedbacksMigrator(BaseMigrator):
    """Un cierre por postulación (applicationId UNIQUE)."""

    tag = "completionFeedbacks"
    required_references = APPLICATION_REFERENCE
    optional_references = (("industryId", "industries"),)
    anticipated_violations = (UniqueViolation, ForeignKeyViolation)
    has_updated_at = True

    def duplicate_key(self, doc, refs):
        return refs["applicationId"]

    def transform(self, doc, refs):
        return {
            "applicationId": refs["applicationId"],
            "industryId": refs["industryId"],
            "studentFeedback": doc.get("studentFeedback"),
            "studentRating": to_int(doc.get("studentRating")),
            "skillsLearned": to_text(doc.get("skillsLearned")),
            "careerImpact": doc.get("careerImpact"),
            "wouldRecommend": to_bool(doc.get("wouldRecommend")),
            "studentSubmittedAt": to_date(doc.get("studentSubmittedAt")),
            "industryFeedback": doc.get("industryFeedback"),
            "industryRating": to_int(doc.get("industryRating")),
            "finalPerformance": doc.get("finalPerformance"),
            "recommendForHire": to_bool(doc.get("recommendForHire")),
            "industrySubmittedAt": to_date(doc.get("industrySubmittedAt")),
            "isCompleted": to_bool(doc.get("isCompleted")),
            "completionCertificate": to_text(doc.get("completionCertificate")),
        }


class IndustryRequestsMigrator(BaseMigrator):
    """
    industry_requests: solicitudes de una institución a empresas.

    statusHistory (JSONB[]) no se escribe. referralApplicationId queda en
    None: no existe entidad migrada a la que apunte.
    """

    tag = "industryRequests"
    required_references = (
        ("institutionId", "institutions"),
        ("requestedBy", "users"),
    )
    optional_references = (
        ("industryId", "industries"),
        ("referredById", "users"),
    )
    has_updated_at = True

    def transform(self, doc, refs):
        return {
            "requestType": doc.get("requestType") or "OTHER",
            "priority": doc.get("priority") or "MEDIUM",
            "title": to_text(doc.get("title")) or "Untitled Request",
            "description": to_text(doc.get("description")) or "",
            "requirements": to_text(doc.get("requirements")),
            "expectedOutcome": doc.get("expectedOutcome"),
            "industryId": refs["industryId"],
            "targetIndustryType": doc.get("targetIndustryType") or None,
            "preferredLocation": doc.get("preferredLocation"),
            "preferredCompanySize": doc.get("preferredCompanySize") or None,
            "referredById": refs["referredById"],
            "referredByType": doc.get("referredByType") or None,
            "referralDate": to_date(doc.get("referralDate")),
            "referralNotes": doc.get("referralNotes"),
            "referralApplicationId": None,
            "requestedBy": refs["requestedBy"],
            "institutionId": refs["institutionId"],
            "requestDeadline": to_date(doc.get("requestDeadline")),
            "expectedResponseBy": to_date(doc.get("expectedResponseBy")),
            "status": doc.get("status") or "SENT",
            "responseMessage": doc.get("responseMessage"),
            "respondedAt": to_date(doc.get("respondedAt")),
            "responseAttachments": to_list(doc.get("responseAttachments")),
            "assignedTo": to_text(doc.get("assignedTo")),
            "internalNotes": doc.get("internalNotes"),
            "followUpRequired": to_bool(doc.get("followUpRequired")),
        }
