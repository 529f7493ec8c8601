"""
Clasificador de documentos del respaldo por entidad.

El archive de mongodump mezcla documentos de todas las colecciones y el
escáner no interpreta los marcadores de namespace, así que la colección se
infiere por los campos presentes en cada documento.

REGLAS:
- CLASSIFICATION_RULES es una lista ordenada de (predicado, tag)
- Gana la PRIMERA regla que coincide: el orden es parte del contrato.
  Un documento que cumple dos reglas queda en la que aparece antes.
- Una regla puede mapear a UNIDENTIFIED (usuarios internos de MongoDB)
- Si ninguna regla coincide, el documento va a UNIDENTIFIED

Convenciones de los predicados (semántica de los campos en el origen):
- "presente": la key existe en el documento, aunque su valor sea null
- "verdadero": valor no vacío; listas y objetos cuentan como verdaderos
  aunque estén vacíos, 0 / '' / false / null no.

Es una heurística: sin un formato documentado del origen no puede ser exacta.
"""

import math
from collections import Counter

import config
from archive import is_archive_metadata
from buckets import UNIDENTIFIED, CollectionBuckets


def _present(doc, *fields):
    return all(field in doc for field in fields)


def _any_present(doc, *fields):
    return any(field in doc for field in fields)


def _truthy(value) -> bool:
    if value is None or value is False:
        return False
    if isinstance(value, str):
        return value != ""
    if isinstance(value, (int, float)):
        return value != 0 and not (isinstance(value, float) and math.isnan(value))
    return True


def _all_falsy(doc, *fields):
    return not any(_truthy(doc.get(field)) for field in fields)


# =============================================================================
# PREDICADOS (en orden de prioridad)
# =============================================================================


def _is_blacklisted_token(doc):
    return _present(doc, "token", "expiresAt", "isFullInvalidation")


def _is_generated_report(doc):
    return _present(doc, "reportType", "fileUrl", "generatedBy", "configuration")


def _is_mongo_internal_user(doc):
    # admin.system.users: se descartan explícitamente
    return _present(doc, "credentials", "db", "roles")


def _is_user(doc):
    return _present(doc, "password", "role")


def _is_student(doc):
    # Antes que batches: un estudiante también tiene name + isActive
    return _truthy(doc.get("userId")) and (
        _any_present(
            doc,
            "rollNumber",
            "admissionNumber",
            "parentName",
            "parentContact",
            "currentSemester",
            "tenthper",
            "twelthper",
            "diplomaPercentage",
            "totalBacklogs",
            "clearanceStatus",
        )
        or _present(doc, "branchId", "name")
    )


def _is_institution(doc):
    return _any_present(doc, "code", "contactEmail") and _any_present(
        doc, "affiliatedTo", "autonomousStatus", "totalStudentSeats"
    )


def _is_branch(doc):
    return _present(doc, "shortName", "duration", "code") and not _truthy(
        doc.get("registrationNumber")
    )


def _is_department(doc):
    return _present(doc, "hodId", "shortName")


def _is_batch(doc):
    return (
        _truthy(doc.get("name"))
        and _present(doc, "isActive")
        and _all_falsy(
            doc,
            "title",
            "description",
            "password",
            "shortName",
            "userId",
            "rollNumber",
            "parentName",
            "currentSemester",
            "email",
            "role",
            "companyName",
            "contactEmail",
        )
    )


def _is_semester(doc):
    return _present(doc, "number", "isActive") and _all_falsy(doc, "name", "subjectName")


def _is_subject(doc):
    return _present(doc, "subjectName", "subjectCode", "syllabusYear")


def _is_scholarship(doc):
    return _present(doc, "type", "amount", "status") and not _truthy(doc.get("companyName"))


def _is_fee_structure(doc):
    return _present(doc, "admissionType", "scholarshipScheme", "semesterNumber")


def _is_industry(doc):
    return _present(doc, "companyName", "registrationNumber", "panNumber")


def _is_internship(doc):
    return _present(doc, "title", "industryId", "numberOfPositions")


def _is_internship_application(doc):
    return _present(doc, "studentId", "status") and _any_present(
        doc, "isSelfIdentified", "applicationDate"
    )


def _is_mentor_assignment(doc):
    return _present(doc, "studentId", "mentorId", "assignedBy")


def _is_document(doc):
    return _present(doc, "studentId", "type", "fileName", "fileUrl")


def _is_fee(doc):
    return _present(doc, "studentId", "semesterId", "amountDue")


def _is_exam_result(doc):
    return _present(doc, "studentId", "semesterId", "subjectId", "marks")


def _is_notification(doc):
    return _present(doc, "userId", "title", "body", "read")


def _is_monthly_feedback(doc):
    return _present(doc, "applicationId", "feedbackMonth")


def _is_monthly_report(doc):
    return _present(doc, "applicationId", "reportMonth", "reportYear")


def _is_faculty_visit_log(doc):
    return _present(doc, "applicationId", "visitNumber")


def _is_completion_feedback(doc):
    return _present(doc, "applicationId") and _any_present(
        doc, "studentFeedback", "industryFeedback"
    )


def _is_grievance(doc):
    return _present(doc, "studentId", "category", "description", "severity")


def _is_audit_log(doc):
    return _present(doc, "action", "entityType", "userRole")


def _is_calendar(doc):
    return _present(doc, "title", "startDate") and _all_falsy(doc, "numberOfPositions", "body")


def _is_notice(doc):
    return _present(doc, "title", "message") and not _truthy(doc.get("body"))


def _is_placement(doc):
    return _present(doc, "studentId", "companyName", "jobRole")


def _is_internship_preference(doc):
    return _present(doc, "studentId", "preferredFields")


def _is_compliance_record(doc):
    return _present(doc, "studentId", "complianceType")


def _is_technical_query(doc):
    return _present(doc, "userId", "title", "status", "priority") and not _truthy(
        doc.get("body")
    )


def _is_industry_request(doc):
    return _present(doc, "requestType", "priority", "title", "industryId")


CLASSIFICATION_RULES = [
    (_is_blacklisted_token, "blacklistedTokens"),
    (_is_generated_report, "generatedReports"),
    (_is_mongo_internal_user, UNIDENTIFIED),
    (_is_user, "users"),
    (_is_student, "students"),
    (_is_institution, "institutions"),
    (_is_branch, "branches"),
    (_is_department, "departments"),
    (_is_batch, "batches"),
    (_is_semester, "semesters"),
    (_is_subject, "subjects"),
    (_is_scholarship, "scholarships"),
    (_is_fee_structure, "feeStructures"),
    (_is_industry, "industries"),
    (_is_internship, "internships"),
    (_is_internship_application, "internshipApplications"),
    (_is_mentor_assignment, "mentorAssignments"),
    (_is_document, "documents"),
    (_is_fee, "fees"),
    (_is_exam_result, "examResults"),
    (_is_notification, "notifications"),
    (_is_monthly_feedback, "monthlyFeedbacks"),
    (_is_monthly_report, "monthlyReports"),
    (_is_faculty_visit_log, "facultyVisitLogs"),
    (_is_completion_feedback, "completionFeedbacks"),
    (_is_grievance, "grievances"),
    (_is_audit_log, "auditLogs"),
    (_is_calendar, "calendars"),
    (_is_notice, "notices"),
    (_is_placement, "placements"),
    (_is_internship_preference, "internshipPreferences"),
    (_is_compliance_record, "complianceRecords"),
    (_is_technical_query, "technicalQueries"),
    (_is_industry_request, "industryRequests"),
]


def classify(document: dict, rules=None) -> str:
    """
    Retorna el tag de la primera regla que coincide, o UNIDENTIFIED.

    Args:
        document: Documento decodificado
        rules: Lista de (predicado, tag); por defecto CLASSIFICATION_RULES

    Ejemplo:
        >>> classify({'email': 'a@b.com', 'password': 'x', 'role': 'STUDENT'})
        'users'
        >>> classify({'_id': 'z', 'randomField': 1})
        '_unidentified'
    """
    for predicate, tag in rules if rules is not None else CLASSIFICATION_RULES:
        if predicate(document):
            return tag
    return UNIDENTIFIED


def has_identifier(document: dict) -> bool:
    source_id = document.get("_id")
    return source_id is not None and source_id != ""


def bucket_documents(documents, buckets=None, tag=None) -> CollectionBuckets:
    """
    Clasifica documentos y los acumula en buckets.

    - Se saltan los documentos de metadata del archive (db + collection)
    - Se descartan los documentos sin _id (no son registros de colección)
    - Si se indica `tag` (colección conocida por nombre de archivo), no se clasifica

    Args:
        documents: Iterable de documentos decodificados
        buckets: CollectionBuckets existente (se crea uno si es None)
        tag: Tag fijo para todos los documentos

    Returns:
        CollectionBuckets: Buckets con los documentos agregados
    """
    if buckets is None:
        buckets = CollectionBuckets()

    for document in documents:
        if is_archive_metadata(document) or not has_identifier(document):
            continue
        buckets.add(tag or classify(document), document)

    return buckets


def _signature(document: dict) -> tuple:
    return tuple(sorted(key for key in document if key not in ("_id", "__v")))


def summarize_unidentified(documents, limit: int = config.UNIDENTIFIED_PATTERN_LIMIT) -> list:
    """
    Agrupa documentos no identificados por firma de campos.

    La firma es la lista ordenada de keys sin _id ni __v.

    Returns:
        list: Hasta `limit` tuplas (firma, cantidad, documento_ejemplo),
              de mayor a menor cantidad
    """
    counts = Counter()
    samples = {}
    for document in documents:
        signature = _signature(document)
        counts[signature] += 1
        samples.setdefault(signature, document)

    return [
        (signature, count, samples[signature])
        for signature, count in counts.most_common(limit)
    ]


def format_unidentified_patterns(patterns) -> list:
    """Líneas de texto para imprimir el resumen de summarize_unidentified()."""
    lines = []
    for signature, count, sample in patterns:
        text = ",".join(signature)
        if len(text) > config.PATTERN_TEXT_LIMIT:
            text = text[: config.PATTERN_TEXT_LIMIT] + "..."
        lines.append(f"{count}x: {text}")
        if count >= config.PATTERN_SAMPLE_THRESHOLD:
            sample_keys = [key for key in sample if key not in ("_id", "__v")]
            lines.append(f"    Keys de ejemplo: {', '.join(sample_keys)}")
    return lines
