"""
Migradores de entidades de soporte: notificaciones, auditoría, calendario,
avisos, consultas técnicas, tokens invalidados y reportes generados.
"""

from datetime import timedelta

from psycopg2.errors import ForeignKeyViolation, UniqueViolation
from psycopg2.extras import Json

import config
from .base import BaseMigrator
from .coerce import to_bool, to_date, to_int, to_json, to_list, to_text, utcnow

INSTITUTION_REFERENCE = (("institutionId", "institutions"),)


class NotificationsMigrator(BaseMigrator):
    tag = "notifications"
    required_references = (("userId", "users"),)

    def transform(self, doc, refs):
        return {
            "userId": refs["userId"],
            "title": to_text(doc.get("title")) or "Notification",
            "body": to_text(doc.get("body")) or "",
            "type": to_text(doc.get("type")),
            "data": to_json(doc.get("data")),
            "read": to_bool(doc.get("read")),
        }


class AuditLogsMigrator(BaseMigrator):
    """AuditLog no tiene createdAt: la fecha del evento va en timestamp."""

    tag = "auditLogs"
    optional_references = (("userId", "users"),) + INSTITUTION_REFERENCE
    has_created_at = False

    def transform(self, doc, refs):
        return {
            "userId": refs["userId"],
            "action": doc.get("action") or "USER_LOGIN",
            "userRole": doc.get("userRole") or "STUDENT",
            "userName": doc.get("userName"),
            "entityType": to_text(doc.get("entityType")) or "User",
            "entityId": to_text(doc.get("entityId")),
            "oldValues": to_json(doc.get("oldValues")),
            "newValues": to_json(doc.get("newValues")),
            "changedFields": to_list(doc.get("changedFields")),
            "description": doc.get("description"),
            "category": doc.get("category") or "AUTHENTICATION",
            "severity": doc.get("severity") or "LOW",
            "timestamp": to_date(doc.get("timestamp")) or utcnow(),
            "institutionId": refs["institutionId"],
        }


class CalendarsMigrator(BaseMigrator):
    tag = "calendars"
    optional_references = INSTITUTION_REFERENCE
    has_updated_at = True

    def transform(self, doc, refs):
        return {
            "institutionId": refs["institutionId"],
            "title": to_text(doc.get("title")) or "Calendar Event",
            "startDate": to_date(doc.get("startDate")),
            "endDate": to_date(doc.get("endDate")),
        }


class NoticesMigrator(BaseMigrator):
    tag = "notices"
    optional_references = INSTITUTION_REFERENCE
    has_updated_at = True

    def transform(self, doc, refs):
        return {
            "institutionId": refs["institutionId"],
            "title": to_text(doc.get("title")) or "Notice",
            "message": to_text(doc.get("message")) or "",
        }


class TechnicalQueriesMigrator(BaseMigrator):
    tag = "technicalQueries"
    required_references = (("userId", "users"),)
    optional_references = INSTITUTION_REFERENCE
    has_updated_at = True

    def transform(self, doc, refs):
        return {
            "userId": refs["userId"],
            "title": doc.get("title"),
            "description": doc.get("description"),
            "attachments": to_list(doc.get("attachments")),
            "status": doc.get("status") or "OPEN",
            "priority": doc.get("priority") or "MEDIUM",
            "resolution": doc.get("resolution"),
            "institutionId": refs["institutionId"],
        }


class BlacklistedTokensMigrator(BaseMigrator):
    """token es UNIQUE; userId se conserva como texto (no tiene FK)."""

    tag = "blacklistedTokens"
    anticipated_violations = (UniqueViolation, ForeignKeyViolation)

    def transform(self, doc, refs):
        return {
            "token": to_text(doc.get("token")) or "",
            "userId": to_text(doc.get("userId")),
            "reason": doc.get("reason"),
            "isFullInvalidation": to_bool(doc.get("isFullInvalidation")),
            "expiresAt": to_date(doc.get("expiresAt")) or utcnow(),
        }


class GeneratedReportsMigrator(BaseMigrator):
    tag = "generatedReports"

    def transform(self, doc, refs):
        return {
            "reportType": to_text(doc.get("reportType")) or "custom",
            "reportName": doc.get("reportName"),
            "configuration": to_json(doc.get("configuration")) or Json({}),
            "fileUrl": doc.get("fileUrl"),
            "format": to_text(doc.get("format")) or "pdf",
            "totalRecords": to_int(doc.get("totalRecords")),
            "generatedAt": to_date(doc.get("generatedAt")) or utcnow(),
            "generatedBy": to_text(doc.get("generatedBy")) or "",
            "institutionId": to_text(doc.get("institutionId")),
            "expiresAt": to_date(doc.get("expiresAt"))
            or utcnow() + timedelta(days=config.REPORT_EXPIRY_DAYS),
            "status": to_text(doc.get("status")) or "completed",
            "errorMessage": doc.get("errorMessage"),
        }
