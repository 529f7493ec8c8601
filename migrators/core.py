"""
Migradores de la estructura base: instituciones y usuarios.

Son los primeros en el orden de migración; casi todas las demás entidades
referencian a uno de los dos.

DECISIONES DE DISEÑO:
- Institution.code es UNIQUE: si falta se genera INST<hex> a partir del ObjectId
- User.email es UNIQUE: se compara en minúsculas, el primer usuario gana y
  los duplicados resuelven al usuario retenido (sus notificaciones, alumnos,
  etc. quedan asociados a él)
- password NOT NULL: los usuarios sin hash reciben un placeholder y deberán
  restablecer la contraseña
"""

from psycopg2.errors import ForeignKeyViolation, UniqueViolation

from .base import BaseMigrator
from .coerce import to_bool, to_date, to_int, to_text

DEFAULT_PASSWORD_HASH = "default_password_hash"


class InstitutionsMigrator(BaseMigrator):
    """Institution: datos de contacto y capacidad de cada politécnico."""

    tag = "institutions"
    anticipated_violations = (UniqueViolation, ForeignKeyViolation)
    has_updated_at = True

    def transform(self, doc, refs):
        return {
            "code": to_text(doc.get("code")) or fallback_institution_code(doc),
            "name": doc.get("name"),
            "shortName": doc.get("shortName"),
            "type": doc.get("type") or "POLYTECHNIC",
            "address": doc.get("address"),
            "city": doc.get("city"),
            "state": doc.get("state") or "Punjab",
            "district": doc.get("district"),
            "pinCode": to_text(doc.get("pinCode")),
            "country": doc.get("country") or "India",
            "contactEmail": doc.get("contactEmail"),
            "contactPhone": to_text(doc.get("contactPhone")),
            "alternatePhone": to_text(doc.get("alternatePhone")),
            "website": doc.get("website"),
            "establishedYear": to_int(doc.get("establishedYear")),
            "affiliatedTo": doc.get("affiliatedTo"),
            "recognizedBy": doc.get("recognizedBy"),
            "naacGrade": doc.get("naacGrade"),
            "autonomousStatus": to_bool(doc.get("autonomousStatus")),
            "totalStudentSeats": to_int(doc.get("totalStudentSeats")),
            "totalStaffSeats": to_int(doc.get("totalStaffSeats")),
            "isActive": to_bool(doc.get("isActive"), True),
        }


def fallback_institution_code(doc) -> str:
    """INST + últimos 8 caracteres del ObjectId (estable entre ejecuciones)."""
    return "INST" + str(doc.get("_id"))[-8:].upper()


class UsersMigrator(BaseMigrator):
    """User: credenciales, rol y datos de contacto."""

    tag = "users"
    optional_references = (("institutionId", "institutions"),)
    anticipated_violations = (UniqueViolation, ForeignKeyViolation)

    def duplicate_key(self, doc, refs):
        email = doc.get("email")
        if isinstance(email, str) and email.strip():
            return email.strip().lower()
        return None

    def transform(self, doc, refs):
        return {
            "email": doc.get("email") or None,
            "password": doc.get("password") or DEFAULT_PASSWORD_HASH,
            "name": doc.get("name") or "Unknown",
            "role": doc.get("role") or None,
            "active": to_bool(doc.get("active"), True),
            "institutionId": refs["institutionId"],
            "designation": doc.get("designation"),
            "phoneNo": to_text(doc.get("phoneNo")),
            "rollNumber": to_text(doc.get("rollNumber")),
            "branchName": doc.get("branchName"),
            "dob": to_text(doc.get("dob")),
            "resetPasswordToken": doc.get("resetPasswordToken"),
            "resetPasswordExpiry": to_date(doc.get("resetPasswordExpiry")),
            "consent": to_bool(doc.get("consent")),
            "consentAt": to_date(doc.get("consentAt")),
            "lastLoginAt": to_date(doc.get("lastLoginAt")),
            "lastLoginIp": doc.get("lastLoginIp"),
            "loginCount": to_int(doc.get("loginCount")) or 0,
            "previousLoginAt": to_date(doc.get("previousLoginAt")),
            "hasChangedDefaultPassword": to_bool(doc.get("hasChangedDefaultPassword")),
            "passwordChangedAt": to_date(doc.get("passwordChangedAt")),
        }
