"""
Configuración centralizada para la migración del CMS de prácticas MongoDB → PostgreSQL.

ARQUITECTURA:
Cada entidad del CMS se identifica por un "tag" (institutions, users, students...)
que se usa en tres lugares:
- Buckets en memoria donde el clasificador deposita los documentos
- Mapas del traductor de identificadores (ObjectId → uuid)
- Registro de migradores (migrators/<module>.py → <Tag>Migrator)

FLUJO DE MIGRACIÓN:
1. Leer el respaldo (archivo .gz, directorio de dump o MongoDB en vivo)
2. Clasificar documentos en buckets por tag
3. Ejecutar migradores en MIGRATION_ORDER (orden topológico de depends_on)
4. Imprimir reporte final

USO DE LAS FUNCIONES HELPER:
    # Obtener configuración de una entidad
    cfg = get_collection_config('students')
    table = cfg['table']  # 'Student'

    # Dependencias que deben migrarse antes
    deps = validate_migration_order('monthlyReports')
    # ['internshipApplications', 'students']

    # Resolver nombre de archivo/colección de un dump
    tag_for_collection_name('internship_applications')  # 'internshipApplications'
"""

import os
from dotenv import load_dotenv

# Carga las variables del archivo .env en las variables de entorno del sistema
load_dotenv(override=True)

# --- Configuración de MongoDB (Origen en vivo, opcional) ---
MONGODB_URL = os.getenv("SOURCE_MONGODB_URL") or os.getenv("MONGODB_URL") or ""
MONGO_DATABASE_NAME = os.getenv("MONGO_DATABASE") or "internship"

# --- Configuración de PostgreSQL (Destino) ---
# DATABASE_URL tiene prioridad; si está vacío se usa POSTGRES_CONFIG
DATABASE_URL = os.getenv("TARGET_DATABASE_URL") or os.getenv("DATABASE_URL") or ""
POSTGRES_CONFIG = {
    "dbname": os.getenv("POSTGRES_DB") or "",
    "user": os.getenv("POSTGRES_USER") or "",
    "password": os.getenv("POSTGRES_PASSWORD") or "",
    "host": os.getenv("POSTGRES_HOST") or "localhost",
    "port": os.getenv("POSTGRES_PORT") or "5432",
}

# --- Configuración de Migración ---
BATCH_SIZE = int(os.getenv("MIGRATION_BATCH_SIZE") or 500)  # Registros por commit

# Tablas que nunca se vacían (historial de migraciones del ORM)
PRESERVED_TABLES = ["_prisma_migrations"]

# --- Escáner de archivos BSON ---
MIN_DOCUMENT_SIZE = 5  # int32 de longitud + terminador
MAX_DOCUMENT_SIZE = 16 * 1024 * 1024  # Límite de documento de MongoDB

# --- Reporte ---
ERROR_DETAIL_LIMIT = 10  # Detalles de error guardados por colección
REPORT_ERRORS_PER_COLLECTION = 3  # Detalles mostrados en el reporte final
UNIDENTIFIED_PATTERN_LIMIT = 15
PATTERN_TEXT_LIMIT = 120
PATTERN_SAMPLE_THRESHOLD = 5

# --- Valores por defecto de negocio ---
DEFAULT_ACADEMIC_YEAR = "2024-25"
REPORT_EXPIRY_DAYS = 30

# --- Registro de entidades ---
# Cada tag define:
# - table: Tabla destino en PostgreSQL (nombre exacto, respetando mayúsculas)
# - mongo_collection: Colección en la base MongoDB en vivo
# - aliases: Otros nombres con los que aparece en dumps (.bson/.json)
# - module: Módulo dentro de migrators/ que contiene <Tag>Migrator
# - depends_on: Tags cuyos identificadores se resuelven al migrar (FKs)
# - description: Descripción de negocio

COLLECTIONS = {
    # === ESTRUCTURA BASE ===
    "institutions": {
        "table": "Institution",
        "mongo_collection": "Institution",
        "aliases": ["institutions"],
        "module": "core",
        "depends_on": [],
        "description": "Instituciones (politécnicos) dueñas del resto de los datos",
    },
    "users": {
        "table": "User",
        "mongo_collection": "User",
        "aliases": ["users"],
        "module": "core",
        "depends_on": ["institutions"],
        "description": "Usuarios del sistema (estudiantes, docentes, industria, administración)",
    },
    # === ESTRUCTURA ACADÉMICA ===
    "branches": {
        "table": "branches",
        "mongo_collection": "branches",
        "aliases": ["Branch"],
        "module": "academic",
        "depends_on": ["institutions"],
        "description": "Carreras/ramas de estudio",
    },
    "departments": {
        "table": "departments",
        "mongo_collection": "departments",
        "aliases": ["Department"],
        "module": "academic",
        "depends_on": ["institutions"],
        "description": "Departamentos académicos",
    },
    "batches": {
        "table": "Batch",
        "mongo_collection": "Batch",
        "aliases": ["batches"],
        "module": "academic",
        "depends_on": ["institutions"],
        "description": "Cohortes de ingreso (2023-2026, ...)",
    },
    "semesters": {
        "table": "Semester",
        "mongo_collection": "Semester",
        "aliases": ["semesters"],
        "module": "academic",
        "depends_on": ["institutions"],
        "description": "Semestres por institución",
    },
    "scholarships": {
        "table": "Scholarship",
        "mongo_collection": "Scholarship",
        "aliases": ["scholarships"],
        "module": "academic",
        "depends_on": ["institutions"],
        "description": "Becas",
    },
    "feeStructures": {
        "table": "FeeStructure",
        "mongo_collection": "FeeStructure",
        "aliases": ["feestructures"],
        "module": "academic",
        "depends_on": ["institutions"],
        "description": "Estructuras de aranceles por tipo de admisión y semestre",
    },
    "subjects": {
        "table": "Subject",
        "mongo_collection": "Subject",
        "aliases": ["subjects"],
        "module": "academic",
        "depends_on": ["institutions", "branches"],
        "description": "Materias por plan de estudios",
    },
    # === ESTUDIANTES ===
    "students": {
        "table": "Student",
        "mongo_collection": "Student",
        "aliases": ["students"],
        "module": "students",
        "depends_on": [
            "users",
            "institutions",
            "branches",
            "batches",
            "scholarships",
            "feeStructures",
        ],
        "description": "Perfil académico del estudiante (uno por usuario)",
    },
    # === INDUSTRIA Y PRÁCTICAS ===
    "industries": {
        "table": "industries",
        "mongo_collection": "industries",
        "aliases": ["Industry"],
        "module": "internships",
        "depends_on": ["users", "institutions"],
        "description": "Empresas que ofrecen prácticas (una por usuario)",
    },
    "internships": {
        "table": "internships",
        "mongo_collection": "internships",
        "aliases": ["Internship"],
        "module": "internships",
        "depends_on": ["industries", "institutions"],
        "description": "Ofertas de prácticas",
    },
    "internshipApplications": {
        "table": "internship_applications",
        "mongo_collection": "internship_applications",
        "aliases": ["InternshipApplication"],
        "module": "internships",
        "depends_on": ["students", "internships", "users"],
        "description": "Postulaciones y prácticas autogestionadas",
    },
    "mentorAssignments": {
        "table": "mentor_assignments",
        "mongo_collection": "mentor_assignments",
        "aliases": ["MentorAssignment"],
        "module": "internships",
        "depends_on": ["students", "users"],
        "description": "Asignación de docente mentor a estudiante",
    },
    # === REGISTROS DEL ESTUDIANTE ===
    "documents": {
        "table": "Document",
        "mongo_collection": "Document",
        "aliases": ["documents"],
        "module": "students",
        "depends_on": ["students"],
        "description": "Documentos subidos por el estudiante",
    },
    "fees": {
        "table": "Fee",
        "mongo_collection": "Fee",
        "aliases": ["fees"],
        "module": "students",
        "depends_on": ["students", "semesters", "feeStructures", "institutions"],
        "description": "Aranceles por estudiante y semestre",
    },
    "examResults": {
        "table": "ExamResult",
        "mongo_collection": "ExamResult",
        "aliases": ["examresults"],
        "module": "students",
        "depends_on": ["students", "semesters", "subjects"],
        "description": "Notas por materia",
    },
    "notifications": {
        "table": "Notification",
        "mongo_collection": "Notification",
        "aliases": ["notifications"],
        "module": "support",
        "depends_on": ["users"],
        "description": "Notificaciones enviadas a usuarios",
    },
    # === SEGUIMIENTO DE PRÁCTICAS ===
    "monthlyFeedbacks": {
        "table": "monthly_feedbacks",
        "mongo_collection": "monthly_feedbacks",
        "aliases": ["MonthlyFeedback"],
        "module": "internships",
        "depends_on": ["internshipApplications", "students", "industries", "internships"],
        "description": "Evaluación mensual de la empresa",
    },
    "monthlyReports": {
        "table": "monthly_reports",
        "mongo_collection": "monthly_reports",
        "aliases": ["MonthlyReport"],
        "module": "internships",
        "depends_on": ["internshipApplications", "students"],
        "description": "Informe mensual del estudiante",
    },
    "facultyVisitLogs": {
        "table": "faculty_visit_logs",
        "mongo_collection": "faculty_visit_logs",
        "aliases": ["FacultyVisitLog"],
        "module": "internships",
        "depends_on": ["internshipApplications", "internships", "users"],
        "description": "Visitas del docente a la empresa",
    },
    "completionFeedbacks": {
        "table": "completion_feedbacks",
        "mongo_collection": "completion_feedbacks",
        "aliases": ["CompletionFeedback"],
        "module": "internships",
        "depends_on": ["internshipApplications", "industries"],
        "description": "Evaluación final de la práctica",
    },
    "grievances": {
        "table": "Grievance",
        "mongo_collection": "Grievance",
        "aliases": ["grievances"],
        "module": "students",
        "depends_on": ["students", "internships", "industries", "users"],
        "description": "Reclamos de estudiantes",
    },
    # === SOPORTE Y AUDITORÍA ===
    "auditLogs": {
        "table": "AuditLog",
        "mongo_collection": "AuditLog",
        "aliases": ["auditlogs"],
        "module": "support",
        "depends_on": ["users", "institutions"],
        "description": "Bitácora de auditoría",
    },
    "calendars": {
        "table": "Calendar",
        "mongo_collection": "Calendar",
        "aliases": ["calendars"],
        "module": "support",
        "depends_on": ["institutions"],
        "description": "Eventos del calendario académico",
    },
    "notices": {
        "table": "Notice",
        "mongo_collection": "Notice",
        "aliases": ["notices"],
        "module": "support",
        "depends_on": ["institutions"],
        "description": "Avisos institucionales",
    },
    "placements": {
        "table": "Placement",
        "mongo_collection": "Placement",
        "aliases": ["placements"],
        "module": "students",
        "depends_on": ["students", "institutions"],
        "description": "Inserciones laborales",
    },
    "internshipPreferences": {
        "table": "internship_preferences",
        "mongo_collection": "internship_preferences",
        "aliases": ["InternshipPreference"],
        "module": "students",
        "depends_on": ["students"],
        "description": "Preferencias de práctica del estudiante (una por estudiante)",
    },
    "complianceRecords": {
        "table": "compliance_records",
        "mongo_collection": "compliance_records",
        "aliases": ["ComplianceRecord"],
        "module": "students",
        "depends_on": ["students"],
        "description": "Cumplimiento de visitas y evaluaciones",
    },
    "technicalQueries": {
        "table": "technical_queries",
        "mongo_collection": "technical_queries",
        "aliases": ["TechnicalQuery"],
        "module": "support",
        "depends_on": ["users", "institutions"],
        "description": "Consultas técnicas de usuarios",
    },
    "blacklistedTokens": {
        "table": "BlacklistedToken",
        "mongo_collection": "BlacklistedToken",
        "aliases": ["blacklistedtokens"],
        "module": "support",
        "depends_on": [],
        "description": "Tokens JWT invalidados",
    },
    "generatedReports": {
        "table": "generated_reports",
        "mongo_collection": "generated_reports",
        "aliases": ["GeneratedReport"],
        "module": "support",
        "depends_on": [],
        "description": "Reportes generados por el sistema",
    },
    "industryRequests": {
        "table": "industry_requests",
        "mongo_collection": "industry_requests",
        "aliases": ["IndustryRequest"],
        "module": "internships",
        "depends_on": ["industries", "institutions", "users"],
        "description": "Solicitudes de la institución a empresas",
    },
}


# --- Orden de Migración ---


def resolve_migration_order(collections: dict) -> list:
    """
    Calcula el orden de migración a partir de depends_on (orden topológico).

    El orden es estable: entre los tags listos para migrar se elige siempre
    el primero en orden de declaración, de modo que el resultado coincide
    con el orden del registro cuando este ya respeta las dependencias.

    Args:
        collections: Dict tag → config con key 'depends_on'

    Returns:
        list: Tags en orden de migración

    Raises:
        ValueError: Si una dependencia no está registrada o hay un ciclo

    Ejemplo:
        >>> resolve_migration_order({'b': {'depends_on': ['a']}, 'a': {'depends_on': []}})
        ['a', 'b']
    """
    for tag, cfg in collections.items():
        unknown = [dep for dep in cfg.get("depends_on", []) if dep not in collections]
        if unknown:
            raise ValueError(
                f"'{tag}' depende de colecciones no configuradas: {', '.join(unknown)}"
            )

    order = []
    resolved = set()
    pending = list(collections)

    while pending:
        ready = next(
            (
                tag
                for tag in pending
                if all(dep in resolved for dep in collections[tag].get("depends_on", []))
            ),
            None,
        )
        if ready is None:
            raise ValueError(
                f"Ciclo de dependencias entre: {', '.join(pending)}"
            )
        order.append(ready)
        resolved.add(ready)
        pending.remove(ready)

    return order


MIGRATION_ORDER = resolve_migration_order(COLLECTIONS)


# --- Funciones Helper ---


def get_collection_config(tag: str) -> dict:
    """
    Obtiene la configuración de una entidad por tag.

    Args:
        tag: Tag de la entidad (ej: 'students')

    Returns:
        dict: Configuración con keys table, mongo_collection, aliases,
              module, depends_on, description

    Raises:
        KeyError: Si el tag no está configurado

    Ejemplo:
        >>> get_collection_config('students')['table']
        'Student'
    """
    if tag not in COLLECTIONS:
        available = ", ".join(COLLECTIONS.keys())
        raise KeyError(
            f"Colección '{tag}' no está configurada.\n"
            f"Colecciones disponibles: {available}"
        )
    return COLLECTIONS[tag]


def validate_migration_order(tag: str) -> list:
    """
    Retorna las entidades que deben migrarse antes que `tag`.

    Ejemplo:
        >>> validate_migration_order('monthlyReports')
        ['internshipApplications', 'students']
        >>> validate_migration_order('institutions')
        []
    """
    return get_collection_config(tag).get("depends_on", [])


def get_table_for_collection(tag: str) -> str:
    """Nombre de la tabla PostgreSQL destino de un tag."""
    return get_collection_config(tag)["table"]


def tag_for_collection_name(name: str):
    """
    Resuelve el tag de una colección a partir de su nombre en MongoDB o en un dump.

    Acepta el tag, la colección MongoDB, el nombre de tabla y los alias,
    sin distinguir mayúsculas.

    Returns:
        str|None: Tag registrado o None si el nombre no corresponde a ninguno

    Ejemplo:
        >>> tag_for_collection_name('internship_applications')
        'internshipApplications'
        >>> tag_for_collection_name('FeeStructure')
        'feeStructures'
    """
    wanted = name.lower()
    for tag, cfg in COLLECTIONS.items():
        names = [tag, cfg["mongo_collection"], cfg["table"]] + cfg.get("aliases", [])
        if wanted in (candidate.lower() for candidate in names):
            return tag
    return None
