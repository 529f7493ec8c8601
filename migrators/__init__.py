"""
Migradores para transformar entidades del CMS (MongoDB) a tablas PostgreSQL.

Cada migrador implementa la interfaz BaseMigrator y se carga dinámicamente
en runtime según el tag de la colección.

Estructura:
    base.py: Clase abstracta BaseMigrator
    coerce.py: Conversión de valores BSON/Extended JSON a tipos de columna
    core.py: institutions, users
    academic.py: branches, departments, batches, semesters, scholarships,
                 feeStructures, subjects
    students.py: students y sus registros (documents, fees, examResults,
                 grievances, placements, internshipPreferences, complianceRecords)
    internships.py: industries, internships, internshipApplications,
                    mentorAssignments, seguimiento mensual, visitas, cierres
                    e industryRequests
    support.py: notifications, auditLogs, calendars, notices,
                technicalQueries, blacklistedTokens, generatedReports

Los migradores son instanciados por load_migrator_for_collection() en
cmsmigra.py usando importlib.import_module() con el módulo declarado en
config.COLLECTIONS[tag]['module']. El nombre de la clase se deriva del tag:
'internshipApplications' → InternshipApplicationsMigrator.

Interfaz requerida (ver BaseMigrator):
    - tag, required_references, optional_references
    - transform(document, refs)
    - duplicate_key(document, refs) (opcional)
"""
