# seed_master_data.py
"""
Crea los datos maestros globales: lotes, departamentos y ramas.

Cada registro se busca primero (batch por nombre, departamento y rama por
código) y sólo se inserta si no existe, así que el script se puede repetir.
Después vincula cada alumno a la rama global que corresponde a su
branchName.

Uso:
    python seed_master_data.py [--dry-run] [--postgres-url URL]
"""

import argparse
import sys

import psycopg2

from id_translator import new_identifier
from migrators.coerce import utcnow
from store import connect_to_postgres

GLOBAL_BATCHES = ["2021-2024", "2022-2025", "2023-2026", "2024-2027"]

GLOBAL_DEPARTMENTS = [
    {"name": "Computer Science & Engineering", "shortName": "CSE", "code": "DEPT-CSE"},
    {"name": "Electrical Engineering", "shortName": "EE", "code": "DEPT-EE"},
    {"name": "Electronics & Communication Engineering", "shortName": "ECE", "code": "DEPT-ECE"},
    {"name": "Mechanical Engineering", "shortName": "ME", "code": "DEPT-ME"},
    {"name": "Civil Engineering", "shortName": "CE", "code": "DEPT-CE"},
    {"name": "Leather Technology", "shortName": "LT", "code": "DEPT-LT"},
]

GLOBAL_BRANCHES = [
    {"name": "Computer Science & Engineering", "shortName": "CSE", "code": "CSE", "duration": 3},
    {"name": "Electrical Engineering", "shortName": "EE", "code": "EE", "duration": 3},
    {"name": "Electronics & Communication Engineering", "shortName": "ECE", "code": "ECE", "duration": 3},
    {"name": "Mechanical Engineering", "shortName": "ME", "code": "ME", "duration": 3},
    {"name": "Civil Engineering", "shortName": "CE", "code": "CE", "duration": 3},
    {"name": "Leather Technology", "shortName": "LT", "code": "LT", "duration": 3},
]

# (palabras clave, sigla de rama global). Se evalúan en orden.
BRANCH_KEYWORDS = [
    (("COMPUTER", "CSE"), "CSE"),
    (("ELECTRICAL",), "EE"),
    (("ELECTRONICS", "ECE"), "ECE"),
    (("MECHANICAL", "ME"), "ME"),
    (("CIVIL", "CE"), "CE"),
    (("LEATHER", "LT"), "LT"),
    (("IT", "INFORMATION"), "CSE"),
]


def match_global_branch(branch_name):
    """
    Sigla de la rama global que corresponde a un branchName libre.

    'Electrical and Electronics' cae en ECE: ELECTRICAL sólo cuenta si no
    menciona ELECTRONICS.

    Returns:
        str|None: CSE, EE, ECE, ME, CE, LT o None
    """
    if not branch_name:
        return None
    upper = branch_name.upper()
    for keywords, short_name in BRANCH_KEYWORDS:
        if short_name == "EE" and "ELECTRONICS" in upper:
            continue
        if any(keyword in upper for keyword in keywords):
            return short_name
    return None


def _find_id(cursor, table, column, value):
    cursor.execute(f'SELECT "id" FROM "{table}" WHERE "{column}" = %s LIMIT 1', (value,))
    row = cursor.fetchone()
    return row[0] if row else None


def ensure_batches(cursor):
    print("📅 Lotes globales...")
    for name in GLOBAL_BATCHES:
        if _find_id(cursor, "Batch", "name", name):
            print(f"   ⏭️  Ya existe: {name}")
            continue
        cursor.execute(
            'INSERT INTO "Batch" ("id", "name", "isActive", "createdAt") VALUES (%s, %s, true, %s)',
            (new_identifier(), name, utcnow()),
        )
        print(f"   ✅ Creado: {name}")


def ensure_departments(cursor):
    print("\n🏛️  Departamentos globales...")
    for department in GLOBAL_DEPARTMENTS:
        if _find_id(cursor, "departments", "code", department["code"]):
            print(f"   ⏭️  Ya existe: {department['name']}")
            continue
        now = utcnow()
        cursor.execute(
            'INSERT INTO "departments" ("id", "name", "shortName", "code", "isActive", '
            '"createdAt", "updatedAt") VALUES (%s, %s, %s, %s, true, %s, %s)',
            (new_identifier(), department["name"], department["shortName"], department["code"], now, now),
        )
        print(f"   ✅ Creado: {department['name']} ({department['shortName']})")


def ensure_branches(cursor) -> dict:
    """Returns: sigla → id de la rama global."""
    print("\n🌿 Ramas globales...")
    branch_ids = {}
    for branch in GLOBAL_BRANCHES:
        branch_id = _find_id(cursor, "branches", "code", branch["code"])
        if branch_id:
            print(f"   ⏭️  Ya existe: {branch['name']}")
        else:
            branch_id = new_identifier()
            now = utcnow()
            cursor.execute(
                'INSERT INTO "branches" ("id", "name", "shortName", "code", "duration", '
                '"isActive", "createdAt", "updatedAt") VALUES (%s, %s, %s, %s, %s, true, %s, %s)',
                (branch_id, branch["name"], branch["shortName"], branch["code"],
                 branch["duration"], now, now),
            )
            print(f"   ✅ Creado: {branch['name']} ({branch['shortName']})")
        branch_ids[branch["shortName"]] = branch_id
    return branch_ids


def link_students(cursor, branch_ids) -> int:
    print("\n👥 Vinculando alumnos a ramas globales...")
    cursor.execute('SELECT "id", "branchName" FROM "Student" WHERE "branchName" IS NOT NULL')
    updated = 0
    for student_id, branch_name in cursor.fetchall():
        short_name = match_global_branch(branch_name)
        if short_name is None:
            continue
        cursor.execute(
            'UPDATE "Student" SET "branchId" = %s WHERE "id" = %s',
            (branch_ids[short_name], student_id),
        )
        updated += 1
    print(f"   ✅ {updated:,} alumnos vinculados")
    return updated


def seed_master_data(conn, dry_run=False):
    with conn.cursor() as cursor:
        ensure_batches(cursor)
        ensure_departments(cursor)
        branch_ids = ensure_branches(cursor)
        link_students(cursor, branch_ids)

    if dry_run:
        conn.rollback()
        print("\n⚠️  Simulación: cambios revertidos")
    else:
        conn.commit()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Crea lotes, departamentos y ramas globales.")
    parser.add_argument("-d", "--dry-run", action="store_true", help="Revertir al terminar")
    parser.add_argument("-p", "--postgres-url", help="URL de PostgreSQL destino")
    args = parser.parse_args(argv)

    print("🌱 Datos maestros\n")
    conn = connect_to_postgres(args.postgres_url)
    try:
        seed_master_data(conn, dry_run=args.dry_run)
    except psycopg2.Error as e:
        conn.rollback()
        print(f"❌ Error creando datos maestros: {e}", file=sys.stderr)
        return 1
    finally:
        conn.close()

    print("\n🎉 Datos maestros completos")
    return 0


if __name__ == "__main__":
    sys.exit(main())
