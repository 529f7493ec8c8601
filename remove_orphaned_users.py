# remove_orphaned_users.py
"""
Elimina usuarios STUDENT huérfanos: cuentas con rol STUDENT sin registro
en "Student".

Aparecen cuando el alumno del origen fue omitido (duplicado, referencia
rota) pero su usuario sí se migró. Cada borrado corre en su propio
SAVEPOINT: si un usuario tiene filas que lo referencian, se informa y se
conserva. Al final se comparan los conteos de usuarios STUDENT y alumnos.

Uso:
    python remove_orphaned_users.py [--dry-run] [--postgres-url URL]
"""

import argparse
import sys

import psycopg2

from store import connect_to_postgres

ORPHANS_QUERY = """
    SELECT u."id", u."name", u."email", u."createdAt", i."name"
    FROM "User" u
    LEFT JOIN "Institution" i ON i."id" = u."institutionId"
    WHERE u."role" = 'STUDENT'
      AND NOT EXISTS (SELECT 1 FROM "Student" s WHERE s."userId" = u."id")
    ORDER BY i."name", u."createdAt"
"""

STUDENT_USERS_COUNT = 'SELECT COUNT(*) FROM "User" WHERE "role" = %s'
STUDENTS_COUNT = 'SELECT COUNT(*) FROM "Student"'


def group_by_institution(rows):
    """
    Args:
        rows: Iterable de (id, name, email, createdAt, institutionName)

    Returns:
        dict: Nombre de institución → filas (en el orden recibido)
    """
    groups = {}
    for row in rows:
        groups.setdefault(row[4] or "(sin institución)", []).append(row)
    return groups


def count_students(cursor):
    """Retorna (usuarios STUDENT, registros Student)."""
    cursor.execute(STUDENT_USERS_COUNT, ("STUDENT",))
    users = cursor.fetchone()[0]
    cursor.execute(STUDENTS_COUNT)
    students = cursor.fetchone()[0]
    return users, students


def remove_orphaned_users(conn, dry_run=False) -> dict:
    """
    Returns:
        dict: found, deleted, failed y los conteos before/after
              ((usuarios STUDENT, alumnos))
    """
    result = {"found": 0, "deleted": 0, "failed": 0}

    with conn.cursor() as cursor:
        result["before"] = count_students(cursor)
        cursor.execute(ORPHANS_QUERY)
        orphans = cursor.fetchall()
        result["found"] = len(orphans)

        if not orphans:
            print("✅ No hay usuarios STUDENT huérfanos")
            result["after"] = result["before"]
            return result

        for institution, users in group_by_institution(orphans).items():
            print(f"\n🏫 {institution}: {len(users)} huérfanos")
            for user_id, name, email, created_at, _ in users:
                created = f"{created_at:%Y-%m-%d}" if created_at else "-"
                print(f"   • {user_id[:8]}... {name or '(sin nombre)'} "
                      f"<{email or 'sin email'}> ({created})")
                if dry_run:
                    continue

                cursor.execute("SAVEPOINT orphaned_user")
                try:
                    cursor.execute('DELETE FROM "User" WHERE "id" = %s', (user_id,))
                except psycopg2.Error as e:
                    cursor.execute("ROLLBACK TO SAVEPOINT orphaned_user")
                    print(f"      ❌ Error: {e.pgerror or e}")
                    result["failed"] += 1
                    continue
                cursor.execute("RELEASE SAVEPOINT orphaned_user")
                result["deleted"] += 1

        result["after"] = count_students(cursor)

    if dry_run:
        conn.rollback()
    else:
        conn.commit()
    return result


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Elimina usuarios STUDENT sin registro de alumno."
    )
    parser.add_argument("-d", "--dry-run", action="store_true", help="Mostrar sin borrar")
    parser.add_argument("-p", "--postgres-url", help="URL de PostgreSQL destino")
    args = parser.parse_args(argv)

    print("=" * 70)
    print("🧹 USUARIOS STUDENT HUÉRFANOS")
    print("=" * 70)

    conn = connect_to_postgres(args.postgres_url)
    try:
        result = remove_orphaned_users(conn, dry_run=args.dry_run)
    except psycopg2.Error as e:
        conn.rollback()
        print(f"❌ Error: {e}", file=sys.stderr)
        return 1
    finally:
        conn.close()

    users, students = result["after"]
    print("\n" + "=" * 70)
    if args.dry_run:
        print(f"Se borrarían: {result['found']} usuarios")
    else:
        print(f"Borrados: {result['deleted']} | Con error: {result['failed']}")
    print(f"Antes:   {result['before'][0]:,} usuarios STUDENT / {result['before'][1]:,} alumnos")
    print(f"Después: {users:,} usuarios STUDENT / {students:,} alumnos")
    print(f"Coinciden: {'SÍ' if users == students else 'NO'}")
    print("=" * 70)
    return 0


if __name__ == "__main__":
    sys.exit(main())
