# fix_duplicate_applications.py
"""
Elimina postulaciones duplicadas: un alumno debe tener una sola postulación.

Por cada alumno con varias se conserva la más reciente (createdAt) y se
borran las demás junto con sus informes mensuales y visitas de docentes.
Cada borrado corre en su propio SAVEPOINT: si uno falla, los demás siguen.

Uso:
    python fix_duplicate_applications.py [--dry-run] [--postgres-url URL]
"""

import argparse
import sys

import psycopg2

from store import connect_to_postgres

DEPENDENT_TABLES = ("monthly_reports", "faculty_visit_logs")


def select_duplicate_applications(rows):
    """
    Agrupa postulaciones por alumno y elige cuáles borrar.

    Args:
        rows: Iterable de (id, studentId, createdAt, companyName)

    Returns:
        list: (fila_conservada, [filas_a_borrar]) por cada alumno con más de
              una postulación
    """
    by_student = {}
    for row in rows:
        by_student.setdefault(row[1], []).append(row)

    selections = []
    for applications in by_student.values():
        if len(applications) < 2:
            continue
        ordered = sorted(applications, key=lambda row: row[2], reverse=True)
        selections.append((ordered[0], ordered[1:]))
    return selections


def delete_application(cursor, application_id):
    """Borra una postulación y sus dependientes (informes y visitas)."""
    for table in DEPENDENT_TABLES:
        cursor.execute(f'DELETE FROM "{table}" WHERE "applicationId" = %s', (application_id,))
    cursor.execute('DELETE FROM "internship_applications" WHERE "id" = %s', (application_id,))


def fix_duplicate_applications(conn, dry_run=False) -> int:
    """
    Returns:
        int: Postulaciones borradas (o que se borrarían en simulación)
    """
    with conn.cursor() as cursor:
        cursor.execute(
            'SELECT "id", "studentId", "createdAt", "companyName" FROM "internship_applications"'
        )
        selections = select_duplicate_applications(cursor.fetchall())

        if not selections:
            print("✅ No hay postulaciones duplicadas")
            return 0

        print(f"🔍 {len(selections)} alumnos con postulaciones duplicadas\n")
        deleted = 0
        for keep, duplicates in selections:
            print(f"Alumno {keep[1][:8]}...: {len(duplicates) + 1} postulaciones")
            print(f"   Conserva: {keep[0][:8]}... {keep[3]} ({keep[2]:%Y-%m-%d})")
            for application_id, _, created_at, company_name in duplicates:
                print(f"   Borra:    {application_id[:8]}... {company_name} ({created_at:%Y-%m-%d})")
                if dry_run:
                    deleted += 1
                    continue

                cursor.execute("SAVEPOINT duplicate_application")
                try:
                    delete_application(cursor, application_id)
                except psycopg2.Error as e:
                    cursor.execute("ROLLBACK TO SAVEPOINT duplicate_application")
                    print(f"      ❌ Error: {e.pgerror or e}")
                    continue
                cursor.execute("RELEASE SAVEPOINT duplicate_application")
                deleted += 1

    if dry_run:
        conn.rollback()
    else:
        conn.commit()
    return deleted


def main(argv=None):
    parser = argparse.ArgumentParser(description="Elimina postulaciones duplicadas por alumno.")
    parser.add_argument("-d", "--dry-run", action="store_true", help="Mostrar sin borrar")
    parser.add_argument("-p", "--postgres-url", help="URL de PostgreSQL destino")
    args = parser.parse_args(argv)

    print("=" * 70)
    print("🧹 POSTULACIONES DUPLICADAS")
    print("=" * 70)

    conn = connect_to_postgres(args.postgres_url)
    try:
        deleted = fix_duplicate_applications(conn, dry_run=args.dry_run)
    except psycopg2.Error as e:
        conn.rollback()
        print(f"❌ Error: {e}", file=sys.stderr)
        return 1
    finally:
        conn.close()

    print("\n" + "=" * 70)
    action = "Se borrarían" if args.dry_run else "Borradas"
    print(f"{action}: {deleted} postulaciones")
    print("=" * 70)
    return 0


if __name__ == "__main__":
    sys.exit(main())
