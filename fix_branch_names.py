# fix_branch_names.py
"""
Normaliza Student.branchName a la forma corta (CSE, ME, ...) después de migrar.

Los nombres que ya son una sigla (2 a 4 mayúsculas) no se tocan. Los que no
aparecen en BRANCH_MAPPING se listan al final para completar el mapeo.

Uso:
    python fix_branch_names.py [--dry-run] [--postgres-url URL]
"""

import argparse
import re
import sys

import psycopg2

from store import connect_to_postgres

BRANCH_MAPPING = {
    # Computación
    "Computer Science Engineering": "CSE",
    "Computer Science & Engineering": "CSE",
    "Computer Science and Engineering": "CSE",
    "Computer Science": "CS",
    "Information Technology": "IT",
    "Computer Engineering": "CE",
    # Electrónica y eléctrica
    "Electronics and Communication Engineering": "ECE",
    "Electronics & Communication Engineering": "ECE",
    "Electronics Engineering": "EE",
    "Electrical Engineering": "EE",
    "Electrical and Electronics Engineering": "EEE",
    "Electrical & Electronics Engineering": "EEE",
    # Mecánica y civil
    "Mechanical Engineering": "ME",
    "Civil Engineering": "CE",
    "Automobile Engineering": "AE",
    "Production Engineering": "PE",
    # Otras
    "Chemical Engineering": "CHE",
    "Biotechnology": "BT",
    "Biomedical Engineering": "BME",
    "Instrumentation Engineering": "IE",
    "Instrumentation and Control Engineering": "ICE",
    "Aerospace Engineering": "AE",
    "Aeronautical Engineering": "AE",
    # Diplomas
    "Diploma in Computer Science": "CSE",
    "Diploma in Mechanical Engineering": "ME",
    "Diploma in Civil Engineering": "CE",
    "Diploma in Electrical Engineering": "EE",
    "Diploma in Electronics": "ECE",
}

SHORT_FORM = re.compile(r"^[A-Z]{2,4}$")


def normalize_branch_name(name):
    """
    Forma corta de un nombre de rama.

    Returns:
        tuple: (forma_corta|None, estado) con estado 'empty', 'short',
               'mapped' o 'unmapped'
    """
    current = (name or "").strip()
    if not current:
        return None, "empty"
    if SHORT_FORM.match(current):
        return current, "short"
    short_form = BRANCH_MAPPING.get(current)
    if short_form:
        return short_form, "mapped"
    return None, "unmapped"


def fix_branch_names(conn, dry_run=False):
    """
    Actualiza los branchName mapeables.

    Returns:
        dict: Contadores por estado y lista de nombres sin mapeo
    """
    counts = {"mapped": 0, "short": 0, "empty": 0, "unmapped": 0}
    unmapped = []

    with conn.cursor() as cursor:
        cursor.execute(
            'SELECT "id", "name", "rollNumber", "branchName" FROM "Student" '
            'WHERE "branchName" IS NOT NULL'
        )
        students = cursor.fetchall()
        print(f"📊 {len(students):,} alumnos con branchName\n")

        for student_id, name, roll_number, branch_name in students:
            short_form, status = normalize_branch_name(branch_name)
            counts[status] += 1

            if status == "mapped":
                if not dry_run:
                    cursor.execute(
                        'UPDATE "Student" SET "branchName" = %s WHERE "id" = %s',
                        (short_form, student_id),
                    )
                print(f"✅ {name} ({roll_number}): {branch_name.strip()} → {short_form}")
            elif status == "unmapped" and branch_name.strip() not in unmapped:
                unmapped.append(branch_name.strip())

    if dry_run:
        conn.rollback()
    else:
        conn.commit()

    counts["unmapped_names"] = unmapped
    return counts


def main(argv=None):
    parser = argparse.ArgumentParser(description="Normaliza Student.branchName a siglas.")
    parser.add_argument("-d", "--dry-run", action="store_true", help="Mostrar sin actualizar")
    parser.add_argument("-p", "--postgres-url", help="URL de PostgreSQL destino")
    args = parser.parse_args(argv)

    conn = connect_to_postgres(args.postgres_url)
    try:
        result = fix_branch_names(conn, dry_run=args.dry_run)
    except psycopg2.Error as e:
        conn.rollback()
        print(f"❌ Error actualizando branchName: {e}", file=sys.stderr)
        return 1
    finally:
        conn.close()

    print("\n📈 Resumen:")
    print(f"   ✅ Actualizados: {result['mapped']:,}{' (simulación)' if args.dry_run else ''}")
    print(f"   ⏩ Ya en forma corta: {result['short']:,}")
    print(f"   ❌ Sin mapeo: {result['unmapped']:,}")
    if result["unmapped_names"]:
        print("\n⚠️  Agregar a BRANCH_MAPPING y volver a ejecutar:")
        for branch in result["unmapped_names"]:
            print(f'   - "{branch}"')
    return 0


if __name__ == "__main__":
    sys.exit(main())
