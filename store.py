"""
Acceso a la base PostgreSQL destino.

El schema destino (tablas, enums, FKs) ya existe: lo crean las migraciones
del ORM del CMS. Este módulo sólo inserta filas y hace el mantenimiento
mínimo (vaciar tablas, contar filas).

Cada INSERT corre dentro de un SAVEPOINT propio: si falla se revierte sólo
ese registro y la transacción sigue utilizable. Se hace commit cada
`batch_size` registros y al final de cada colección.
"""

import sys

import psycopg2
from psycopg2 import OperationalError, sql

import config


def connect_to_postgres(database_url=None):
    """
    Establece conexión a PostgreSQL.

    Usa database_url (o config.DATABASE_URL) si está definido; si no,
    las credenciales de config.POSTGRES_CONFIG.

    Returns:
        connection: Conexión de psycopg2 (autocommit desactivado)

    Raises:
        SystemExit: Si no puede conectar
    """
    url = database_url or config.DATABASE_URL
    try:
        print("🔌 Conectando a PostgreSQL...")
        if url:
            conn = psycopg2.connect(url)
        else:
            conn = psycopg2.connect(**config.POSTGRES_CONFIG)
        with conn.cursor() as cursor:
            cursor.execute("SELECT 1")
        print("✅ Conexión a PostgreSQL exitosa")
        return conn
    except OperationalError as e:
        print("❌ Error de conexión a PostgreSQL", file=sys.stderr)
        print(f"   Detalle: {e}", file=sys.stderr)
        sys.exit(1)


def list_tables(cursor, preserved=None) -> list:
    """Tablas del schema public, excepto las preservadas."""
    preserved = config.PRESERVED_TABLES if preserved is None else preserved
    cursor.execute(
        "SELECT tablename FROM pg_tables WHERE schemaname = 'public' ORDER BY tablename"
    )
    return [row[0] for row in cursor.fetchall() if row[0] not in preserved]


class PostgresStore:
    """
    Destino de los migradores: una fila por llamada a create().

    Attributes:
        conn: Conexión de psycopg2
        batch_size: Registros entre commits
        pending: Registros insertados desde el último commit
    """

    def __init__(self, conn, batch_size: int = config.BATCH_SIZE):
        self.conn = conn
        self.batch_size = batch_size
        self.pending = 0

    def create(self, table: str, data: dict):
        """
        Inserta una fila.

        Args:
            table: Nombre exacto de la tabla destino
            data: Columna → valor (los JSON deben venir envueltos en psycopg2.extras.Json)

        Raises:
            psycopg2.Error: Si el INSERT falla (el registro ya fue revertido)
        """
        columns = list(data)
        query = sql.SQL("INSERT INTO {} ({}) VALUES ({})").format(
            sql.Identifier(table),
            sql.SQL(", ").join(sql.Identifier(column) for column in columns),
            sql.SQL(", ").join(sql.Placeholder() * len(columns)),
        )

        with self.conn.cursor() as cursor:
            cursor.execute("SAVEPOINT migration_record")
            try:
                cursor.execute(query, [data[column] for column in columns])
            except psycopg2.Error:
                cursor.execute("ROLLBACK TO SAVEPOINT migration_record")
                raise
            cursor.execute("RELEASE SAVEPOINT migration_record")

        self.pending += 1
        if self.pending >= self.batch_size:
            self.commit()

    def commit(self):
        self.conn.commit()
        self.pending = 0

    def rollback(self):
        self.conn.rollback()
        self.pending = 0

    def count(self, table: str) -> int:
        with self.conn.cursor() as cursor:
            cursor.execute(sql.SQL("SELECT COUNT(*) FROM {}").format(sql.Identifier(table)))
            return cursor.fetchone()[0]

    def truncate_all(self, preserved=None) -> list:
        """
        Vacía todas las tablas del schema public (TRUNCATE ... CASCADE).

        Returns:
            list: Tablas vaciadas
        """
        with self.conn.cursor() as cursor:
            tables = list_tables(cursor, preserved)
            if tables:
                cursor.execute(
                    sql.SQL("TRUNCATE TABLE {} CASCADE").format(
                        sql.SQL(", ").join(sql.Identifier(table) for table in tables)
                    )
                )
        self.commit()
        return tables

    def close(self):
        self.conn.close()
