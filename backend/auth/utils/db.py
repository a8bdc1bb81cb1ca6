"""Database utilities (one short-lived connection per query)."""
import os
import psycopg2
from typing import Any, Sequence


def get_connection():
    """Get database connection."""
    dsn = os.environ.get('DATABASE_URL')
    if not dsn:
        raise ValueError('DATABASE_URL not configured')
    return psycopg2.connect(dsn)


def get_schema() -> str:
    """Get schema prefix from env. Returns 'schema.' or empty string."""
    schema = os.environ.get('MAIN_DB_SCHEMA', '')
    return f"{schema}." if schema else ""


def query_one(sql: str, params: Sequence[Any] = ()):
    """Execute SELECT query and return first row or None."""
    conn = get_connection()
    try:
        cur = conn.cursor()
        cur.execute(sql, params)
        row = cur.fetchone()
        cur.close()
        return row
    finally:
        conn.close()


def execute(sql: str, params: Sequence[Any] = ()) -> None:
    """Execute INSERT/UPDATE/DELETE query."""
    conn = get_connection()
    try:
        cur = conn.cursor()
        cur.execute(sql, params)
        conn.commit()
        cur.close()
    finally:
        conn.close()


def execute_returning(sql: str, params: Sequence[Any] = ()):
    """Execute INSERT/UPDATE with RETURNING and return the first row."""
    conn = get_connection()
    try:
        cur = conn.cursor()
        cur.execute(sql, params)
        row = cur.fetchone()
        conn.commit()
        cur.close()
        return row
    finally:
        conn.close()
