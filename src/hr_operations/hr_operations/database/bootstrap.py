from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable, List, Union

from .connection import DatabaseConnection

log = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).resolve().parents[4] / "database" / "schema.sql"


def _strip_database_statements(sql: str) -> str:
    # schema.sql may pin a database name; the configured one wins.
    sql = re.sub(r"(?im)^\s*CREATE\s+DATABASE\b.*?;\s*$", "", sql)
    return re.sub(r"(?im)^\s*USE\b.*?;\s*$", "", sql)


def split_statements(sql: str) -> Iterable[str]:
    """Split on ';' outside quotes and drop '--' comment lines."""
    buf: List[str] = []
    quote = None
    for line in sql.splitlines(keepends=True):
        if quote is None and line.lstrip().startswith("--"):
            continue
        for ch in line:
            if quote:
                if ch == quote:
                    quote = None
            elif ch in ("'", '"'):
                quote = ch
            elif ch == ";":
                stmt = "".join(buf).strip()
                buf.clear()
                if stmt:
                    yield stmt
                continue
            buf.append(ch)
    tail = "".join(buf).strip()
    if tail:
        yield tail


def ensure_database(conn: DatabaseConnection) -> None:
    cnx = conn.connect(with_database=False)
    try:
        cur = cnx.cursor()
        cur.execute(
            f"CREATE DATABASE IF NOT EXISTS `{conn.database}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
        )
        cnx.commit()
    finally:
        cnx.close()


def apply_schema(conn: DatabaseConnection, *, schema_path: Union[str, Path] = SCHEMA_PATH) -> int:
    """Create the database and its tables (CREATE TABLE IF NOT EXISTS). Returns statements run."""
    ensure_database(conn)
    sql = _strip_database_statements(Path(schema_path).read_text(encoding="utf-8"))
    statements = list(split_statements(sql))

    cnx = conn.connect()
    try:
        cur = cnx.cursor()
        for stmt in statements:
            cur.execute(stmt)
        cnx.commit()
    finally:
        cnx.close()
    log.info("Applied %d schema statement(s) to %s", len(statements), conn.database)
    return len(statements)


def list_tables(conn: DatabaseConnection) -> List[str]:
    cnx = conn.connect()
    try:
        cur = cnx.cursor()
        cur.execute("SHOW TABLES")
        return [row[0] for row in cur.fetchall()]
    finally:
        cnx.close()
