"""Apply the catalog schema (listings plus engagement tables)."""

from __future__ import annotations

import argparse
import logging
import pathlib
import sys
from typing import Iterator

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from featured.db.session import create_engine_from_env

logger = logging.getLogger(__name__)

SCHEMA_PATH = pathlib.Path(__file__).with_name("schema.sql")


def split_statements(sql: str) -> Iterator[str]:
    """Yield each ``;``-terminated statement, dropping ``--`` comment lines."""
    pending: list[str] = []
    for line in sql.splitlines():
        stripped = line.strip()
        if stripped.startswith("--"):
            continue
        if stripped:
            pending.append(line)
        if pending and stripped.endswith(";"):
            yield "\n".join(pending)
            pending = []
    if pending:
        yield "\n".join(pending)


def run_migrations(engine: Engine, schema_path: pathlib.Path = SCHEMA_PATH) -> int:
    """Run every statement of ``schema_path`` in one transaction; returns how many ran."""
    applied = 0
    with engine.begin() as conn:
        for statement in split_statements(schema_path.read_text()):
            conn.execute(text(statement))
            applied += 1
    logger.info("Applied %s schema statements from %s", applied, schema_path.name)
    return applied


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--schema", type=pathlib.Path, default=SCHEMA_PATH)
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO)
    try:
        run_migrations(create_engine_from_env(), args.schema)
    except SQLAlchemyError as exc:
        logger.error("Migration failed: %s", exc)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
