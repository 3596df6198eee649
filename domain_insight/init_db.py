#!/usr/bin/env python3

import psycopg2, pathlib, sys
from domain_insight.config import get_settings

DDL_DIR = pathlib.Path(__file__).resolve().parent.parent / "ddl"


def init(dsn: str):
    sql_files = sorted(DDL_DIR.glob("*.sql"))
    if not sql_files:
        sys.exit(f"No schema files found in {DDL_DIR}")

    with psycopg2.connect(dsn) as conn:
        for f in sql_files:
            with conn.cursor() as cur:
                cur.execute(f.read_text())
            print(f"✔ {f.name}")

    print("DB ready")


if __name__ == "__main__":
    init(get_settings().db_dsn)
