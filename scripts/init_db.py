"""Create the approval tables from the ORM metadata.

Usage:
    uv run python -m scripts.init_db [--drop]
--drop drops every approval table first (development only).
Requires DATABASE_URL (Postgres).
"""

import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv

import hrflow.infrastructure.persistence.database as database
from hrflow.infrastructure.persistence import models  # noqa: F401  (registers tables)


async def main() -> None:
    load_dotenv(Path(__file__).resolve().parent.parent / ".env")
    database._ensure_engine()
    if database.engine is None:
        print("DATABASE_URL is not set", file=sys.stderr)
        sys.exit(1)
    drop = "--drop" in sys.argv[1:]
    async with database.engine.begin() as conn:
        if drop:
            await conn.run_sync(database.Base.metadata.drop_all)
            print("Dropped approval tables")
        await conn.run_sync(database.Base.metadata.create_all)
    tables = ", ".join(sorted(database.Base.metadata.tables))
    print(f"Created tables: {tables}")
    await database.engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
