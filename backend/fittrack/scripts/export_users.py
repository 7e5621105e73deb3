"""Export all registered users as CSV.

Password hashes are never written.

Usage:
    python -m fittrack.scripts.export_users                 # to stdout
    python -m fittrack.scripts.export_users -o users.csv
"""

import argparse
import asyncio
import csv
import sys
from collections.abc import Sequence
from typing import TextIO

from fittrack.database import async_session_maker, engine
from fittrack.models.user import User
from fittrack.repositories.user import UserRepository

CSV_COLUMNS = ("id", "name", "mobile", "email", "age", "height", "weight", "gender", "created_at")


def write_users_csv(users: Sequence[User], out: TextIO) -> int:
    """Write ``users`` to ``out`` as CSV and return the row count."""
    writer = csv.writer(out)
    writer.writerow(CSV_COLUMNS)
    for user in users:
        row = []
        for column in CSV_COLUMNS:
            value = getattr(user, column)
            row.append("" if value is None else str(value))
        writer.writerow(row)
    return len(users)


async def export_users(out: TextIO) -> int:
    async with async_session_maker() as session:
        users = await UserRepository(session).list_all()
    await engine.dispose()
    return write_users_csv(users, out)


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the export script."""
    parser = argparse.ArgumentParser(description="Export FitTrack users as CSV")
    parser.add_argument("-o", "--output", help="Output file (default: stdout)")
    args = parser.parse_args(argv)

    if args.output:
        with open(args.output, "w", newline="", encoding="utf-8") as f:
            count = asyncio.run(export_users(f))
        print(f"Exported {count} users to {args.output}", file=sys.stderr)
    else:
        count = asyncio.run(export_users(sys.stdout))
        print(f"Exported {count} users", file=sys.stderr)


if __name__ == "__main__":
    main()
