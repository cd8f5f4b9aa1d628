"""Export a stored tutorial or recipe as seed SQL.

Usage:
    python scripts/export_seed.py tutorial <tutorial-id> > seed.sql
    python scripts/export_seed.py recipe <recipe-id>
"""

import os
import sys

# Add repo root to sys.path
sys.path.append(os.path.join(os.path.dirname(__file__), "../"))

from makerbook.db import SessionLocal
from makerbook.services.seed_export import EXPORTERS


def main(argv: list[str]) -> int:
    if len(argv) != 2 or argv[0] not in EXPORTERS:
        print(f"Usage: python scripts/export_seed.py <{'|'.join(EXPORTERS)}> <id>", file=sys.stderr)
        return 1

    kind, item_id = argv
    session = SessionLocal()()
    try:
        sql = EXPORTERS[kind](session, item_id)
    finally:
        session.close()

    if sql is None:
        print(f"{kind.capitalize()} not found: {item_id}", file=sys.stderr)
        return 1
    print(sql)
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
