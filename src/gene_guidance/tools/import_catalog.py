from __future__ import annotations

import argparse
import json
import sqlite3
import sys
from pathlib import Path

from pydantic import ValidationError

from gene_guidance.core.db import Database
from gene_guidance.core.models import CatalogSnapshot
from gene_guidance.core.settings import load_settings, resolve_db_path


def _default_output_path() -> Path:
    settings, _ = load_settings()
    return resolve_db_path(settings)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Load a JSON gene catalog into the local sqlite store.")
    parser.add_argument("--input", required=True, help="Path to a catalog JSON file (one list per table)")
    parser.add_argument("--db", help="Output sqlite path (default: <data_dir>/gene_guidance.sqlite3)")
    args = parser.parse_args(argv)

    input_path = Path(args.input).expanduser().resolve()
    if not input_path.exists():
        print(f"Input file not found: {input_path}")
        return 2

    try:
        snapshot = CatalogSnapshot(**json.loads(input_path.read_text(encoding="utf-8")))
    except (ValueError, ValidationError) as exc:
        print(f"Catalog is not valid: {exc}", file=sys.stderr)
        return 2

    db_path = Path(args.db).expanduser().resolve() if args.db else _default_output_path()
    with Database(db_path) as db:
        try:
            counts = db.load_snapshot(snapshot)
        except sqlite3.IntegrityError as exc:
            print(f"Catalog is not valid: {exc}", file=sys.stderr)
            return 2

    print(f"Catalog loaded into {db_path}")
    for table, count in counts.items():
        print(f"  {table}: {count}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
