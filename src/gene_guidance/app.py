from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from gene_guidance.constants import APP_NAME, LOG_FILENAME
from gene_guidance.core.exceptions import GenerationBusy, InputValidationError, LookupFetchError
from gene_guidance.core.generator import ReportGenerator, sqlite_store_factory
from gene_guidance.core.report import report_to_dict
from gene_guidance.core.settings import load_settings, resolve_data_dir, resolve_db_path
from gene_guidance.core.validation import GeneEntryForm, GeneratorForm


def _setup_logging(log_dir: Path, level: str = "INFO") -> None:
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / LOG_FILENAME
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
        handlers=[logging.FileHandler(log_path), logging.StreamHandler(sys.stderr)],
    )


def _yes_no(value: str | None) -> bool | None:
    if value is None:
        return None
    return value == "yes"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gene-guidance",
        description=f"{APP_NAME}: generate a per-patient recommendation report as JSON.",
    )
    parser.add_argument("--db", help="Path to the sqlite store (default: <data_dir>/gene_guidance.sqlite3)")
    parser.add_argument("--age", help="Patient age in whole years")
    parser.add_argument("--sex", choices=["M", "F", "m", "f"], help="Patient sex")
    parser.add_argument(
        "--entry",
        nargs="+",
        action="append",
        default=[],
        metavar="TEXT",
        help="Gene symbol followed by one or more mutations; repeat for more genes",
    )
    parser.add_argument("--cancer-positive", choices=["yes", "no"])
    parser.add_argument("--cancer-linked", choices=["yes", "no"])
    parser.add_argument(
        "--cancer-gene",
        action="append",
        default=[],
        metavar="SYMBOL",
        help="Cancer-linked gene symbol; repeat for more genes",
    )
    parser.add_argument("--output", help="Write the report JSON here instead of stdout")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    settings, _ = load_settings()
    _setup_logging(resolve_data_dir(settings) / "logs", settings.log_level)

    db_path = Path(args.db).expanduser().resolve() if args.db else resolve_db_path(settings)
    if not db_path.exists():
        print(f"Store not found: {db_path}", file=sys.stderr)
        return 1

    form = GeneratorForm(
        age=args.age,
        sex=args.sex,
        cancer_positive=_yes_no(args.cancer_positive),
        cancer_linked_to_gene=_yes_no(args.cancer_linked),
        gene_entries=[GeneEntryForm(gene_text=entry[0], mutation_texts=entry[1:]) for entry in args.entry],
        cancer_gene_texts=args.cancer_gene,
    )

    generator = ReportGenerator(sqlite_store_factory(db_path), settings)
    try:
        result = generator.generate(form)
    except InputValidationError as exc:
        for field, message in exc.errors.items():
            print(f"{field}: {message}", file=sys.stderr)
        return 2
    except (LookupFetchError, GenerationBusy) as exc:
        print(f"Failed to generate recommendations: {exc}", file=sys.stderr)
        return 1

    payload = {
        "generated_at": result.generated_at,
        "patient": {
            "age": result.request.age,
            "sex": result.request.sex.value,
            "cancer_positive": result.request.cancer_positive,
            "cancer_linked_to_gene": result.request.cancer_linked_to_gene,
        },
        "boxes": report_to_dict(result.boxes),
    }
    text = json.dumps(payload, indent=2)
    if args.output:
        Path(args.output).expanduser().write_text(text + "\n")
    else:
        print(text)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
