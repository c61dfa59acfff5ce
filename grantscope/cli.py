"""Command-line interface: run Form 990 PDFs through a GrantScope server."""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from grantscope.config import get_config
from grantscope.facets import FilterOptions, derive_facets, filter_grantees, merge_grantees, summarize
from grantscope.pipeline import DEFAULT_TIMEOUT, Document, ExtractionClient, Orchestrator, Success
from grantscope.services.export_service import format_currency, grantees_csv

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False):
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[logging.StreamHandler()]
    )
    # Quiet down requests library
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def load_documents(paths: List[str], max_files: int, max_size: int) -> List[Document]:
    if len(paths) > max_files:
        raise ValueError(f"At most {max_files} files can be analyzed at once")
    docs = []
    for raw in paths:
        path = Path(raw)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")
        if path.suffix.lower() != ".pdf":
            raise ValueError(f"File must be a PDF: {path}")
        data = path.read_bytes()
        if len(data) > max_size:
            raise ValueError(f"File size exceeds {max_size / (1024 * 1024):g}MB limit: {path}")
        docs.append(Document(name=path.name, data=data))
    return docs


def print_progress(outcome, processed: int, total: int) -> None:
    label = "ok" if isinstance(outcome, Success) else f"error: {outcome.error}"
    print(f"[{processed}/{total}] {outcome.document.name}: {label}")


def main(argv: Optional[List[str]] = None) -> int:
    cfg = get_config()
    ap = argparse.ArgumentParser(description="Analyze IRS Form 990 PDFs with a GrantScope server")
    ap.add_argument("pdfs", nargs="+", help="Form 990 PDF files")
    ap.add_argument("--base-url", default="http://localhost:5000")
    ap.add_argument("--timeout", type=float, default=DEFAULT_TIMEOUT)
    ap.add_argument("--year", type=int, action="append", default=[], help="Only keep grants from this year")
    ap.add_argument("--state", action="append", default=[], help="Only keep grants to this state")
    ap.add_argument("--purpose", action="append", default=[], help="Only keep grants with this purpose")
    ap.add_argument("--min-amount", type=float)
    ap.add_argument("--max-amount", type=float)
    ap.add_argument("--placeholders", action="store_true",
                    help="Substitute tagged sample data for documents that fail")
    ap.add_argument("--csv", help="Write filtered grantees to this CSV file")
    ap.add_argument("--json", help="Write foundations to this JSON file")
    ap.add_argument("-v", "--verbose", action="store_true")
    args = ap.parse_args(argv)

    setup_logging(args.verbose)

    try:
        documents = load_documents(args.pdfs, cfg.MAX_FILES, cfg.MAX_FILE_SIZE)
    except (OSError, ValueError) as e:
        logger.error(str(e))
        return 2

    client = ExtractionClient(args.base_url, timeout=args.timeout)
    result = Orchestrator(client, on_progress=print_progress).run(documents)

    if args.placeholders:
        foundations = result.with_placeholders()
    else:
        foundations = result.foundations
    grantees = merge_grantees(foundations)
    facets = derive_facets(grantees)

    low, high = facets.amount_range
    filters = FilterOptions(
        years=frozenset(args.year),
        states=frozenset(args.state),
        purposes=frozenset(args.purpose),
        amount_range=(
            low if args.min_amount is None else args.min_amount,
            high if args.max_amount is None else args.max_amount,
        ),
    )
    selected = filter_grantees(grantees, filters)

    overview = summarize(foundations, selected)
    print()
    print(f"Processed {result.processed_files}/{result.total_files} files, {len(result.failures)} failed")
    for f in foundations:
        tag = " [sample]" if f.sample else ""
        print(f"  {f.name}{tag} ({f.ein or 'no EIN'}): {len(f.grantees)} grants, "
              f"median {format_currency(f.median_grant_amount)}")
    print(f"{overview['totalGrantees']} grants worth {format_currency(overview['totalGrantAmount'])} "
          f"after filters")
    print(f"Years: {', '.join(str(y) for y in facets.years) or '-'}")
    print(f"States: {', '.join(facets.states) or '-'}")

    if args.csv:
        Path(args.csv).write_text(grantees_csv(selected), encoding="utf-8")
        print(f"Wrote {len(selected)} grantees to {args.csv}")
    if args.json:
        payload = {
            "foundations": [f.to_dict() for f in foundations],
            "facets": facets.to_dict(),
            "failures": [{"file": fl.document.name, "error": fl.error} for fl in result.failures],
        }
        Path(args.json).write_text(json.dumps(payload, indent=2), encoding="utf-8")
        print(f"Wrote {len(foundations)} foundations to {args.json}")

    return 0 if not result.failures else 1


if __name__ == "__main__":
    sys.exit(main())
