"""
Invoice Parity - Command Line Entry Point

Compares invoices rendered by a migrated pipeline against the reference
pipeline, one pair at a time or as a tracked batch.
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import TypeAdapter, ValidationError

from invoice_parity.core.config import Settings, get_settings
from invoice_parity.core.logging import configure_logging, get_logger
from invoice_parity.models.comparison import ComparisonRecord
from invoice_parity.services.comparison_service import ComparisonService
from invoice_parity.services.extractor import ExtractError
from invoice_parity.services.fetcher import DownloadError
from invoice_parity.stores.result_store import FileResultStore, ResultNotFoundError
from invoice_parity.stores.status_store import FileStatusStore, JobNotFoundError
from invoice_parity.workers.orchestrator import BatchOrchestrator

logger = get_logger(__name__)


def load_records(path: Path) -> List[ComparisonRecord]:
    """
    Read batch input from a JSON list of ``{old_ref, new_ref, old_name?, new_name?}``.

    Sequence numbers follow list order.
    """
    entries = TypeAdapter(List[dict]).validate_json(path.read_bytes())
    return [
        ComparisonRecord.model_validate({**entry, "sequence_number": index})
        for index, entry in enumerate(entries)
    ]


def _print_json(payload: str) -> None:
    sys.stdout.write(payload + "\n")


def build_service(settings: Settings) -> ComparisonService:
    return ComparisonService(settings=settings, result_store=FileResultStore(settings.results_dir))


def build_status_store(settings: Settings) -> FileStatusStore:
    return FileStatusStore(
        settings.status_file,
        flush_interval=settings.status_flush_interval_seconds,
        retention_seconds=settings.job_retention_seconds
    )


async def _run_batch(settings: Settings, records: List[ComparisonRecord]) -> str:
    status_store = build_status_store(settings)
    try:
        orchestrator = BatchOrchestrator(build_service(settings), status_store, settings)
        job = await orchestrator.run(records)
        return job.model_dump_json(indent=2)
    finally:
        status_store.close()


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="invoice-parity",
        description="Verify migrated invoice renderings against the reference pipeline."
    )
    commands = parser.add_subparsers(dest="command", required=True)

    compare = commands.add_parser("compare", help="Compare one document pair")
    compare.add_argument("old_ref", help="Reference document (URL, id, or path)")
    compare.add_argument("new_ref", help="Migrated document (URL, id, or path)")

    highlight = commands.add_parser("highlight", help="Positional differences of one pair")
    highlight.add_argument("old_ref")
    highlight.add_argument("new_ref")

    batch = commands.add_parser("batch", help="Compare every pair listed in a JSON file")
    batch.add_argument("pairs", type=Path, help="JSON list of {old_ref, new_ref} objects")

    result = commands.add_parser("result", help="Show the stored detail of a comparison")
    result.add_argument("result_id")

    status = commands.add_parser("status", help="Show the status of a batch job")
    status.add_argument("job_id")

    args = parser.parse_args(argv)

    settings = get_settings()
    settings.ensure_directories()
    configure_logging(settings)

    try:
        if args.command == "compare":
            summary = asyncio.run(build_service(settings).compare_and_store(args.old_ref, args.new_ref))
            _print_json(summary.model_dump_json(indent=2))
        elif args.command == "highlight":
            report = asyncio.run(build_service(settings).highlight(args.old_ref, args.new_ref))
            _print_json(report.model_dump_json(indent=2))
        elif args.command == "batch":
            records = load_records(args.pairs)
            _print_json(asyncio.run(_run_batch(settings, records)))
        elif args.command == "result":
            outcome = FileResultStore(settings.results_dir).get(args.result_id)
            _print_json(outcome.model_dump_json(indent=2))
        elif args.command == "status":
            status_store = FileStatusStore(settings.status_file, read_only=True)
            try:
                _print_json(status_store.get(args.job_id).model_dump_json(indent=2))
            finally:
                status_store.close()
    except (JobNotFoundError, ResultNotFoundError) as e:
        sys.stderr.write(f"Not found: {e}\n")
        return 1
    except (DownloadError, ExtractError) as e:
        sys.stderr.write(f"Comparison failed: {e}\n")
        return 1
    except (OSError, ValidationError) as e:
        logger.error("invalid_input", command=args.command, error=str(e))
        sys.stderr.write(f"Invalid input: {e}\n")
        return 2

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
