#!/usr/bin/env python3
"""
CLI for ingesting and viewing healthcare claims.

Usage:
    python -m src.ingestion.cli ingest data/claims.csv
    python -m src.ingestion.cli list --member-id MBR001 --start-date 2024-01-01
    python -m src.ingestion.cli show CLM001
"""

import argparse
import asyncio
import logging
import sys
from datetime import date
from pathlib import Path
from typing import List, Optional

from rich import box
from rich.console import Console
from rich.table import Table

from ..claims.errors import NotFoundError
from ..claims.queries import get_claim_by_id, get_claims
from ..claims.schema import Claim
from ..storage.claim_store import ClaimStore, create_claim_store
from ..utils.config import get_settings
from .models import IngestionOutcome
from .pipeline import IngestionPipeline

console = Console()


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def format_amount(cents: int) -> str:
    """Minor units -> ``$1,234.56``."""
    return f"${cents / 100:,.2f}"


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Ingest and view healthcare claims',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Ingest a CSV file
  python -m src.ingestion.cli ingest claims.csv

  # Claims of one member in January 2024
  python -m src.ingestion.cli list --member-id MBR001 --start-date 2024-01-01 --end-date 2024-01-31

  # Claims of the last 12 months
  python -m src.ingestion.cli list

  # One claim
  python -m src.ingestion.cli show CLM001
        """
    )

    # Storage
    parser.add_argument(
        '--backend',
        choices=['memory', 'sqlite'],
        help='Backing store (default: from settings)'
    )
    parser.add_argument(
        '--db-path',
        type=Path,
        help='SQLite database file (default: from settings)'
    )

    # Logging
    parser.add_argument(
        '--verbose',
        '-v',
        action='store_true',
        help='Enable verbose logging'
    )

    commands = parser.add_subparsers(dest='command', required=True)

    ingest = commands.add_parser('ingest', help='Ingest a claims CSV file')
    ingest.add_argument('file', type=Path, help='Path to the CSV file')

    listing = commands.add_parser('list', help='List claims')
    listing.add_argument('--member-id', type=str, help='Only this member')
    listing.add_argument('--start-date', type=date.fromisoformat, help='Earliest service date (YYYY-MM-DD)')
    listing.add_argument('--end-date', type=date.fromisoformat, help='Latest service date (YYYY-MM-DD)')

    show = commands.add_parser('show', help='Show one claim')
    show.add_argument('claim_id', type=str, help='Claim ID')

    return parser.parse_args(argv)


def build_store(args: argparse.Namespace) -> ClaimStore:
    """Claim store for the selected backend."""
    overrides = {}
    if args.backend:
        overrides['storage_backend'] = args.backend
    if args.db_path:
        overrides['sqlite_path'] = args.db_path
    settings = get_settings().model_copy(update=overrides)
    return create_claim_store(settings)


def make_claims_table(claims: List[Claim], title: str) -> Table:
    """Create a table with one claim per row."""
    table = Table(title=title, box=box.ROUNDED, header_style="bold cyan")
    table.add_column("Claim ID", style="bold")
    table.add_column("Member")
    table.add_column("Provider")
    table.add_column("Service Date")
    table.add_column("Amount", justify="right")
    table.add_column("Diagnosis Codes")

    for claim in claims:
        table.add_row(
            claim.claim_id,
            claim.member_id,
            claim.provider,
            claim.service_date.isoformat(),
            format_amount(claim.total_amount),
            ", ".join(claim.diagnosis_codes),
        )
    return table


def print_outcome(outcome: IngestionOutcome, source: Path):
    """Print an ingestion summary and its errors."""
    console.print(
        f"\n[bold]{source.name}[/bold]: "
        f"[green]{outcome.success_count} ingested[/green], "
        f"[red]{outcome.error_count} error(s)[/red]"
    )
    if not outcome.errors:
        return

    table = Table(box=box.SIMPLE, header_style="bold red")
    table.add_column("Row", justify="right")
    table.add_column("Error")
    for error in outcome.errors:
        table.add_row(str(error.row), error.message)
    console.print(table)


async def run(args: argparse.Namespace) -> int:
    """Execute a subcommand; returns the exit status."""
    store = build_store(args)

    if args.command == 'ingest':
        content = args.file.read_text(encoding='utf-8')
        outcome = await IngestionPipeline(store).ingest(content)
        print_outcome(outcome, args.file)
        return 1 if outcome.error_count else 0

    if args.command == 'list':
        result = await get_claims(
            store,
            member_id=args.member_id,
            start_date=args.start_date,
            end_date=args.end_date,
        )
        console.print(make_claims_table(result.claims, "Claims"))
        console.print(f"Total: {len(result.claims)} claim(s), {format_amount(result.total_amount)}")
        return 0

    try:
        claim = await get_claim_by_id(store, args.claim_id)
    except NotFoundError as e:
        console.print(f"[red]{e}[/red]")
        return 1
    console.print(make_claims_table([claim], f"Claim {claim.claim_id}"))
    return 0


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    args = parse_args(argv)
    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    try:
        status = asyncio.run(run(args))
    except Exception as e:
        logger.error(f"Command failed: {e}", exc_info=True)
        console.print(f"[red]Error: {e}[/red]")
        status = 1

    sys.exit(status)


if __name__ == '__main__':
    main()
