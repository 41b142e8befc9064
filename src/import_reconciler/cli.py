"""Command-line interface for the import reconciler."""

import argparse
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from import_reconciler import __version__
from import_reconciler.config import (
    Config,
    create_category_rule,
    delete_category_rule,
    load_config,
    save_category_rules,
)
from import_reconciler.errors import (
    CommitError,
    ConfigError,
    LedgerError,
    MalformedPreviewError,
    NothingSelectedError,
)
from import_reconciler.ledger import HttpLedgerClient
from import_reconciler.models.category import MatchMode, RuleScope
from import_reconciler.models.session import BatchProgress
from import_reconciler.processing.session import ImportSession
from import_reconciler.utils.decimal_utils import format_amount
from import_reconciler.utils.logging_config import get_logger, setup_logging

# Load environment variables from .env file (if it exists)
load_dotenv()

console = Console()
logger = get_logger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_COMMIT_FAILED = 2

# Rows shown in the review table before truncating
MAX_REVIEW_ROWS = 50


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser.

    Returns:
        Configured ArgumentParser.
    """
    parser = argparse.ArgumentParser(
        prog="import-reconciler",
        description=(
            "Review a bank statement import, categorize its transactions "
            "and commit them to the ledger"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s -s statement.csv -a acc_123
  %(prog)s -s statement.xlsx -a acc_123 --dry-run
  %(prog)s --add-rule netflix cat_subscriptions --applies-to EXPENSE
  %(prog)s --list-rules
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    # Import
    parser.add_argument(
        "-s", "--statement",
        type=Path,
        default=None,
        help="Bank statement file to import",
    )

    parser.add_argument(
        "-a", "--account",
        default=None,
        help="Ledger account ID receiving the transactions",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show the categorized preview but do not commit",
    )

    parser.add_argument(
        "-y", "--yes",
        action="store_true",
        help="Commit without asking for confirmation",
    )

    # Rules
    rule_group = parser.add_argument_group("Category rules")
    rule_group.add_argument(
        "--list-rules",
        action="store_true",
        help="List category rules, newest first",
    )
    rule_group.add_argument(
        "--add-rule",
        nargs=2,
        metavar=("KEYWORD", "CATEGORY_ID"),
        default=None,
        help="Add a rule assigning CATEGORY_ID to descriptions matching KEYWORD",
    )
    rule_group.add_argument(
        "--match",
        choices=[mode.value for mode in MatchMode],
        default=MatchMode.CONTAINS.value,
        help="How the keyword is matched (default: contains)",
    )
    rule_group.add_argument(
        "--applies-to",
        choices=[scope.value for scope in RuleScope],
        type=str.upper,
        default=RuleScope.ALL.value,
        help="Transaction types the rule applies to (default: ALL)",
    )
    rule_group.add_argument(
        "--rule-name",
        default=None,
        help="Display name for the new rule (default: the keyword)",
    )
    rule_group.add_argument(
        "--delete-rule",
        metavar="RULE_ID",
        default=None,
        help="Delete the rule with this ID",
    )

    # Configuration
    parser.add_argument(
        "--config-dir",
        type=Path,
        default=Path("config"),
        help="Base config directory (default: ./config)",
    )

    parser.add_argument(
        "--rules",
        type=Path,
        default=None,
        help="Path to category_rules.yaml (default: config/category_rules.yaml)",
    )

    # Verbosity
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase output verbosity (-v, -vv)",
    )

    return parser


def get_log_level(verbosity: int) -> str:
    """Convert verbosity count to log level.

    Args:
        verbosity: Number of -v flags.

    Returns:
        Log level string.
    """
    if verbosity >= 2:
        return "DEBUG"
    elif verbosity >= 1:
        return "INFO"
    else:
        return "WARNING"


def create_progress() -> Progress:
    """Create a progress display.

    Returns:
        Rich Progress instance.
    """
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total} chunks"),
        console=console,
    )


def list_rules_command(config: Config) -> int:
    """Print the configured rules.

    Returns:
        Exit code.
    """
    if not config.category_rules:
        console.print(f"[dim]No rules in {config.rules_path}[/dim]")
        return EXIT_OK

    table = Table(title=f"Category rules ({len(config.category_rules)})")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Keyword")
    table.add_column("Match")
    table.add_column("Applies to")
    table.add_column("Category")
    table.add_column("Created")

    for rule in config.category_rules:
        table.add_row(
            rule.id,
            rule.name,
            rule.keyword,
            rule.match_mode.value,
            rule.applies_to.value,
            rule.category_id,
            rule.created_at.strftime("%Y-%m-%d %H:%M"),
        )

    console.print(table)
    return EXIT_OK


def add_rule_command(
    config: Config,
    keyword: str,
    category_id: str,
    match_mode: str = MatchMode.CONTAINS.value,
    applies_to: str = RuleScope.ALL.value,
    name: Optional[str] = None,
) -> int:
    """Create a rule and save the rule file.

    Returns:
        Exit code.
    """
    try:
        rules = create_category_rule(
            config.category_rules,
            keyword=keyword,
            category_id=category_id,
            match_mode=MatchMode(match_mode),
            applies_to=RuleScope(applies_to.upper()),
            name=name,
        )
    except (ConfigError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return EXIT_ERROR

    save_category_rules(config.rules_path, rules)
    config.category_rules = rules

    rule = rules[0]
    console.print(
        f"[green]Added rule {rule.id}: '{rule.keyword}' ({rule.match_mode.value}, "
        f"{rule.applies_to.value}) -> {rule.category_id}[/green]"
    )
    return EXIT_OK


def delete_rule_command(config: Config, rule_id: str) -> int:
    """Delete a rule and save the rule file.

    Returns:
        Exit code.
    """
    try:
        rules = delete_category_rule(config.category_rules, rule_id)
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        return EXIT_ERROR

    save_category_rules(config.rules_path, rules)
    config.category_rules = rules
    console.print(f"[green]Deleted rule {rule_id}[/green]")
    return EXIT_OK


def build_review_table(session: ImportSession, limit: int = MAX_REVIEW_ROWS) -> Table:
    """Build a table of the preview rows and their current selection."""
    store = session.require_store()
    category_names = {category.id: category.name for category in session.categories}

    table = Table(title="Review")
    table.add_column("", width=1)
    table.add_column("Date")
    table.add_column("Description", overflow="ellipsis", max_width=40)
    table.add_column("Amount", justify="right")
    table.add_column("Type")
    table.add_column("Category")
    table.add_column("Source", style="dim")
    table.add_column("Flags")

    for shown, (txn, selection) in enumerate(store):
        if shown >= limit:
            break
        source = session.suggestion_sources.get(txn.hash)
        if selection.category_id:
            category = category_names.get(selection.category_id, selection.category_id)
        else:
            category = "[yellow]uncategorized[/yellow]"
        amount_style = "green" if txn.is_income else "red"
        table.add_row(
            "✓" if selection.selected else " ",
            txn.original_date.isoformat(),
            selection.description or "",
            f"[{amount_style}]{format_amount(txn.amount)}[/{amount_style}]",
            txn.transaction_type.value,
            category,
            source.value if source else "",
            "[yellow]duplicate[/yellow]" if txn.is_duplicate else "",
        )

    return table


def display_summary(session: ImportSession) -> None:
    """Display the selection summary."""
    store = session.require_store()
    preview = session.require_preview()

    console.print("\n[bold]Import Summary[/bold]")
    if preview.filename:
        console.print(f"  File: {preview.filename}")
    if preview.detected_format:
        console.print(f"  Format: {preview.detected_format} ({preview.detected_currency or '?'})")
    if preview.date_range.start and preview.date_range.end:
        console.print(f"  Period: {preview.date_range.start} to {preview.date_range.end}")
    console.print(f"  Transactions: {len(store)}")
    console.print(f"  Duplicates: {preview.duplicates_found}")
    console.print(f"  Selected: {store.selected_count}")
    console.print(f"  Income: [green]{format_amount(store.selected_income_total)}[/green]")
    console.print(f"  Expenses: [red]{format_amount(store.selected_expense_total)}[/red]")
    console.print(f"  Without category: {store.uncategorized_count}")
    if session.created_categories:
        names = ", ".join(category.name for category in session.created_categories)
        console.print(f"  Categories created: {names}")


def run_import(args: argparse.Namespace, config: Config) -> int:
    """Run an import session from preview to commit.

    Returns:
        Exit code.
    """
    if not args.statement.exists():
        console.print(f"[red]Error: Statement not found: {args.statement}[/red]")
        return EXIT_ERROR

    ledger = HttpLedgerClient.from_config(config.ledger)
    session = ImportSession(
        ledger,
        args.account,
        rules=config.category_rules,
        settings=config.import_settings,
    )

    console.print(f"[bold]Import Reconciler v{__version__}[/bold]\n")
    console.print(f"Statement: {args.statement}")
    console.print(f"Account: {args.account}")

    try:
        with console.status("Analyzing statement..."):
            session.start(args.statement)
    except (MalformedPreviewError, LedgerError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return EXIT_ERROR

    store = session.require_store()
    console.print(build_review_table(session))
    if len(store) > MAX_REVIEW_ROWS:
        console.print(f"[dim]... and {len(store) - MAX_REVIEW_ROWS} more[/dim]")
    display_summary(session)

    if args.dry_run:
        console.print("\n[yellow]Dry run - nothing committed[/yellow]")
        return EXIT_OK

    if store.selected_count == 0:
        console.print("\n[yellow]No transactions selected - nothing to import[/yellow]")
        return EXIT_OK

    if not args.yes:
        prompt = f"\n[bold]Import {store.selected_count} transactions? [y/N]:[/bold] "
        response = console.input(prompt).strip().lower()
        if response not in ("y", "yes"):
            console.print("Cancelled.")
            return EXIT_OK

    try:
        with create_progress() as progress:
            task = progress.add_task("Importing...", total=None)

            def on_progress(update: BatchProgress) -> None:
                progress.update(task, completed=update.current, total=update.total)

            result = session.commit(on_progress=on_progress)
    except NothingSelectedError as e:
        console.print(f"[yellow]{e}[/yellow]")
        return EXIT_ERROR
    except CommitError as e:
        console.print(f"\n[red]Import failed at chunk {e.failed_chunk} of {e.total_chunks}[/red]")
        console.print(f"  Imported before failure: {e.imported}")
        console.print(f"  Skipped: {e.skipped}")
        console.print(
            "[dim]Re-running the import is safe: committed rows will be "
            "detected as duplicates.[/dim]"
        )
        return EXIT_COMMIT_FAILED

    if result is None:
        console.print("[yellow]Session was reset, result discarded[/yellow]")
        return EXIT_ERROR

    console.print("\n[green]Import complete[/green]")
    console.print(f"  Imported: {result.imported}")
    console.print(f"  Skipped: {result.skipped}")
    console.print(f"  Duplicates: {result.duplicates_found}")
    return EXIT_OK


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the CLI.

    Args:
        argv: Arguments (default: sys.argv[1:]).

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    # Set up logging
    setup_logging(level=get_log_level(args.verbose), console_output=args.verbose > 0)

    # Load configuration
    try:
        config = load_config(rules_path=args.rules, config_dir=args.config_dir)
    except (FileNotFoundError, ConfigError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return EXIT_ERROR

    # Settings may name another log file or level
    setup_logging(
        level=get_log_level(args.verbose) if args.verbose else config.logging.level,
        log_file=config.logging.file,
        console_output=args.verbose > 0,
    )

    if args.list_rules:
        return list_rules_command(config)

    if args.add_rule:
        keyword, category_id = args.add_rule
        return add_rule_command(
            config,
            keyword=keyword,
            category_id=category_id,
            match_mode=args.match,
            applies_to=args.applies_to,
            name=args.rule_name,
        )

    if args.delete_rule:
        return delete_rule_command(config, args.delete_rule)

    if args.statement is None or args.account is None:
        console.print("[red]Error: --statement and --account are required[/red]")
        parser.print_usage()
        return EXIT_ERROR

    return run_import(args, config)


if __name__ == "__main__":
    sys.exit(main())
