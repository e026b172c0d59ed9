"""Command line interface for the case log."""

from __future__ import annotations

import argparse
import asyncio
import sys
import traceback
from collections.abc import Sequence
from datetime import date, datetime
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .advisory import AdvisoryClient
from .config import Settings
from .domain import AsaGrade, CaseLog
from .exceptions import (
    CaseLogError,
    CaseValidationError,
    RecordNotFoundError,
    SaveFailedError,
)
from .export_service import EXPORT_FORMATS, ExportService
from .filters import filter_cases, unique_surgery_types
from .form import CaseForm, preferred_technique
from .io import read_candidates
from .logging_config import setup_logging
from .models import PDF_COLUMNS, CaseFilter
from .stats import (
    calculate_dashboard_stats,
    cases_in_month,
    monthly_breakdown,
    recent_cases,
)
from .store import JsonCaseStore

console = Console()


def build_arg_parser() -> argparse.ArgumentParser:
    """Build command line argument parser."""
    parser = argparse.ArgumentParser(
        prog="ot-case-log",
        description="Log operating-theatre anesthesia cases.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s new --set patientId=MRN-1 --set age=45 --set specialty=Urology \\
      --set surgeryType=Cystoscopy --set duration=30
  %(prog)s new --from-file case.json
  %(prog)s edit 3f2a... --set anesthesiaTechnique=GA
  %(prog)s list --asa III --technique Spinal --from 2025-01-01
  %(prog)s export csv -o cases.csv
        """,
    )

    parser.add_argument(
        "--data-dir", help="Case store directory (default: ~/.ot-case-log)"
    )
    parser.add_argument("--user", help="User id whose cases to work with")
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Set logging level (default: WARNING)",
    )
    parser.add_argument(
        "--log-file", metavar="FILE", help="Also log to a rotating file"
    )

    commands = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("new", "Log a new case"),
        ("edit", "Edit an existing case"),
    ):
        sub = commands.add_parser(name, help=help_text)
        if name == "edit":
            sub.add_argument("case_id", help="Case id to edit")
        sub.add_argument(
            "--from-file",
            metavar="FILE",
            help="JSON file with case values (a list logs several new cases)",
        )
        sub.add_argument(
            "--set",
            dest="assignments",
            action="append",
            default=[],
            metavar="FIELD=VALUE",
            help="Set a field, e.g. --set asaGrade=II (repeatable)",
        )
        sub.add_argument(
            "--no-advisory",
            action="store_true",
            help="Skip the clinical alert lookup",
        )

    show = commands.add_parser("show", help="Show one case")
    show.add_argument("case_id", help="Case id to show")

    list_cmd = commands.add_parser("list", help="List cases, newest first")
    _add_filter_arguments(list_cmd)
    list_cmd.add_argument("--limit", type=int, help="Show at most this many cases")

    commands.add_parser("dashboard", help="Show dashboard statistics")

    export = commands.add_parser("export", help="Export cases to a file")
    export.add_argument("format", choices=EXPORT_FORMATS, help="Export format")
    export.add_argument("--output", "-o", help="Output path (default: dated file name)")
    _add_filter_arguments(export)

    suggest = commands.add_parser(
        "suggest", help="Suggest surgery types for a specialty"
    )
    suggest.add_argument("specialty", help="Surgical specialty")

    alert = commands.add_parser(
        "alert", help="Check an ASA grade / technique combination"
    )
    alert.add_argument(
        "asa_grade", choices=[g.value for g in AsaGrade], help="ASA grade"
    )
    alert.add_argument("technique", help="Anesthesia technique")

    summary = commands.add_parser("summary", help="Monthly case breakdown")
    summary.add_argument(
        "--month",
        metavar="YYYY-MM",
        help="Also write a narrative summary for this month",
    )

    return parser


def _add_filter_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--surgery", default="", help="Surgery type contains (case-insensitive)"
    )
    parser.add_argument("--asa", choices=[g.value for g in AsaGrade], help="ASA grade")
    parser.add_argument("--technique", help="Exact anesthesia technique")
    parser.add_argument(
        "--from",
        dest="date_from",
        type=date.fromisoformat,
        help="From date (YYYY-MM-DD)",
    )
    parser.add_argument(
        "--to", dest="date_to", type=date.fromisoformat, help="To date (YYYY-MM-DD)"
    )


def filter_from_args(args: argparse.Namespace) -> CaseFilter:
    """Create a CaseFilter from command line arguments."""
    return CaseFilter(
        surgery_type=args.surgery,
        asa_grade=args.asa,
        technique=args.technique,
        date_from=args.date_from,
        date_to=args.date_to,
    )


def parse_assignments(assignments: Sequence[str]) -> dict[str, str]:
    """Parse ``FIELD=VALUE`` pairs."""
    values = {}
    for item in assignments:
        name, sep, value = item.partition("=")
        if not sep or not name.strip():
            raise ValueError(f"Expected FIELD=VALUE, got {item!r}")
        values[name.strip()] = value
    return values


def settings_from_args(args: argparse.Namespace) -> Settings:
    return Settings.from_env().with_overrides(data_dir=args.data_dir, user_id=args.user)


def alert_panel(alert: str) -> Panel:
    return Panel(Text(alert), title="Clinical Suggestion", border_style="yellow")


def _print_validation_errors(error: CaseValidationError) -> None:
    console.print("[bold red]Case not saved, please fix:[/bold red]")
    for field_error in error.errors:
        console.print(f"  [red]{field_error.field}[/red]: {field_error.rule}")


def run_form(
    form: CaseForm,
    values: dict[str, Any],
    store: JsonCaseStore,
    user_id: str,
    use_advisory: bool,
) -> CaseLog:
    """Fill the form, show any clinical alert, then save."""
    form.update(values)
    if use_advisory:
        asyncio.run(form.refresh_alert())
        if form.clinical_alert:
            console.print(alert_panel(form.clinical_alert))

    result = form.submit(store, user_id)
    verb = "saved" if result.created else "updated"
    console.print(f"Case {verb} successfully: [bold]{result.case.id}[/bold]")
    return result.case


def cmd_new(
    args: argparse.Namespace, settings: Settings, store: JsonCaseStore
) -> None:
    advisor = AdvisoryClient(settings)
    candidates = read_candidates(args.from_file) if args.from_file else [{}]
    overrides = parse_assignments(args.assignments)

    for candidate in candidates:
        preferred = preferred_technique(store, settings.user_id)
        form = CaseForm(advisor, preferred_technique=preferred)
        run_form(
            form,
            {**candidate, **overrides},
            store,
            settings.user_id,
            use_advisory=not args.no_advisory,
        )


def cmd_edit(
    args: argparse.Namespace, settings: Settings, store: JsonCaseStore
) -> None:
    advisor = AdvisoryClient(settings)
    form = CaseForm(advisor, initial=store.get(settings.user_id, args.case_id))
    values: dict[str, Any] = {}
    if args.from_file:
        candidates = read_candidates(args.from_file)
        if len(candidates) != 1:
            raise ValueError("edit expects a single case object")
        values.update(candidates[0])
    values.update(parse_assignments(args.assignments))
    run_form(form, values, store, settings.user_id, use_advisory=not args.no_advisory)


def cmd_show(
    args: argparse.Namespace, settings: Settings, store: JsonCaseStore
) -> None:
    case = store.get(settings.user_id, args.case_id)
    table = Table(title=f"Case {case.id}", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    for name, value in case.to_csv_row().items():
        if value != "":
            table.add_row(name, str(value))
    table.add_row("createdAt", case.created_at.astimezone().strftime("%Y-%m-%d %H:%M"))
    console.print(table)


def cases_table(cases: Sequence[CaseLog], title: str) -> Table:
    table = Table(title=title)
    for column in PDF_COLUMNS:
        table.add_column(column.header)
    table.add_column("ID")
    for case in cases:
        row = case.to_table_row()
        table.add_row(
            row["date"],
            row["patientId"],
            row["surgeryType"],
            row["asaGrade"],
            row["anesthesiaTechnique"],
            row["duration"],
            case.id,
        )
    return table


def cmd_list(
    args: argparse.Namespace, settings: Settings, store: JsonCaseStore
) -> None:
    cases = filter_cases(store.list_cases(settings.user_id), filter_from_args(args))
    if args.limit is not None:
        cases = cases[: args.limit]
    console.print(cases_table(cases, f"Cases ({len(cases)})"))


def cmd_dashboard(
    args: argparse.Namespace, settings: Settings, store: JsonCaseStore
) -> None:
    cases = store.list_cases(settings.user_id)
    stats = calculate_dashboard_stats(cases)
    month_name = datetime.now().strftime("%B")

    console.print(
        Panel(
            f"Total Cases: [bold]{stats.total_cases}[/bold]\n"
            f"Cases This Month ({month_name}): "
            f"[bold]{stats.monthly_case_count}[/bold]\n"
            f"Most Common ASA: [bold]{stats.most_common_asa_grade}[/bold]\n"
            f"Top Technique: [bold]{stats.most_common_technique}[/bold]",
            title="Dashboard",
        )
    )

    for title, entries in (
        ("ASA Grade Distribution", stats.asa_grade_distribution),
        ("Anesthesia Technique Distribution", stats.technique_distribution),
    ):
        table = Table(title=title, min_width=40)
        table.add_column("Name")
        table.add_column("Cases", justify="right")
        for entry in entries:
            table.add_row(entry.name, str(entry.value))
        console.print(table)

    console.print(cases_table(recent_cases(cases), "Recent Cases"))


def cmd_export(
    args: argparse.Namespace, settings: Settings, store: JsonCaseStore
) -> None:
    cases = filter_cases(store.list_cases(settings.user_id), filter_from_args(args))
    path = ExportService.export(cases, args.format, args.output)
    console.print(f"Exported {len(cases)} cases to: {path}")


def cmd_suggest(
    args: argparse.Namespace, settings: Settings, store: JsonCaseStore
) -> None:
    history = unique_surgery_types(
        case
        for case in store.list_cases(settings.user_id)
        if case.specialty == args.specialty
    )
    suggestions = asyncio.run(
        AdvisoryClient(settings).suggestions_or_default(args.specialty, history)
    )
    if not suggestions:
        console.print("No suggestions available.")
    for suggestion in suggestions:
        console.print(f"  - {suggestion}")


def cmd_alert(
    args: argparse.Namespace, settings: Settings, store: JsonCaseStore
) -> None:
    advisor = AdvisoryClient(settings)
    alert = asyncio.run(advisor.alert_or_none(args.asa_grade, args.technique))
    if alert:
        console.print(alert_panel(alert))
    else:
        console.print("No alert for this combination.")


def cmd_summary(
    args: argparse.Namespace, settings: Settings, store: JsonCaseStore
) -> None:
    cases = store.list_cases(settings.user_id)
    df = monthly_breakdown(cases)

    table = Table(title="Monthly Breakdown")
    for column in df.columns:
        table.add_column(column)
    for row in df.itertuples(index=False):
        table.add_row(*(str(value) for value in row))
    console.print(table)

    if args.month:
        month = datetime.strptime(args.month, "%Y-%m")
        selected = cases_in_month(cases, month.year, month.month)
        narrative = asyncio.run(
            AdvisoryClient(settings).summary_or_none(
                selected, month.strftime("%B"), month.year
            )
        )
        if narrative:
            console.print(Panel(Text(narrative), title=f"Summary for {month:%B %Y}"))
        else:
            console.print(f"No narrative summary available ({len(selected)} cases).")


COMMANDS = {
    "new": cmd_new,
    "edit": cmd_edit,
    "show": cmd_show,
    "list": cmd_list,
    "dashboard": cmd_dashboard,
    "export": cmd_export,
    "suggest": cmd_suggest,
    "alert": cmd_alert,
    "summary": cmd_summary,
}


def main(argv: Sequence[str] | None = None) -> None:
    """Main entry point."""
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    setup_logging(level=args.log_level, verbose=args.verbose, log_file=args.log_file)

    try:
        settings = settings_from_args(args)
        store = JsonCaseStore(settings.data_dir)
        COMMANDS[args.command](args, settings, store)
    except CaseValidationError as e:
        _print_validation_errors(e)
        sys.exit(1)
    except RecordNotFoundError as e:
        console.print(f"Error: {e}")
        sys.exit(1)
    except SaveFailedError as e:
        console.print(f"Error: {e}")
        sys.exit(1)
    except FileNotFoundError as e:
        console.print(f"Error: {e}")
        sys.exit(1)
    except ValueError as e:
        console.print(f"Error: {e}")
        sys.exit(1)
    except PermissionError as e:
        console.print(f"Permission error: {e}")
        sys.exit(1)
    except CaseLogError as e:
        console.print(f"Processing error: {e}")
        sys.exit(1)
    except Exception as e:
        console.print(f"Unexpected error: {e}")
        if args.verbose:
            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
