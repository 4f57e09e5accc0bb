"""
cli.py – Terminal front end for curriculum maps
================================================

Run:
    curriculum-map --help
    python -m curriculum_map --help

Commands that act on your own guides need ``--email``; the password is read
from CURRICULUM_PASSWORD or prompted for.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from curriculum_map import __version__
from curriculum_map.auth import AuthService
from curriculum_map.config import Settings, get_settings
from curriculum_map.database import GuideStore, UserStore, init_db
from curriculum_map.errors import CurriculumMapError
from curriculum_map.exporter import DocumentExporter, export_filename
from curriculum_map.guide_engine import GuideEngine
from curriculum_map.library import clone_guide, filter_public_guides, list_public_guides
from curriculum_map.models import (
    Guide,
    PeriodType,
    SearchField,
    SubjectInput,
    SubjectStatus,
    ThemeId,
    get_theme,
)
from curriculum_map.service import GuideService

logger = logging.getLogger(__name__)

console = Console()

# ─── Colour map for subject status ───────────────────────────────────────────
STATUS_STYLE = {
    SubjectStatus.BLOCKED:     "dim",
    SubjectStatus.AVAILABLE:   "bold blue",
    SubjectStatus.IN_PROGRESS: "bold dark_orange",
    SubjectStatus.APPROVED:    "bold green",
}

STATUS_ICON = {
    SubjectStatus.BLOCKED:     "✗",
    SubjectStatus.AVAILABLE:   "○",
    SubjectStatus.IN_PROGRESS: "◑",
    SubjectStatus.APPROVED:    "✓",
}


@dataclass
class _App:
    settings: Settings
    auth:     AuthService
    store:    GuideStore
    service:  GuideService


def _build_app(db_override: Optional[str] = None) -> _App:
    settings = get_settings()
    db_path = Path(db_override) if db_override else settings.storage.db_path
    init_db(db_path)

    store  = GuideStore(db_path)
    auth   = AuthService(UserStore(db_path), settings.auth.min_password_length)
    engine = GuideEngine(propagation=settings.guides.propagation)
    service = GuideService(
        store, auth,
        engine        = engine,
        exporter      = DocumentExporter(engine),
        default_theme = settings.guides.default_theme,
    )
    return _App(settings=settings, auth=auth, store=store, service=service)


def _password(prompt: str = "Password") -> str:
    return os.getenv("CURRICULUM_PASSWORD") or Prompt.ask(prompt, password=True)


def _sign_in(app: _App, email: Optional[str]) -> None:
    if email:
        app.auth.sign_in(email, _password())


# ─── Display helpers ─────────────────────────────────────────────────────────

def _bar(pct: float, width: int = 20) -> str:
    filled = round(pct / 100 * width)
    return "[" + "█" * filled + "░" * (width - filled) + f"] {pct:.1f}%"


def _status_text(status: SubjectStatus) -> str:
    label = status.value.replace("_", " ")
    return f"[{STATUS_STYLE[status]}]{STATUS_ICON[status]} {label}[/{STATUS_STYLE[status]}]"


def _guides_table(
    guides: list[Guide],
    engine: GuideEngine,
    title: str,
    countries: Optional[list[str]] = None,
) -> Table:
    table = Table(box=box.ROUNDED, header_style="bold cyan", title=title)
    table.add_column("Id", style="dim", no_wrap=True)
    table.add_column("Name", style="bold")
    table.add_column("Institution")
    table.add_column("Subjects", justify="right")
    table.add_column("Progress", justify="right")
    table.add_column("Public", justify="center")
    if countries is not None:
        table.add_column("Country")
    for i, g in enumerate(guides):
        row = [
            g.id or "",
            escape(g.name),
            escape(g.institution),
            str(len(g.subjects)),
            f"{engine.compute_progress(g):.1f}%",
            "✓" if g.is_public else "",
        ]
        if countries is not None:
            row.append(countries[i])
        table.add_row(*row)
    return table


def show_guide(guide: Guide, engine: GuideEngine) -> None:
    """Render a guide period by period with its summary card."""
    summary = engine.summary(guide)
    theme = get_theme(guide.theme)

    card = Table(box=box.ROUNDED, show_header=False, padding=(0, 1))
    card.add_column("Key",   style="bold cyan", no_wrap=True)
    card.add_column("Value", style="white")
    card.add_row("Institution", escape(guide.institution or "—"))
    card.add_row("Periods",     f"{summary.max_period} × {guide.period_label.lower()}")
    card.add_row("Progress",    _bar(summary.progress_pct))
    card.add_row("Average",     f"[bold]{summary.weighted_average:.2f}[/bold]")
    card.add_row("Credits",     f"{summary.approved_credits} / {summary.total_credits}")
    card.add_row("Theme",       theme["name"])
    card.add_row("Visibility",  "public" if guide.is_public else "private")
    console.print(Panel(card, title=f"[bold]{escape(guide.name)}[/bold]",
                        border_style=theme["primary"]))

    for period in guide.periods():
        table = Table(box=box.SIMPLE, header_style="bold cyan", padding=(0, 1))
        table.add_column("Id", style="dim", no_wrap=True)
        table.add_column("Subject", style="bold")
        table.add_column("Credits", justify="right")
        table.add_column("Status")
        table.add_column("Score", justify="right")
        table.add_column("Prerequisites", style="dim")
        for s in guide.subjects_in_period(period):
            table.add_row(
                s.id,
                escape(s.name),
                str(s.credits),
                _status_text(s.status),
                f"{s.score:g}" if s.score is not None else "—",
                ", ".join(s.prerequisites),
            )
        console.print(Panel(table, title=f"[bold]{period}. {guide.period_label}[/bold]",
                            border_style="blue"))

    if not guide.subjects:
        console.print("[dim]No subjects yet. Add one with `curriculum-map add`.[/dim]")


# ─── Commands ────────────────────────────────────────────────────────────────

def cmd_signup(app: _App, args) -> None:
    password = _password()
    confirm = os.getenv("CURRICULUM_PASSWORD") or Prompt.ask("Confirm password", password=True)
    identity = app.auth.sign_up(args.email, password, confirm,
                                display_name=args.name, country=args.country)
    console.print(f"[green]Account created[/green] for [bold]{escape(identity.label)}[/bold].")


def cmd_guides(app: _App, args) -> None:
    guides = app.service.list_my_guides()
    if not guides:
        console.print("[dim]You have no guides yet. Create one with `curriculum-map new`.[/dim]")
        return
    console.print(_guides_table(guides, app.service.engine, "My guides"))


def cmd_new(app: _App, args) -> None:
    guide = app.service.create_guide(args.name, args.institution, args.period_type)
    console.print(f"[green]Created[/green] guide [bold]{escape(guide.name)}[/bold] ({guide.id}).")


def cmd_show(app: _App, args) -> None:
    guide = app.service.open_guide(args.guide_id)
    show_guide(guide, app.service.engine)
    result = app.service.guardrails.check(guide)
    if result.violations:
        console.print(Panel(escape(result.summary()), title="[bold]Integrity[/bold]",
                            border_style="red" if result.blocked else "yellow"))


def cmd_add(app: _App, args) -> None:
    subject = app.service.add_subject(
        args.guide_id,
        SubjectInput(name=args.name, credits=args.credits, period=args.period,
                     prerequisites=args.prereq or []),
    )
    console.print(f"[green]Added[/green] {escape(subject.name)} ({subject.id}) as "
                  f"{_status_text(subject.status)}.")


def cmd_status(app: _App, args) -> None:
    guide = app.service.change_status(args.guide_id, args.subject_id, args.status, args.score)
    show_guide(guide, app.service.engine)


def cmd_theme(app: _App, args) -> None:
    guide = app.service.set_theme(args.guide_id, args.theme)
    console.print(f"Theme set to [bold]{get_theme(guide.theme)['name']}[/bold].")


def cmd_publish(app: _App, args) -> None:
    guide = app.service.set_visibility(args.guide_id, not args.private)
    console.print(f"[bold]{escape(guide.name)}[/bold] is now "
                  f"{'public' if guide.is_public else 'private'}.")


def cmd_public(app: _App, args) -> None:
    items = filter_public_guides(list_public_guides(app.store, app.auth), args.search, args.by)
    if not items:
        console.print("[dim]No public guides match.[/dim]")
        return
    console.print(_guides_table(
        [i.guide for i in items], app.service.engine, "Public guides",
        countries=[i.country_label for i in items],
    ))


def cmd_clone(app: _App, args) -> None:
    clone = clone_guide(app.store, args.guide_id, app.auth.require_identity())
    console.print(f"[green]Cloned[/green] into [bold]{escape(clone.name)}[/bold] ({clone.id}).")


def cmd_export(app: _App, args) -> None:
    pdf_bytes = app.service.export_pdf(args.guide_id)
    out = Path(args.out) if args.out else Path(export_filename(app.store.get_by_id(args.guide_id)))
    out.write_bytes(pdf_bytes)
    console.print(f"[green]Exported[/green] {len(pdf_bytes):,} bytes → {out}")


def cmd_config(app: _App, args) -> None:
    table = Table(box=box.ROUNDED, show_header=False, padding=(0, 1))
    table.add_column("Setting", style="bold cyan", no_wrap=True)
    table.add_column("Value")
    for key, value in app.settings.status_summary().items():
        table.add_row(key, escape(value))
    console.print(Panel(table, title=f"[bold]curriculum-map {__version__}[/bold]",
                        border_style="magenta"))


# ─── Argument parsing ────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="curriculum-map",
                                     description="Plan and track curriculum maps.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--db", help="SQLite file (overrides CURRICULUM_DB_PATH)")
    parser.add_argument("--email", help="Sign in as this account")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("signup", help="Create an account")
    p.add_argument("--name", help="Display name shown on exports")
    p.add_argument("--country", help="ISO country code, e.g. MX")
    p.set_defaults(func=cmd_signup, needs_email=True)

    p = sub.add_parser("guides", help="List your guides")
    p.set_defaults(func=cmd_guides)

    p = sub.add_parser("new", help="Create a guide")
    p.add_argument("name")
    p.add_argument("--institution", default="")
    p.add_argument("--period-type", default=PeriodType.SEMESTER.value,
                   choices=[t.value for t in PeriodType])
    p.set_defaults(func=cmd_new)

    p = sub.add_parser("show", help="Show a guide")
    p.add_argument("guide_id")
    p.set_defaults(func=cmd_show)

    p = sub.add_parser("add", help="Add a subject to a guide")
    p.add_argument("guide_id")
    p.add_argument("name")
    p.add_argument("--credits", type=int, required=True)
    p.add_argument("--period", type=int, required=True)
    p.add_argument("--prereq", action="append", metavar="SUBJECT_ID",
                   help="Prerequisite subject id (repeatable)")
    p.set_defaults(func=cmd_add)

    p = sub.add_parser("status", help="Change a subject's status")
    p.add_argument("guide_id")
    p.add_argument("subject_id")
    p.add_argument("status", choices=[s.value for s in SubjectStatus])
    p.add_argument("--score", type=float, help="Required when approving (0–100)")
    p.set_defaults(func=cmd_status)

    p = sub.add_parser("theme", help="Set a guide's theme")
    p.add_argument("guide_id")
    p.add_argument("theme", choices=[t.value for t in ThemeId])
    p.set_defaults(func=cmd_theme)

    p = sub.add_parser("publish", help="Make a guide public (or private with --private)")
    p.add_argument("guide_id")
    p.add_argument("--private", action="store_true")
    p.set_defaults(func=cmd_publish)

    p = sub.add_parser("public", help="Browse public guides")
    p.add_argument("--search", default="")
    p.add_argument("--by", default=SearchField.INSTITUTION.value,
                   choices=[f.value for f in SearchField])
    p.set_defaults(func=cmd_public)

    p = sub.add_parser("clone", help="Copy a public guide into your collection")
    p.add_argument("guide_id")
    p.set_defaults(func=cmd_clone)

    p = sub.add_parser("export", help="Export a guide as PDF")
    p.add_argument("guide_id")
    p.add_argument("--out", help="Output file (default: curriculum-map-<name>.pdf)")
    p.set_defaults(func=cmd_export)

    p = sub.add_parser("config", help="Show active settings")
    p.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.app.log_level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        app = _build_app(args.db)
        if getattr(args, "needs_email", False):
            if not args.email:
                console.print("[bold red]Error:[/bold red] --email is required.")
                return 1
        elif args.func not in (cmd_public, cmd_config):
            _sign_in(app, args.email)
        args.func(app, args)
    except CurriculumMapError as exc:
        console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        return 1
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/yellow]")
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
