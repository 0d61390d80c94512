"""cadence CLI: local review sessions on top of the scheduling core."""

import asyncio
import json
import logging
import sys
import time
from pathlib import Path
from typing import Annotated, Any

import typer

from cadence.application.catalog import load_items, slugify
from cadence.application.config import AppConfig, resolve_config
from cadence.application.factory import open_repository
from cadence.application.scheduler import days_until_review, utcnow
from cadence.application.session_manager import ReviewSession, SessionManager
from cadence.domain.errors import CadenceError, InvalidInput, NoItemsAvailable, PersistenceError
from cadence.domain.models import Item, QualityRating, SessionState, SessionSummary

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="cadence: spaced-repetition flashcard reviews.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

items_app = typer.Typer(help="Manage the item catalog.", no_args_is_help=True)
app.add_typer(items_app, name="items")

config_app = typer.Typer(help="Manage cadence configuration.", no_args_is_help=True)
app.add_typer(config_app, name="config")

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

LOG_LEVELS = {0: logging.ERROR, 1: logging.WARNING, 2: logging.INFO}

SIMPLE_KEYS = {"f": "forgot", "r": "remembered", "e": "easy"}

DbOption = Annotated[
    Path | None, typer.Option("--db", help="SQLite database path. Defaults to config.")
]
UserOption = Annotated[str | None, typer.Option("--user", "-u", help="Learner ID.")]


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 0,
):
    """Global settings for cadence."""
    ctx.ensure_object(dict)
    ctx.obj["verbose_bonus"] = verbose


def _resolve(ctx: typer.Context | None = None, **overrides: Any) -> AppConfig:
    try:
        config = resolve_config(overrides)
    except ValueError as e:
        typer.secho(f"Invalid configuration: {e}", fg="red")
        raise typer.Exit(2) from e

    bonus = ctx.obj.get("verbose_bonus", 0) if ctx and ctx.obj else 0
    level = LOG_LEVELS.get(config.verbose + bonus, logging.DEBUG)
    logging.getLogger("cadence").setLevel(level)
    return config


def _run(coro) -> Any:
    """Run a coroutine, turning core errors into a red message and exit code 1."""
    try:
        return asyncio.run(coro)
    except CadenceError as e:
        typer.secho(f"Error: {e}", fg="red")
        raise typer.Exit(1) from e


def _print_summary(summary: SessionSummary) -> None:
    typer.echo("")
    typer.secho("Session complete", bold=True)
    typer.echo(f"  Reviewed:  {summary.items_reviewed}")
    typer.echo(f"  Points:    +{summary.points_earned}")
    typer.echo(f"  Accuracy:  {summary.accuracy}%")
    typer.echo(f"  Time:      {summary.time_spent_seconds}s")
    counts = ", ".join(f"{k}={v}" for k, v in summary.counts_by_quality.as_dict().items())
    typer.echo(f"  Ratings:   {counts}")


def _parse_answer(answer: str, simple: bool) -> str | int:
    """Map a typed answer to a rating input; 's' and 'q' pass through."""
    answer = answer.strip().lower()
    if answer in ("s", "skip", "q", "quit"):
        return answer[0]
    if simple:
        return SIMPLE_KEYS.get(answer, answer)
    if answer.isdigit():
        return int(answer)
    raise InvalidInput(f"Expected 1-5, got {answer!r}")


# ---------------------------------------------------------------------------
# Root commands
# ---------------------------------------------------------------------------


@app.command()
def init(ctx: typer.Context, db: DbOption = None):
    """Create the database schema."""
    config = _resolve(ctx, database_path=db, backend="sqlite")
    with open_repository(config):
        pass
    typer.secho(f"Database ready at {config.database_path}", fg="green")


@app.command()
def due(
    ctx: typer.Context,
    user: UserOption = None,
    limit: Annotated[int | None, typer.Option(help="Maximum items to list.")] = None,
    db: DbOption = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """List items due for review, most overdue first."""
    config = _resolve(ctx, user_id=user, session_limit=limit, database_path=db)

    async def run():
        with open_repository(config) as repo:
            now = utcnow()
            return now, await repo.list_due_items(config.user_id, now, config.session_limit)

    now, entries = _run(run())

    rows = [
        {
            "item_id": e.item_id,
            "word": e.item.word if e.item else None,
            "translation": e.item.translation if e.item else None,
            "new": e.is_new,
            "next_review_at": e.progress.next_review_at.isoformat() if e.progress else None,
            "days_until": days_until_review(e.progress.next_review_at, now) if e.progress else 0,
        }
        for e in entries
    ]

    if json_output:
        typer.echo(json.dumps(rows, indent=2))
        return

    if not rows:
        typer.secho("Nothing due. Come back later!", fg="green")
        return

    typer.echo(f"Due for {config.user_id}: {len(rows)}")
    for row in rows:
        if row["new"]:
            status = "new"
        elif row["days_until"] < 0:
            status = f"{-row['days_until']}d overdue"
        else:
            status = "due"
        typer.echo(f"  {row['item_id']}  {row['word']} -> {row['translation']}  ({status})")


@app.command()
def review(
    ctx: typer.Context,
    user: UserOption = None,
    limit: Annotated[int | None, typer.Option(help="Items in this session.")] = None,
    simple: Annotated[
        bool, typer.Option("--simple", help="Rate with forgot / remembered / easy.")
    ] = False,
    card_type: Annotated[str | None, typer.Option(help="Card type tag for the log.")] = None,
    db: DbOption = None,
):
    """[bold green]Review[/bold green] due items interactively."""
    config = _resolve(
        ctx,
        user_id=user,
        session_limit=limit,
        default_card_type=card_type,
        database_path=db,
    )
    prompt = "Rate [f]orgot/[r]emembered/[e]asy" if simple else "Rate 1-5"
    prompt += ", [s]kip, [q]uit"

    async def loop(session: ReviewSession, repo) -> None:
        while session.state is SessionState.ACTIVE:
            entry = session.current_item
            item = entry.item or await repo.get_item(entry.item_id)
            word = item.word if item else entry.item_id
            typer.echo("")
            typer.secho(f"[{session.position + 1}/{session.total}] {word}", bold=True)

            started = time.monotonic()
            typer.prompt("Press Enter to reveal", default="", show_default=False)
            if item:
                typer.echo(f"  -> {item.translation}")

            try:
                answer = _parse_answer(typer.prompt(prompt), simple)
            except InvalidInput as e:
                typer.secho(str(e), fg="red")
                continue

            if answer == "q":
                await session.abandon()
                typer.secho("Session abandoned.", fg="yellow")
                return
            if answer == "s":
                await session.skip_card(entry.item_id)
                continue

            try:
                outcome = await session.submit_review(
                    entry.item_id,
                    answer,
                    int(time.monotonic() - started),
                    config.default_card_type,
                )
            except InvalidInput as e:
                typer.secho(str(e), fg="red")
                continue
            except PersistenceError as e:
                typer.secho(f"Could not save review ({e}). Rate again to retry.", fg="yellow")
                continue

            typer.echo(
                f"  +{outcome.points} pts, next review in {outcome.schedule.interval} day(s)"
            )

    async def run():
        with open_repository(config) as repo:
            manager = SessionManager(repo)
            try:
                session = await manager.start_session(config.user_id, config.session_limit)
            except NoItemsAvailable:
                typer.secho("Nothing due. Come back later!", fg="green")
                return None

            try:
                await loop(session, repo)
            except (KeyboardInterrupt, typer.Abort):
                await session.abandon()
                typer.secho("\nSession abandoned.", fg="yellow")
                return None

            if session.state is SessionState.ABANDONED:
                return None
            return session.summary or await session.end_session()

    summary = _run(run())
    if summary is not None:
        _print_summary(summary)


@app.command()
def preview(
    ctx: typer.Context,
    item_id: Annotated[str, typer.Argument(help="Item to preview.")],
    user: UserOption = None,
    db: DbOption = None,
):
    """Show what each rating would schedule for an item."""
    config = _resolve(ctx, user_id=user, database_path=db)

    async def run():
        with open_repository(config) as repo:
            if await repo.get_item(item_id) is None:
                raise InvalidInput(f"Unknown item {item_id!r}")
            return await SessionManager(repo).preview(config.user_id, item_id)

    results = _run(run())
    typer.echo(f"{'rating':<10} {'interval':>9} {'ease':>6}")
    for quality in QualityRating:
        r = results[quality]
        typer.echo(f"{quality.bucket:<10} {r.interval:>8}d {r.ease_factor:>6.2f}")


# ---------------------------------------------------------------------------
# Items subgroup
# ---------------------------------------------------------------------------


@items_app.command("add")
def items_add(
    ctx: typer.Context,
    word: Annotated[str, typer.Argument(help="Word or phrase in the target language.")],
    translation: Annotated[str, typer.Argument(help="Translation.")],
    item_id: Annotated[str | None, typer.Option("--id", help="Stable item ID.")] = None,
    category: Annotated[str | None, typer.Option(help="Category tag.")] = None,
    db: DbOption = None,
):
    """Add one item to the catalog."""
    config = _resolve(ctx, database_path=db)
    item = Item(
        id=item_id or slugify(word) or word,
        word=word,
        translation=translation,
        category=category,
    )

    async def run():
        with open_repository(config) as repo:
            return await repo.add_items([item])

    if _run(run()):
        typer.secho(f"Added {item.id}", fg="green")
    else:
        typer.secho(f"{item.id} already exists", fg="yellow")


@items_app.command("import")
def items_import(
    ctx: typer.Context,
    path: Annotated[Path, typer.Argument(help="YAML file with a list of items.", exists=True)],
    db: DbOption = None,
):
    """Import items from a YAML file."""
    config = _resolve(ctx, database_path=db)

    async def run():
        items = load_items(path)
        with open_repository(config) as repo:
            return len(items), await repo.add_items(items)

    total, added = _run(run())
    typer.secho(f"Imported {added}/{total} items ({total - added} already present)", fg="green")


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show():
    """Display final resolved configuration."""
    config = resolve_config()
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    typer.echo(json.dumps(d, indent=2))
