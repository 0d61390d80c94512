"""CLI tests against a throwaway SQLite database."""

import asyncio
import json
from datetime import datetime, timedelta, timezone

import pytest
from typer.testing import CliRunner

from cadence.domain.errors import InvalidInput
from cadence.domain.models import ProgressRecord
from cadence.infrastructure.adapters.sqlite_store import SqliteProgressRepository
from cadence.interface.cli import _parse_answer, app

runner = CliRunner()


@pytest.fixture
def db(tmp_path, mock_home):
    return str(tmp_path / "cadence.db")


def _add(db: str, word: str, translation: str):
    result = runner.invoke(app, ["items", "add", word, translation, "--db", db])
    assert result.exit_code == 0, result.output
    return result


# --- Help / init / config ---


def test_cli_help():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "spaced-repetition" in result.output
    assert "review" in result.output
    assert "items" in result.output


def test_init_creates_database(db):
    result = runner.invoke(app, ["init", "--db", db])
    assert result.exit_code == 0
    assert "Database ready" in result.output


def test_config_show(mock_home, monkeypatch):
    monkeypatch.setenv("CADENCE_USER_ID", "maria")

    result = runner.invoke(app, ["config", "show"])

    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["user_id"] == "maria"
    assert data["database_path"] == str(mock_home / ".config/cadence/cadence.db")


def test_invalid_config_exits_2(db):
    result = runner.invoke(app, ["due", "--limit", "0", "--db", db])
    assert result.exit_code == 2
    assert "Invalid configuration" in result.output


# --- Items ---


def test_items_add(db):
    assert "Added hola" in _add(db, "hola", "hello").output
    assert "hola already exists" in _add(db, "hola", "hi").output


def test_items_add_slugifies_word(db):
    assert "Added buenos-dias" in _add(db, "Buenos Dias", "good morning").output


def test_items_import(db, tmp_path):
    deck = tmp_path / "deck.yaml"
    deck.write_text(
        "- {word: hola, translation: hello}\n- {word: pan, translation: bread}\n",
        encoding="utf-8",
    )
    _add(db, "hola", "hello")

    result = runner.invoke(app, ["items", "import", str(deck), "--db", db])

    assert result.exit_code == 0
    assert "Imported 1/2 items (1 already present)" in result.output


def test_items_import_bad_yaml(db, tmp_path):
    deck = tmp_path / "deck.yaml"
    deck.write_text("- {word: hola}\n", encoding="utf-8")

    result = runner.invoke(app, ["items", "import", str(deck), "--db", db])

    assert result.exit_code == 1
    assert "Error:" in result.output


# --- Due ---


def test_due_empty(db):
    result = runner.invoke(app, ["due", "--db", db])
    assert result.exit_code == 0
    assert "Nothing due" in result.output


def test_due_lists_new_items(db):
    _add(db, "hola", "hello")
    _add(db, "pan", "bread")

    result = runner.invoke(app, ["due", "--db", db])
    assert "Due for local: 2" in result.output
    assert "hola -> hello  (new)" in result.output

    result = runner.invoke(app, ["due", "--json", "--limit", "1", "--db", db])
    rows = json.loads(result.output)
    assert rows == [
        {
            "item_id": "hola",
            "word": "hola",
            "translation": "hello",
            "new": True,
            "next_review_at": None,
            "days_until": 0,
        }
    ]


def _seed_progress(db: str, **due_offsets: timedelta) -> None:
    now = datetime.now(timezone.utc)

    async def seed():
        with SqliteProgressRepository(db) as repo:
            for item_id, offset in due_offsets.items():
                await repo.save_progress(
                    ProgressRecord(user_id="local", item_id=item_id, next_review_at=now - offset)
                )

    asyncio.run(seed())


def test_due_labels_items_overdue_by_hours_as_due(db):
    _add(db, "hola", "hello")
    _add(db, "pan", "bread")
    _seed_progress(db, hola=timedelta(hours=3), pan=timedelta(days=3, hours=1))

    result = runner.invoke(app, ["due", "--db", db])

    assert "hola -> hello  (due)" in result.output
    assert "pan -> bread  (3d overdue)" in result.output
    assert "0d overdue" not in result.output


# --- Review ---


def test_review_full_session(db):
    _add(db, "hola", "hello")
    _add(db, "pan", "bread")

    result = runner.invoke(app, ["review", "--db", db], input="\n5\n\n1\n")

    assert result.exit_code == 0, result.output
    assert "[1/2] hola" in result.output
    assert "-> hello" in result.output
    assert "+10 pts, next review in 1 day(s)" in result.output
    assert "Session complete" in result.output
    assert "Reviewed:  2" in result.output
    assert "Points:    +20" in result.output
    assert "Accuracy:  50%" in result.output
    assert "forgot=1" in result.output
    assert "perfect=1" in result.output

    result = runner.invoke(app, ["due", "--db", db])
    assert "Nothing due" in result.output


def test_review_simple_ratings_and_card_type(db):
    _add(db, "hola", "hello")

    result = runner.invoke(
        app,
        ["review", "--simple", "--card-type", "speaking", "--db", db],
        input="\nr\n",
    )

    assert result.exit_code == 0, result.output
    assert "+20 pts" in result.output
    assert "good=1" in result.output


def test_review_rejects_bad_answer_and_asks_again(db):
    _add(db, "hola", "hello")

    result = runner.invoke(app, ["review", "--db", db], input="\n9\n\nx\n\n4\n")

    assert result.exit_code == 0, result.output
    assert "Expected 1-5, got 'x'" in result.output
    assert "easy=1" in result.output
    assert result.output.count("[1/1] hola") == 3


def test_review_skip_last_item_completes(db):
    _add(db, "hola", "hello")

    result = runner.invoke(app, ["review", "--db", db], input="\ns\n")

    assert result.exit_code == 0, result.output
    assert "Reviewed:  0" in result.output
    assert "Accuracy:  0%" in result.output
    assert "Nothing due" not in runner.invoke(app, ["due", "--db", db]).output


def test_review_quit_abandons(db):
    _add(db, "hola", "hello")
    _add(db, "pan", "bread")

    result = runner.invoke(app, ["review", "--db", db], input="\n3\n\nq\n")

    assert result.exit_code == 0, result.output
    assert "Session abandoned." in result.output
    assert "Session complete" not in result.output

    due = json.loads(runner.invoke(app, ["due", "--json", "--db", db]).output)
    assert [row["item_id"] for row in due] == ["pan"]


def test_review_nothing_due(db):
    result = runner.invoke(app, ["review", "--db", db])
    assert result.exit_code == 0
    assert "Nothing due" in result.output


# --- Preview ---


def test_preview_new_item(db):
    _add(db, "hola", "hello")

    result = runner.invoke(app, ["preview", "hola", "--db", db])

    assert result.exit_code == 0, result.output
    lines = result.output.splitlines()
    assert lines[0].split() == ["rating", "interval", "ease"]
    assert lines[1].split() == ["forgot", "1d", "1.96"]
    assert lines[5].split() == ["perfect", "1d", "2.60"]


def test_preview_unknown_item(db):
    result = runner.invoke(app, ["preview", "zzz", "--db", db])
    assert result.exit_code == 1
    assert "Unknown item 'zzz'" in result.output


# --- Answer parsing ---


@pytest.mark.parametrize(
    "answer, simple, expected",
    [
        ("4", False, 4),
        (" Q ", False, "q"),
        ("skip", True, "s"),
        ("f", True, "forgot"),
        ("e", True, "easy"),
        ("remembered", True, "remembered"),
    ],
)
def test_parse_answer(answer, simple, expected):
    assert _parse_answer(answer, simple) == expected


def test_parse_answer_rejects_text_in_numeric_mode():
    with pytest.raises(InvalidInput):
        _parse_answer("good", simple=False)
