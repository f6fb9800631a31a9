import json

import pytest

from mirsinn.cli import main as cli
from mirsinn.cli.main import build_parser
from mirsinn.domain.models import JobResult, QuestionEntry


@pytest.mark.parametrize("command", ["generate", "notify", "refresh-stats", "init-db"])
def test_cli_supports_expected_subcommands(command: str) -> None:
    parser = build_parser()
    choices = parser._subparsers._group_actions[0].choices  # type: ignore[attr-defined]
    assert command in choices, f"missing subcommand: {command}"


def test_cli_help_available() -> None:
    parser = build_parser()
    help_text = parser.format_help()
    assert "Mir Sinn question of the day controller" in help_text
    for keyword in ["generate", "notify", "refresh-stats"]:
        assert keyword in help_text


def test_generate_accepts_date_and_rejects_bad_keys(capsys) -> None:
    parser = build_parser()

    args = parser.parse_args(["generate", "--date", "02-20-2025", "--no-notify-operators"])
    assert args.date == "02-20-2025"
    assert args.notify_operators is False

    with pytest.raises(SystemExit):
        parser.parse_args(["generate", "--date", "2025-02-20"])
    assert "MM-DD-YYYY" in capsys.readouterr().err


def test_generate_prints_result_and_alerts_operators(monkeypatch, capsys) -> None:
    entry = QuestionEntry(id="q1", path="questions/02-20-2025/items/q1", document={"question": {"en": "Tram?"}})
    result = JobResult(status="created", date_key="02-20-2025", question_ids=["q1"], controller_runs=5, entries=(entry,))
    alerts = []
    monkeypatch.setattr(cli, "load_environment", lambda: None)
    monkeypatch.setattr(cli, "generate_questions", lambda date_key: result)
    monkeypatch.setattr(cli.feishu, "is_configured", lambda: True)
    monkeypatch.setattr(cli.feishu, "notify_run_summary", lambda **kwargs: alerts.append(kwargs))

    cli.main(["generate", "--date", "02-20-2025"])

    printed = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert printed["questionIds"] == ["q1"]
    assert printed["controllerRuns"] == 5
    assert alerts == [
        {"date_key": "02-20-2025", "status": "created", "titles": ["Tram?"], "degraded": False}
    ]


def test_generate_failure_alerts_and_reraises(monkeypatch) -> None:
    alerts = []

    def fail(date_key):
        raise RuntimeError("no question")

    monkeypatch.setattr(cli, "load_environment", lambda: None)
    monkeypatch.setattr(cli, "generate_questions", fail)
    monkeypatch.setattr(cli.feishu, "is_configured", lambda: True)
    monkeypatch.setattr(cli.feishu, "notify_run_summary", lambda **kwargs: alerts.append(kwargs))

    with pytest.raises(RuntimeError):
        cli.main(["generate"])

    assert alerts == [{"date_key": "today", "status": "failed", "error": "no question"}]
