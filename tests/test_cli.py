# tests/test_cli.py
"""
Tests for the PageSmith command-line interface (CLI).

Scope
-----
1.  **Command Registration**: `generate`, `repair`, `blocks` and `--help`.
2.  **Offline Repair**: the `repair` command runs the real pipeline over a
    saved reply, from a file or from stdin, under both failure policies.
3.  **Provider Path**: `generate_page` is mocked so no network call is made.
4.  **Error Handling**: non-zero exit codes on failures.

We use `typer.testing.CliRunner` to invoke the app in-process.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from conftest import hero
from typer.testing import CliRunner

from pagesmith.cli import app
from pagesmith.core.contracts.block import ContentBlock
from pagesmith.core.contracts.generation import GenerationFailure, GenerationSuccess
from pagesmith.manifest.loader import ManifestStore

GOOD_REPLY = json.dumps(
    {
        "contentBlocks": [
            {"_type": "hero", "headline": "Elpriser", "subheadline": "Dagens priser"},
            {"_type": "pageSection", "title": "Om elpris", "content": "Spotprisen varierer."},
        ]
    }
)


@pytest.fixture  # type: ignore[misc]
def runner() -> CliRunner:
    """Create a fresh CliRunner for each test."""
    return CliRunner()


@pytest.fixture(autouse=True)  # type: ignore[misc]
def fresh_manifest_store() -> Iterator[None]:
    """`--manifest` swaps the process-wide store; start and end every test clean."""
    ManifestStore._instance = None
    yield
    ManifestStore._instance = None


def test_cli_help_shows_usage(runner: CliRunner) -> None:
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0, f"Help failed: {result.output}"
    for command in ("generate", "repair", "blocks"):
        assert command in result.output


def test_blocks_lists_manifest_types(runner: CliRunner) -> None:
    result = runner.invoke(app, ["blocks"])
    assert result.exit_code == 0, result.output
    assert "hero" in result.output
    assert "mandatory" in result.output
    assert "faqGroup" in result.output


def test_repair_file_prints_compliant_json(runner: CliRunner, tmp_path: Path) -> None:
    reply = tmp_path / "reply.txt"
    reply.write_text(f"Here you go:\n```json\n{GOOD_REPLY}\n```", encoding="utf-8")

    result = runner.invoke(app, ["repair", str(reply), "--json", "--seed", "1"])

    assert result.exit_code == 0, result.output
    assert '"_type": "hero"' in result.output
    assert '"_type": "pageSection"' in result.output


def test_repair_unusable_reply_fails_by_default(runner: CliRunner) -> None:
    result = runner.invoke(app, ["repair", "-"], input="sorry, I cannot help with that")

    assert result.exit_code == 1
    assert "Auto-fix failed" in result.output


def test_repair_fallback_policy_reads_stdin(runner: CliRunner) -> None:
    result = runner.invoke(app, ["repair", "--policy", "fallback"], input="not json at all")

    assert result.exit_code == 0, result.output
    assert "Fallback block used" in result.output


def test_repair_writes_ndjson(runner: CliRunner, tmp_path: Path) -> None:
    reply = tmp_path / "reply.json"
    reply.write_text(GOOD_REPLY, encoding="utf-8")
    out = tmp_path / "page.ndjson"

    result = runner.invoke(
        app, ["repair", str(reply), "--ndjson", str(out), "--title", "Elpriser i dag"]
    )

    assert result.exit_code == 0, result.output
    (line,) = out.read_text(encoding="utf-8").splitlines()
    document = json.loads(line)
    assert document["_type"] == "page"
    assert document["slug"]["current"] == "elpriser-i-dag"
    assert [b["_type"] for b in document["contentBlocks"]] == ["hero", "pageSection"]


def test_repair_missing_file_is_a_usage_error(runner: CliRunner) -> None:
    result = runner.invoke(app, ["repair", "ghost.txt"])
    assert result.exit_code == 2


def test_generate_passes_request_to_pipeline(runner: CliRunner) -> None:
    success = GenerationSuccess(blocks=(ContentBlock.from_sanity(hero()),))

    with patch("pagesmith.cli.generate_page", return_value=success) as mock_run:
        result = runner.invoke(
            app,
            [
                "generate",
                "Elpriser i dag",
                "-k",
                "elpris",
                "-k",
                "spotpris",
                "-b",
                "faqGroup",
                "--related",
                "Spotpris=/spotpris",
                "--model",
                "haiku",
            ],
        )

    assert result.exit_code == 0, result.output
    mock_run.assert_called_once()
    request = mock_run.call_args.args[0]
    assert request.topic == "Elpriser i dag"
    assert request.keywords == ("elpris", "spotpris")
    assert request.optional_blocks == ("faqGroup",)
    assert request.related_pages[0].url == "/spotpris"
    assert mock_run.call_args.kwargs["model"] == "haiku"
    assert "hero" in result.output


def test_generate_failure_exits_non_zero(runner: CliRunner) -> None:
    failure = GenerationFailure(reason="API Error: 401 - Invalid key")
    mock_run = MagicMock(return_value=failure)

    with patch("pagesmith.cli.generate_page", mock_run):
        result = runner.invoke(app, ["generate", "Elpriser", "-k", "elpris"])

    assert result.exit_code == 1
    assert "Invalid key" in result.output


def test_invalid_manifest_option_is_rejected(runner: CliRunner, tmp_path: Path) -> None:
    bad = tmp_path / "manifest.json"
    bad.write_text('{"contentBlockTypes": []}', encoding="utf-8")

    result = runner.invoke(app, ["--manifest", str(bad), "blocks"])

    assert result.exit_code == 2
    assert "Manifest Error" in result.output
