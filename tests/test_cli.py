"""
Tests for the command-line runner using the offline (pattern-only) path.
"""
import json
import sys
from unittest.mock import patch

import pytest

import main as cli


def write_record(path, content_html):
    path.write_text(json.dumps({
        "name": "BPC-157",
        "summaryHtml": "<p>Overview.</p>",
        "sections": [{"title": "Overview", "contentHtml": content_html}],
    }), encoding="utf-8")
    return path


def run_cli(*argv):
    with patch.object(sys, "argv", ["main.py", *argv]), patch.object(cli, "setup_logging"):
        return cli.main()


def test_clean_record_exits_zero(tmp_path):
    record = write_record(tmp_path / "record.json", "<p>Plain text [PMID:1].</p>")
    report = tmp_path / "report.json"

    exit_code = run_cli(str(record), "--skip-summaries", "--skip-semantic", "-o", str(report))

    assert exit_code == 0
    output = json.loads(report.read_text(encoding="utf-8"))
    assert output["compliance"]["passed"] is True
    assert output["compliance"]["stage"] == "fast"
    assert output["record"]["sections"][0]["contentHtml"] == "<p>Plain text [PMID:1].</p>"


def test_rejected_record_exits_one(tmp_path, capsys):
    record = write_record(tmp_path / "record.json", "<p>Buy BPC-157 from our store</p>")

    exit_code = run_cli(str(record), "--skip-summaries", "--skip-semantic")

    assert exit_code == 1
    output = json.loads(capsys.readouterr().out)
    assert output["compliance"]["issues"][0]["severity"] == "critical"


@pytest.mark.parametrize("contents", ['{"name": "BPC-157"}', "not json"])
def test_bad_input_exits_two(tmp_path, contents):
    path = tmp_path / "record.json"
    path.write_text(contents, encoding="utf-8")

    assert run_cli(str(path), "--skip-summaries", "--skip-semantic") == 2


def test_non_utf8_file_exits_two(tmp_path):
    path = tmp_path / "record.json"
    path.write_bytes(b'{"name": "\xff\xfe"}')

    assert run_cli(str(path), "--skip-summaries", "--skip-semantic") == 2


def test_missing_file_exits_two(tmp_path):
    assert run_cli(str(tmp_path / "missing.json"), "--skip-semantic", "--skip-summaries") == 2


def test_remote_stages_need_api_key(tmp_path):
    record = write_record(tmp_path / "record.json", "<p>Plain text.</p>")

    with patch("peptalk_review.models.completion_models.CompletionConfig.from_settings") as from_settings:
        from peptalk_review.core.error_handling import ClientConfigurationError
        from_settings.side_effect = ClientConfigurationError("OPENAI_API_KEY missing")
        assert run_cli(str(record)) == 2
