"""Tests for the command line interface."""

import json
import logging
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from glossary_merge import config as config_module
from glossary_merge.cli import cli

GLOSSARY = {
    "entries": [
        {"id": 1, "keys": ["東雲", "しののめ"], "value": "[character] Shinonome (東雲)"},
        {"id": 2, "keys": ["氷姫"], "value": "[character] Ice Princess (氷姫)"},
    ]
}


@pytest.fixture(autouse=True)
def restore_logging(monkeypatch):
    """configure_logging rewires the root logger; undo it after each test."""
    monkeypatch.setattr(config_module, "_config", None)
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def files(tmp_path):
    glossary = tmp_path / "glossary.json"
    glossary.write_text(json.dumps(GLOSSARY, ensure_ascii=False), encoding="utf-8")
    proposals = tmp_path / "proposals.json"
    return glossary, proposals


def _write(path, data):
    path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")


class TestMergeCommand:
    """Test the merge command."""

    def test_conflict_free_merge_to_output(self, files, tmp_path):
        glossary, proposals = files
        _write(proposals, [{"keys": ["剣"], "value": "[item] Sword (剣)"}])
        out = tmp_path / "merged.json"

        result = CliRunner().invoke(
            cli, ["-q", "merge", str(glossary), str(proposals), "-o", str(out)]
        )

        assert result.exit_code == 0, result.output
        merged = json.loads(out.read_text(encoding="utf-8"))
        assert [e["id"] for e in merged["entries"]] == [1, 2, 3]
        assert merged["entries"][2]["keys"] == ["剣"]
        # Input untouched
        assert json.loads(glossary.read_text(encoding="utf-8")) == GLOSSARY

    def test_in_place(self, files):
        glossary, proposals = files
        _write(proposals, {"entries": [{"keys": ["剣"], "value": "Sword"}]})

        result = CliRunner().invoke(cli, ["-q", "merge", str(glossary), str(proposals), "--in-place"])

        assert result.exit_code == 0, result.output
        assert len(json.loads(glossary.read_text(encoding="utf-8"))["entries"]) == 3

    def test_output_and_in_place_conflict(self, files, tmp_path):
        glossary, proposals = files
        _write(proposals, [])

        result = CliRunner().invoke(
            cli,
            ["-q", "merge", str(glossary), str(proposals), "-o", str(tmp_path / "x.json"), "--in-place"],
        )

        assert result.exit_code == 2
        assert "--in-place" in result.output

    def test_arbitrated_merge(self, files, tmp_path, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test-key-123")
        glossary, proposals = files
        _write(proposals, [{"keys": ["東雲", "シノノメ"], "value": "Shinonome"}])
        out = tmp_path / "merged.json"
        response = '```json\n[{"action": "add_key", "id": 1, "data": ["シノノメ"]}]\n```'

        with patch("glossary_merge.llm.LLMClient.request", AsyncMock(return_value=response)) as request:
            result = CliRunner().invoke(
                cli,
                ["-q", "merge", str(glossary), str(proposals), "-o", str(out), "--language-pair", "ja_en"],
            )

        assert result.exit_code == 0, result.output
        request.assert_awaited_once()
        merged = json.loads(out.read_text(encoding="utf-8"))
        assert merged["entries"][0]["keys"] == ["東雲", "しののめ", "シノノメ"]
        assert len(merged["entries"]) == 2


class TestShowCommand:
    """Test the show command."""

    def test_show(self, files):
        glossary, _ = files

        result = CliRunner().invoke(cli, ["-q", "show", str(glossary), "--limit", "1"])

        assert result.exit_code == 0, result.output
        assert "Glossary (2 entries)" in result.output
        assert "[1] 東雲, しののめ" in result.output
        assert "and 1 more" in result.output

    def test_show_empty(self, tmp_path):
        path = tmp_path / "empty.json"
        _write(path, {"entries": []})

        result = CliRunner().invoke(cli, ["-q", "show", str(path)])

        assert result.exit_code == 0
        assert "is empty" in result.output
