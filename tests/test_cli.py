"""Tests for the configanalyzer CLI commands."""

from __future__ import annotations

import json
import shutil
from pathlib import Path

import pytest
from click.testing import CliRunner

from configanalyzer.cli import main

from conftest import keyvault_doc


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def clean_dir(projects_dir: Path) -> Path:
    """The project tree without its broken document."""
    shutil.rmtree(projects_dir / "lonely")
    return projects_dir


def _invoke(runner: CliRunner, home: Path, *args: str):
    return runner.invoke(main, [args[0], "--home", str(home), *args[1:]])


class TestGraphCommand:
    def test_table(self, runner, tmp_path, projects_dir):
        result = _invoke(runner, tmp_path, "graph", "--dir", str(projects_dir))
        assert result.exit_code == 0, result.output
        assert "Project dependencies" in result.output
        assert "consumer <- producer" in result.output
        assert "cli-config-broken.json" in result.output

    def test_json(self, runner, tmp_path, clean_dir):
        result = _invoke(runner, tmp_path, "graph", "--dir", str(clean_dir), "--format", "json")
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["edges"] == [{"depends_on": "20", "depended_by": "10"}]
        assert data["stats"]["nodes"] == 2

    def test_dot(self, runner, tmp_path, clean_dir):
        result = _invoke(runner, tmp_path, "graph", "--dir", str(clean_dir), "--format", "dot")
        assert result.exit_code == 0, result.output
        assert '"20" -> "10";' in result.output

    def test_seed_reproducible(self, runner, tmp_path, clean_dir):
        args = ("graph", "--dir", str(clean_dir), "--format", "json", "--seed", "5")
        first = json.loads(_invoke(runner, tmp_path, *args).output)
        second = json.loads(_invoke(runner, tmp_path, *args).output)
        assert first["nodes"] == second["nodes"]

    def test_diagnostics_reported(self, runner, tmp_path, clean_dir):
        (clean_dir / "producer" / "redis.json").write_text(json.dumps({
            "version": "1.0.0",
            "tasks": [{
                "source": {"type": "GitlabProjectVariables", "project_id": 10},
                "target": {"type": "Command"},
                "mapping": {},
            }],
        }))
        result = _invoke(runner, tmp_path, "graph", "--dir", str(clean_dir))
        assert result.exit_code == 0, result.output
        assert "invalid-source-backend" in result.output

    def test_strict_version(self, runner, tmp_path, clean_dir):
        (tmp_path / "config.yaml").write_text("supported_versions: ['2.0.0', '3.0.0']\n")
        result = _invoke(
            runner, tmp_path, "graph", "--dir", str(clean_dir), "--strict-version",
        )
        assert result.exit_code == 0, result.output
        assert "Dependencies (0):" in result.output
        assert "unsupported-version" in result.output

    def test_no_source(self, runner, tmp_path):
        result = _invoke(runner, tmp_path, "graph")
        assert result.exit_code == 1
        assert "No project source" in result.output


class TestDepsCommand:
    def test_consumer(self, runner, tmp_path, clean_dir):
        result = _invoke(runner, tmp_path, "deps", "--dir", str(clean_dir), "consumer")
        assert result.exit_code == 0, result.output
        assert "Depends on:  producer (20)" in result.output
        assert "nobody" in result.output
        assert "AzureKeyvault [A] -> Command" in result.output

    def test_producer_by_key(self, runner, tmp_path, clean_dir):
        result = _invoke(runner, tmp_path, "deps", "--dir", str(clean_dir), "20")
        assert result.exit_code == 0, result.output
        assert "Used by:     consumer (10)" in result.output

    def test_unknown(self, runner, tmp_path, clean_dir):
        result = _invoke(runner, tmp_path, "deps", "--dir", str(clean_dir), "ghost")
        assert result.exit_code == 1
        assert "Unknown project" in result.output


class TestProjectsCommand:
    def test_lists_projects(self, runner, tmp_path, projects_dir):
        result = _invoke(runner, tmp_path, "projects", "--dir", str(projects_dir))
        assert result.exit_code == 0, result.output
        assert "3 project(s)" in result.output
        assert "consumer" in result.output
        assert "producer" in result.output
        assert "1 document(s) skipped" in result.output

    def test_bracketed_names_printed_literally(self, runner, tmp_path):
        """Project names and failure paths are not read as rich markup."""
        team = tmp_path / "projects" / "[red]team"
        team.mkdir(parents=True)
        (team / "cli-config-[bold]x.json").write_text("{broken")

        result = _invoke(runner, tmp_path, "projects", "--dir", str(tmp_path / "projects"))

        assert result.exit_code == 0, result.output
        assert "[red]team" in result.output
        assert "cli-config-[bold]x.json" in result.output

    def test_empty(self, runner, tmp_path):
        empty = tmp_path / "empty"
        empty.mkdir()
        result = _invoke(runner, tmp_path, "projects", "--dir", str(empty))
        assert result.exit_code == 0
        assert "No projects found." in result.output


class TestValidateCommand:
    def test_valid(self, runner, tmp_path):
        doc = tmp_path / "cli-config-app.json"
        doc.write_text(json.dumps(keyvault_doc("https://kv1")))

        result = runner.invoke(main, ["validate", str(doc)])

        assert result.exit_code == 0, result.output
        assert "OK" in result.output
        assert "1 task(s)" in result.output

    def test_non_utf8(self, runner, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_bytes(b"\xff\xfe")

        result = runner.invoke(main, ["validate", str(bad)])

        assert result.exit_code == 1
        assert not isinstance(result.exception, UnicodeDecodeError)
        assert "INVALID" in result.output
        assert "<document>" in result.output

    def test_invalid(self, runner, tmp_path):
        good = tmp_path / "good.json"
        good.write_text(json.dumps(keyvault_doc("https://kv1")))
        bad = tmp_path / "bad.json"
        bad.write_text('{"version": "1.0", "tasks": []}')

        result = runner.invoke(main, ["validate", str(good), str(bad)])

        assert result.exit_code == 1
        assert "INVALID" in result.output
        assert "version" in result.output


class TestMain:
    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "configanalyzer" in result.output

    def test_help_lists_commands(self, runner):
        result = runner.invoke(main, ["--help"])
        for command in ("graph", "deps", "projects", "validate"):
            assert command in result.output
