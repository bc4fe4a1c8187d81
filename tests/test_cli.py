import logging
from pathlib import Path

import pytest
from typer.testing import CliRunner

from nodeflow.cli import app
from nodeflow.config import get_settings
from nodeflow.generator import generate_graph_from_task, save_graph_yaml

runner = CliRunner()

CYCLIC = """
nodes:
  - {id: a, type: Text}
  - {id: b, type: Text}
connections:
  - {from: a.output, to: b.input}
  - {from: b.output, to: a.input}
"""


@pytest.fixture
def arithmetic(tmp_path: Path) -> Path:
    path = tmp_path / "arithmetic.yaml"
    save_graph_yaml(generate_graph_from_task("arithmetic"), path)
    return path


@pytest.fixture
def cyclic(tmp_path: Path) -> Path:
    path = tmp_path / "cyclic.yaml"
    path.write_text(CYCLIC)
    return path


def test_types_lists_categories():
    result = runner.invoke(app, ["types"])
    assert result.exit_code == 0, result.output
    assert "Control" in result.output
    assert "IfElse" in result.output


def test_generate_writes_yaml(tmp_path: Path):
    result = runner.invoke(app, ["generate", "--task", "story", "--name", "mine", "--outdir", str(tmp_path)])
    assert result.exit_code == 0, result.output
    assert (tmp_path / "mine.yaml").exists()


def test_generate_unknown_task(tmp_path: Path):
    result = runner.invoke(app, ["generate", "--task", "sonnet", "--outdir", str(tmp_path)])
    assert result.exit_code == 1
    assert "Unknown task" in result.output


def test_validate_ok(arithmetic: Path):
    result = runner.invoke(app, ["validate", str(arithmetic)])
    assert result.exit_code == 0, result.output
    assert "Graph is acyclic" in result.output


def test_explain_prints_plan(arithmetic: Path):
    result = runner.invoke(app, ["explain", str(arithmetic)])
    assert result.exit_code == 0, result.output
    assert "topological order" in result.output
    assert "(result->input)" in result.output


def test_run_prints_results(arithmetic: Path):
    result = runner.invoke(app, ["run", str(arithmetic)])
    assert result.exit_code == 0, result.output
    assert "Total: 7" in result.output
    assert "offset" in result.output


def test_run_selected_sink(arithmetic: Path):
    result = runner.invoke(app, ["run", str(arithmetic), "--sink", "sum"])
    assert result.exit_code == 0, result.output
    assert "report" not in result.output


def test_cyclic_graph_fails_validate_and_run(cyclic: Path):
    validated = runner.invoke(app, ["validate", str(cyclic)])
    assert validated.exit_code == 1
    assert "Cycle detected" in validated.output

    ran = runner.invoke(app, ["run", str(cyclic)])
    assert ran.exit_code == 1
    assert "Cycle detected" in ran.output


@pytest.fixture
def fresh_settings():
    level = logging.getLogger("nodeflow").level
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
    logging.getLogger("nodeflow").setLevel(level)


def test_log_level_comes_from_settings(monkeypatch, fresh_settings):
    monkeypatch.setenv("NODEFLOW_LOG_LEVEL", "DEBUG")
    result = runner.invoke(app, ["types"])
    assert result.exit_code == 0, result.output
    assert logging.getLogger("nodeflow").level == logging.DEBUG


def test_log_level_option_overrides_settings(monkeypatch, fresh_settings):
    monkeypatch.setenv("NODEFLOW_LOG_LEVEL", "DEBUG")
    result = runner.invoke(app, ["--log-level", "ERROR", "types"])
    assert result.exit_code == 0, result.output
    assert logging.getLogger("nodeflow").level == logging.ERROR
