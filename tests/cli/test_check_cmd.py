"""
Tests for the `check` command.

Verifies:
1. Exit codes for clean code, findings, downgraded severity and bad inputs.
2. `check --json` outputs valid JSON and suppresses Rich logging.
3. JSON graph documents as inputs (merged, not mixed with sources).
4. Argument parsing and dispatch from `main`.
"""

import json
import logging
from pathlib import Path
from unittest.mock import patch

import pytest

from reentrancy_guard.cli.__main__ import main
from reentrancy_guard.cli.handlers.check import handle_check, load_graph
from reentrancy_guard.analysis.model import GraphBuildError
from reentrancy_guard.config import RuntimeConfig
from reentrancy_guard.utils.console import TRACE_LOGGER_NAME

STATEFUL = """
class Holder:
    def __init__(self):
        self.total = 0

class Registry:
    holder: "Final[Holder]" = Holder()

REGISTRY = Registry()
"""

CLEAN = """
from typing import Final

class Registry:
    LIMIT: Final = 3

REGISTRY = Registry()
"""


@pytest.fixture
def stateful_file(tmp_path: Path) -> Path:
  f = tmp_path / "registry.py"
  f.write_text(STATEFUL, encoding="utf-8")
  return f


@pytest.fixture
def clean_file(tmp_path: Path) -> Path:
  f = tmp_path / "clean.py"
  f.write_text(CLEAN, encoding="utf-8")
  return f


def test_clean_source_passes(clean_file, captured_console):
  assert handle_check([clean_file]) == 0

  out = captured_console.export_text()
  assert "Singletons:        1" in out
  assert "No error-level reachable mutable state found." in out


def test_findings_fail(stateful_file, captured_console):
  assert handle_check([stateful_file]) == 1

  out = captured_console.export_text()
  assert "possible data race involving globally reachable field total in class registry.Holder" in out
  assert "Reachable Mutable State" in out
  assert "registry.Holder.total" in out


def test_downgraded_severity_passes(stateful_file, captured_console):
  assert handle_check([stateful_file], severity="warning") == 0
  assert "registry.Holder.total" in captured_console.export_text()


def test_trace_flag_enables_trace_logger(stateful_file, captured_console, caplog):
  with caplog.at_level(logging.DEBUG, logger=TRACE_LOGGER_NAME):
    handle_check([stateful_file], trace=True)

  lines = [r.getMessage() for r in caplog.records if r.name == TRACE_LOGGER_NAME]
  assert lines[0] == "scanning class registry.Registry"
  assert "  scanning field registry.Registry.holder" in lines


def test_disabled_by_toml(tmp_path, stateful_file, captured_console):
  (tmp_path / "pyproject.toml").write_text("[tool.reentrancy_guard]\ncheck_reentrant = false\n")

  assert handle_check([stateful_file]) == 0
  assert "disabled" in captured_console.export_text()


def test_json_output(stateful_file, capsys):
  with patch("reentrancy_guard.cli.handlers.check.log_info") as mock_log:
    ret = handle_check([stateful_file], json_mode=True)

  assert ret == 1
  mock_log.assert_not_called()

  data = json.loads(capsys.readouterr().out)
  assert len(data) == 1
  assert data[0]["symbol"] == "registry.Holder.total"
  assert data[0]["severity"] == "error"
  assert data[0]["location"].endswith("registry.py:4:9")
  assert data[0]["declared_type"] is None


def test_json_output_disabled(tmp_path, stateful_file, capsys):
  (tmp_path / "pyproject.toml").write_text("[tool.reentrancy_guard]\ncheck_reentrant = false\n")
  assert handle_check([stateful_file], json_mode=True) == 0
  assert json.loads(capsys.readouterr().out) == []


def test_missing_path(tmp_path, captured_console):
  assert handle_check([tmp_path / "absent.py"]) == 1
  assert "Path not found" in captured_console.export_text()


def test_syntax_error(tmp_path, captured_console):
  f = tmp_path / "broken.py"
  f.write_text("class Broken(:\n")
  assert handle_check([f]) == 1
  assert "Failed to parse" in captured_console.export_text()


def test_invalid_config(tmp_path, clean_file, captured_console):
  (tmp_path / "pyproject.toml").write_text('[tool.reentrancy_guard]\nsharable_annotation = ""\n')
  assert handle_check([clean_file]) == 1
  assert "Invalid reentrancy_guard configuration" in captured_console.export_text()


def test_json_documents_are_merged(tmp_path):
  (tmp_path / "a.json").write_text(
    json.dumps({"classes": [{"name": "A", "members": [{"name": "b", "type": "B"}]}], "static_owners": ["A"]})
  )
  (tmp_path / "b.json").write_text(json.dumps({"classes": [{"name": "B", "members": [{"name": "x", "mutable": True}]}]}))

  graph = load_graph([tmp_path / "a.json", tmp_path / "b.json"], RuntimeConfig())

  assert len(graph) == 2
  assert [s.qualified_name for s in graph.static_owners] == ["A"]


def test_mixed_inputs_rejected(tmp_path, clean_file):
  doc = tmp_path / "graph.json"
  doc.write_text("{}")
  with pytest.raises(GraphBuildError, match="Cannot mix"):
    load_graph([doc, clean_file], RuntimeConfig())


def test_json_document_check(tmp_path, captured_console):
  doc = tmp_path / "graph.json"
  doc.write_text(
    json.dumps(
      {
        "classes": [
          {"name": "Registry", "parents": ["Registry"], "members": [{"name": "y", "type": "int", "mutable": True}]}
        ],
        "static_owners": ["Registry"],
      }
    )
  )
  assert handle_check([doc]) == 1
  assert "field y in class Registry: int" in captured_console.export_text()


def test_main_dispatches_check(stateful_file):
  with patch("reentrancy_guard.cli.commands.handle_check", return_value=1) as mock_check:
    ret = main(["check", str(stateful_file), "--trace", "--severity", "info", "--json"])

  assert ret == 1
  mock_check.assert_called_once_with([stateful_file], True, "info", True)


def test_main_check_defaults(stateful_file):
  with patch("reentrancy_guard.cli.commands.handle_check", return_value=0) as mock_check:
    main(["check", str(stateful_file)])

  mock_check.assert_called_once_with([stateful_file], None, None, False)


def test_main_rejects_unknown_severity(stateful_file):
  with pytest.raises(SystemExit):
    main(["check", str(stateful_file), "--severity", "fatal"])
