"""Tests for the output layer.

Covers format resolution, colour disabling, stdout/stderr discipline,
quiet and verbose modes, JSON and plain rendering, and the logging bridge.
"""

from __future__ import annotations

import json
import logging

import pytest
from rich.logging import RichHandler

from fetchless import output as output_module
from fetchless.output import (
    OutputFormat,
    OutputManager,
    _should_disable_color,
    get_output,
    reset_output,
    set_output,
)


@pytest.fixture()
def non_tty(monkeypatch):
    monkeypatch.setattr("fetchless.output._is_tty", lambda: False)


@pytest.fixture()
def clean_env(monkeypatch):
    monkeypatch.delenv("NO_COLOR", raising=False)
    monkeypatch.delenv("TERM", raising=False)


# ------------------------------------------------------------------ #
# Format resolution and colour
# ------------------------------------------------------------------ #


class TestFormatResolution:
    def test_auto_is_plain_off_terminal(self, non_tty, clean_env) -> None:
        assert OutputManager().format == OutputFormat.PLAIN

    def test_auto_is_rich_on_terminal(self, monkeypatch, clean_env) -> None:
        monkeypatch.setattr("fetchless.output._is_tty", lambda: True)
        assert OutputManager().format == OutputFormat.RICH

    def test_auto_is_plain_without_colour(self, monkeypatch, clean_env) -> None:
        monkeypatch.setattr("fetchless.output._is_tty", lambda: True)
        assert OutputManager(no_color=True).format == OutputFormat.PLAIN

    def test_explicit_format_kept(self, non_tty) -> None:
        assert OutputManager(format=OutputFormat.JSON).format == OutputFormat.JSON

    def test_no_color_env(self, monkeypatch, clean_env) -> None:
        assert _should_disable_color() is False
        monkeypatch.setenv("NO_COLOR", "")
        assert _should_disable_color() is True

    def test_dumb_terminal(self, monkeypatch, clean_env) -> None:
        monkeypatch.setenv("TERM", "dumb")
        assert _should_disable_color() is True


# ------------------------------------------------------------------ #
# Data rendering (stdout)
# ------------------------------------------------------------------ #


class TestDataOutput:
    def test_json_response(self, capsys) -> None:
        OutputManager(format=OutputFormat.JSON).format_response({"name": "ada", "id": 1})
        captured = capsys.readouterr()
        assert json.loads(captured.out) == {"name": "ada", "id": 1}
        assert captured.err == ""

    def test_plain_dict_is_tab_separated(self, capsys) -> None:
        OutputManager(format=OutputFormat.PLAIN).format_response({"name": "ada", "id": 1})
        assert capsys.readouterr().out == "name\tada\nid\t1\n"

    def test_plain_list_of_objects(self, capsys) -> None:
        OutputManager(format=OutputFormat.PLAIN).format_response(
            [{"id": 1, "name": "ada"}, {"id": 2, "name": "grace"}]
        )
        assert capsys.readouterr().out == "1\tada\n2\tgrace\n"

    def test_plain_text(self, capsys) -> None:
        OutputManager(format=OutputFormat.PLAIN).format_response("hello")
        assert capsys.readouterr().out == "hello\n"

    def test_json_table(self, capsys) -> None:
        OutputManager(format=OutputFormat.JSON).print_table(
            ["URL", "Status"], [["/a", "200"], ["/b", "404"]]
        )
        assert json.loads(capsys.readouterr().out) == [
            {"URL": "/a", "Status": "200"},
            {"URL": "/b", "Status": "404"},
        ]

    def test_plain_table(self, capsys) -> None:
        OutputManager(format=OutputFormat.PLAIN).print_table(["URL", "Status"], [["/a", "200"]])
        assert capsys.readouterr().out == "URL\tStatus\n/a\t200\n"

    def test_rich_table_contains_cells(self, capsys) -> None:
        OutputManager(format=OutputFormat.RICH, no_color=True).print_table(
            ["URL"], [["/users"]], title="Stored"
        )
        out = capsys.readouterr().out
        assert "/users" in out
        assert "Stored" in out


# ------------------------------------------------------------------ #
# Diagnostics (stderr)
# ------------------------------------------------------------------ #


class TestDiagnostics:
    def test_messages_go_to_stderr(self, capsys) -> None:
        manager = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        manager.info("info")
        manager.success("done")
        manager.error("broken")

        captured = capsys.readouterr()
        assert captured.out == ""
        assert captured.err.splitlines() == ["info", "done", "Error: broken"]

    def test_quiet_hides_info_and_success(self, capsys) -> None:
        manager = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
        manager.info("info")
        manager.success("done")
        manager.error("broken")
        assert capsys.readouterr().err.splitlines() == ["Error: broken"]


# ------------------------------------------------------------------ #
# Logging bridge
# ------------------------------------------------------------------ #


class TestAttachLogging:
    @pytest.fixture(autouse=True)
    def _restore_logger(self):
        logger = logging.getLogger("fetchless")
        handlers, level = list(logger.handlers), logger.level
        yield
        logger.handlers[:] = handlers
        logger.setLevel(level)

    def test_not_verbose_installs_nothing(self) -> None:
        assert OutputManager(format=OutputFormat.PLAIN).attach_logging() is None

    def test_verbose_installs_single_handler(self) -> None:
        manager = OutputManager(format=OutputFormat.PLAIN, verbose=True)
        manager.attach_logging()
        handler = manager.attach_logging()

        logger = logging.getLogger("fetchless")
        rich_handlers = [h for h in logger.handlers if isinstance(h, RichHandler)]
        assert rich_handlers == [handler]
        assert logger.level == logging.DEBUG


# ------------------------------------------------------------------ #
# Global instance
# ------------------------------------------------------------------ #


class TestGlobalInstance:
    def test_default_created_lazily(self) -> None:
        reset_output()
        assert get_output() is get_output()

    def test_set_output_routes_helpers(self, capsys) -> None:
        set_output(OutputManager(format=OutputFormat.JSON, no_color=True))
        output_module.format_response([1, 2])
        output_module.error("broken")

        captured = capsys.readouterr()
        assert json.loads(captured.out) == [1, 2]
        assert captured.err == "Error: broken\n"
