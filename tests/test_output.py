"""Tests for the output module: stdout/stderr discipline and formats."""

from __future__ import annotations

import json

import pytest

from qboconnect.output import (
    OutputFormat,
    OutputManager,
    get_output,
    info,
    print_result,
    reset_output,
    set_output,
)


class TestFormatResolution:
    def test_auto_is_plain_when_not_tty(self) -> None:
        # pytest captures stdout, so it is never a TTY here.
        assert OutputManager().format == OutputFormat.PLAIN

    def test_explicit_format(self) -> None:
        assert OutputManager(format=OutputFormat.JSON).format == OutputFormat.JSON

    def test_no_color_env(self, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
        monkeypatch.setenv("NO_COLOR", "1")
        OutputManager().error("bad")
        assert capsys.readouterr().err == "Error: bad\n"


class TestResults:
    def test_json(self, capsys) -> None:
        OutputManager(format=OutputFormat.JSON).print_result({"a": 1})
        assert json.loads(capsys.readouterr().out) == {"a": 1}

    def test_plain_mapping(self, capsys) -> None:
        OutputManager(format=OutputFormat.PLAIN).print_result({"a": 1, "b": {"c": 2}})
        assert capsys.readouterr().out == 'a\t1\nb\t{"c": 2}\n'

    def test_plain_string(self, capsys) -> None:
        OutputManager(format=OutputFormat.PLAIN).print_result("hello")
        assert capsys.readouterr().out == "hello\n"

    def test_table_json(self, capsys) -> None:
        OutputManager(format=OutputFormat.JSON).print_table(["k", "v"], [["a", "1"]])
        assert json.loads(capsys.readouterr().out) == [{"k": "a", "v": "1"}]

    def test_table_plain(self, capsys) -> None:
        OutputManager(format=OutputFormat.PLAIN).print_table(["k", "v"], [["a", "1"]])
        assert capsys.readouterr().out == "k\tv\na\t1\n"


class TestDiagnostics:
    def test_diagnostics_go_to_stderr(self, capsys) -> None:
        out = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        out.info("hello")
        out.warning("careful")
        out.suggest("next")
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "hello" in captured.err
        assert "Warning: careful" in captured.err
        assert "→ next" in captured.err

    def test_quiet_keeps_errors(self, capsys) -> None:
        out = OutputManager(no_color=True, quiet=True)
        out.info("hidden")
        out.success("hidden")
        out.error("shown")
        err = capsys.readouterr().err
        assert "hidden" not in err
        assert "Error: shown" in err

    def test_debug_only_when_verbose(self, capsys) -> None:
        OutputManager(no_color=True).debug("nope")
        OutputManager(no_color=True, verbose=True).debug("yes")
        err = capsys.readouterr().err
        assert "nope" not in err
        assert "[debug] yes" in err


class TestGlobalInstance:
    def test_lazy_default(self) -> None:
        reset_output()
        assert get_output() is get_output()

    def test_module_helpers_use_installed_manager(self, capsys) -> None:
        set_output(OutputManager(format=OutputFormat.JSON, no_color=True))
        print_result([1, 2])
        info("note")
        captured = capsys.readouterr()
        assert json.loads(captured.out) == [1, 2]
        assert "note" in captured.err
