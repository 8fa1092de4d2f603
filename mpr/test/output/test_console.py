"""Tests for mpr.output.console module."""

from __future__ import annotations

import pytest

from mpr.output.console import (
    ConsoleProtocol,
    MockConsole,
    OutputRecord,
    RichConsole,
    Style,
)


class TestStyle:
    def test_str_conversion(self) -> None:
        assert str(Style.SUCCESS) == "success"
        assert str(Style.ERROR) == "error"
        assert str(Style.DEFAULT) == "default"

    def test_all_styles_exist(self) -> None:
        expected = {"DEFAULT", "SUCCESS", "ERROR", "WARNING", "INFO", "DIM", "BOLD", "HEADER"}
        assert {s.name for s in Style} == expected


class TestMockConsole:
    def test_print_captures_message(self) -> None:
        console = MockConsole()
        console.print("hello")
        assert console.outputs == [OutputRecord("hello", Style.DEFAULT)]

    def test_prefixed_levels(self) -> None:
        console = MockConsole()
        console.success("tagged 1.21_0.2.0")
        console.error("build failed")
        console.warning("snapshot unreadable")
        console.info("nothing to do")

        assert console.messages == [
            "OK tagged 1.21_0.2.0",
            "error: build failed",
            "warning: snapshot unreadable",
            "info: nothing to do",
        ]
        assert [o.style for o in console.outputs] == [
            Style.SUCCESS,
            Style.ERROR,
            Style.WARNING,
            Style.INFO,
        ]

    def test_header_and_newline(self) -> None:
        console = MockConsole()
        console.header("[1/2] 1.21")
        console.newline()
        assert console.outputs[0] == OutputRecord("[1/2] 1.21", Style.HEADER)
        assert console.outputs[1] == OutputRecord("", Style.DEFAULT)

    def test_has_error_and_warning(self) -> None:
        console = MockConsole()
        assert not console.has_error()
        assert not console.has_warning()

        console.warning("w")
        assert console.has_warning()
        assert not console.has_error()

        console.error("e")
        assert console.has_error()

    def test_find_and_text(self) -> None:
        console = MockConsole()
        console.print("first line")
        console.print("second line")
        console.print("other")

        assert len(console.find("line")) == 2
        assert console.text == "first line\nsecond line\nother"

    def test_satisfies_protocol(self) -> None:
        console: ConsoleProtocol = MockConsole()
        console.print("ok")


class TestRichConsole:
    def test_brackets_are_not_markup(self, capsys: pytest.CaptureFixture[str]) -> None:
        console = RichConsole()
        console.print("[1.21] release")
        console.warning("[red]literal[/red]")

        out = capsys.readouterr().out
        assert "[1.21] release" in out
        assert "[red]literal[/red]" in out
        assert "warning:" in out

    def test_every_method_prints(self, capsys: pytest.CaptureFixture[str]) -> None:
        console: ConsoleProtocol = RichConsole()
        console.success("done")
        console.error("bad")
        console.info("note")
        console.header("Summary")
        console.newline()
        console.print("dim", Style.DIM)

        out = capsys.readouterr().out
        for fragment in ("OK", "done", "error:", "bad", "info:", "note", "Summary", "dim"):
            assert fragment in out
