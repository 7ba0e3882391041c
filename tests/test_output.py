"""Tests for console output and formatting."""

from io import StringIO

import pytest

from sshot.exceptions import GroupFailed, TaskExecutionError
from sshot.output import (
    Transcript,
    format_duration,
    format_output,
    make_console,
    render_banner,
    render_group_header,
    render_summary,
)
from sshot.types import GroupConfig, HostConfig, HostResult, PlaybookResult


def rendered(renderable):
    buffer = StringIO()
    make_console(no_color=True, file=buffer).print(renderable)
    return buffer.getvalue()


@pytest.mark.parametrize(
    "seconds,expected",
    [(0, "0s"), (7.4, "7s"), (59.6, "1m0s"), (125, "2m5s"), (3723, "1h2m3s")],
)
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected


class TestFormatOutput:
    """Tests for output truncation."""

    def test_short_output_inline(self):
        assert format_output("hello\nworld\n") == ["    Output: hello\nworld"]

    def test_long_output_listed(self):
        lines = [f"line {i} " + "x" * 60 for i in range(8)]
        result = format_output("\n".join(lines))
        assert result[0] == "    Output:"
        assert len(result) == 9

    def test_long_output_truncated(self):
        """Test more than 10 lines shows the first and last 5."""
        lines = [f"line {i:02d} " + "x" * 40 for i in range(30)]
        result = format_output("\n".join(lines))

        assert result[0] == "    Output (showing first 5 and last 5 lines of 30 total):"
        assert result[1].startswith("      line 00")
        assert result[6] == "      ... (20 lines omitted) ..."
        assert result[-1].startswith("      line 29")
        assert len(result) == 12

    def test_full_output(self):
        lines = [f"line {i:02d} " + "x" * 40 for i in range(30)]
        result = format_output("\n".join(lines), full=True)
        assert result[0] == "    Output: (30 lines)"
        assert len(result) == 31

    def test_full_output_single_line(self):
        assert format_output("done\n", full=True) == ["    Output: done"]


class TestTranscript:
    """Tests for Transcript."""

    def test_live_prints_immediately(self, console, console_buffer):
        transcript = Transcript(console)
        transcript.write("┌─ Host: web01 (10.0.0.1)")
        assert "Host: web01" in console_buffer.getvalue()
        assert transcript.lines == ["┌─ Host: web01 (10.0.0.1)"]

    def test_buffered_prints_on_flush(self, console, console_buffer):
        transcript = Transcript(console, live=False)
        transcript.write("first")
        transcript.write("second", "green")
        assert console_buffer.getvalue() == ""

        transcript.flush()
        assert console_buffer.getvalue().splitlines() == ["first", "second"]
        assert transcript.text == "first\nsecond\n"

    def test_output_and_stream(self, transcript):
        transcript.output("")
        transcript.output("ok")
        transcript.stream("compiling", False)
        transcript.stream("warning", True)
        assert transcript.lines == ["    Output: ok", "    │ compiling", "    │ [stderr] warning"]


class TestRender:
    """Tests for banners and summaries."""

    def test_banner(self):
        text = rendered(render_banner("Deploy", parallel=True, dry_run=True))
        assert "DRY-RUN MODE" in text
        assert "PLAYBOOK: Deploy" in text
        assert "MODE: Parallel Execution" in text

    def test_group_header(self):
        text = rendered(render_group_header(GroupConfig(name="web", order=2, depends_on=["db"])))
        assert "Group: web (order: 2)" in text
        assert "Dependencies: db" in text

    def test_summary_success(self):
        result = PlaybookResult(results=[HostResult(host=HostConfig(name="a"), success=True)], duration=65)
        text = rendered(render_summary(result))
        assert "PLAYBOOK COMPLETED SUCCESSFULLY" in text
        assert "All 1 host(s) completed successfully" in text
        assert "Total time: 1m5s" in text

    def test_summary_dry_run(self):
        assert "DRY-RUN COMPLETED" in rendered(render_summary(PlaybookResult(dry_run=True)))

    def test_summary_failure(self):
        result = PlaybookResult(
            results=[
                HostResult(host=HostConfig(name="a"), success=True),
                HostResult(host=HostConfig(name="b"), success=False, error=TaskExecutionError("exit status 1")),
            ],
            error=GroupFailed("group 'web' failed"),
        )
        text = rendered(render_summary(result))
        assert "PLAYBOOK FAILED" in text
        assert "Successful: 1  Failed: 1" in text
        assert "Error: group 'web' failed" in text
        assert "- b: exit status 1" in text
