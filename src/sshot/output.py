"""Console output for sshot.

Every host writes its progress to a :class:`Transcript`. A live transcript
prints each line to the shared rich console as it is written; a buffered
transcript only records, and is flushed by the scheduler once all parallel
hosts have finished, so host blocks never interleave. Both keep the full
text for the host's :class:`~sshot.types.HostResult`.

Console writes go through :data:`CONSOLE_LOCK` so that lines streamed from
concurrently running commands are never split.
"""

import threading
from typing import IO

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from .types import GroupConfig, PlaybookResult

CONSOLE_LOCK = threading.RLock()

# Truncation thresholds for task output
INLINE_OUTPUT_LIMIT = 500
LISTED_LINES_LIMIT = 10
EDGE_LINES = 5

OUTPUT_STYLE = "bright_black"


def make_console(no_color: bool = False, file: IO[str] | None = None) -> Console:
    """Create the console used for playbook output."""
    return Console(file=file, no_color=no_color, highlight=False, soft_wrap=True)


def format_duration(seconds: float) -> str:
    """Format a duration rounded to whole seconds.

    Example:
        >>> format_duration(3723), format_duration(125), format_duration(7.4)
        ('1h2m3s', '2m5s', '7s')
    """
    total = int(round(seconds))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h{minutes}m{secs}s"
    if minutes:
        return f"{minutes}m{secs}s"
    return f"{secs}s"


def format_output(output: str, full: bool = False) -> list[str]:
    """Render task output as indented transcript lines.

    Without ``full``, output shorter than 500 characters is shown inline,
    up to 10 lines are listed, and longer output shows the first 5 and last
    5 lines around an omission marker.

    Args:
        output: Raw task output
        full: Never truncate

    Returns:
        Transcript lines
    """
    trimmed = output.strip()
    lines = trimmed.split("\n")

    if full:
        if len(lines) == 1:
            return [f"    Output: {trimmed}"]
        return [f"    Output: ({len(lines)} lines)"] + [f"      {line}" for line in lines]

    if len(output) < INLINE_OUTPUT_LIMIT:
        return [f"    Output: {trimmed}"]

    if len(lines) <= LISTED_LINES_LIMIT:
        return ["    Output:"] + [f"      {line}" for line in lines]

    omitted = len(lines) - 2 * EDGE_LINES
    return (
        [f"    Output (showing first {EDGE_LINES} and last {EDGE_LINES} lines of {len(lines)} total):"]
        + [f"      {line}" for line in lines[:EDGE_LINES]]
        + [f"      ... ({omitted} lines omitted) ..."]
        + [f"      {line}" for line in lines[-EDGE_LINES:]]
    )


class Transcript:
    """Output of one host.

    Attributes:
        console: Console that receives live or flushed lines
        live: Print lines as they are written instead of buffering them
        full_output: Never truncate task output
    """

    def __init__(
        self,
        console: Console | None = None,
        live: bool = True,
        full_output: bool = False,
    ) -> None:
        self.console = console or make_console()
        self.live = live
        self.full_output = full_output
        self._lines: list[tuple[str, str]] = []

    def write(self, text: str, style: str = "") -> None:
        """Record a line, printing it right away when live."""
        with CONSOLE_LOCK:
            self._lines.append((text, style))
            if self.live:
                self.console.print(Text(text, style=style))

    def output(self, output: str) -> None:
        """Write task output using the truncation rules."""
        if not output:
            return
        for line in format_output(output, self.full_output):
            self.write(line, OUTPUT_STYLE)

    def stream(self, line: str, is_stderr: bool = False) -> None:
        """Write one line of output streamed from a running command."""
        prefix = "    │ [stderr] " if is_stderr else "    │ "
        self.write(f"{prefix}{line}", "dim" if is_stderr else "")

    def flush(self) -> None:
        """Print every recorded line (used for buffered transcripts)."""
        with CONSOLE_LOCK:
            for text, style in self._lines:
                self.console.print(Text(text, style=style))

    @property
    def lines(self) -> list[str]:
        return [text for text, _ in self._lines]

    @property
    def text(self) -> str:
        return "".join(f"{text}\n" for text, _ in self._lines)


def render_banner(playbook_name: str, parallel: bool = False, dry_run: bool = False) -> Panel:
    """Playbook header shown before any host runs."""
    body = Text()
    if dry_run:
        body.append("🔍 DRY-RUN MODE - No actual changes will be made\n", style="yellow")
    body.append("PLAYBOOK: ", style="bold")
    body.append(playbook_name or "(unnamed)")
    if parallel:
        body.append("\nMODE: Parallel Execution")
    return Panel(body, box=box.DOUBLE, expand=False)


def render_group_header(group: GroupConfig) -> Text:
    text = Text(f"═══ Group: {group.name} (order: {group.order}) ═══", style="magenta")
    if group.depends_on:
        text.append(f"\n    Dependencies: {', '.join(group.depends_on)}", style="")
    return text


def render_summary(result: PlaybookResult) -> Panel:
    """Final summary box.

    Lists success and failure counts, total time, the run-level error and
    each failed host with its error.
    """
    body = Text()
    duration = format_duration(result.duration)

    if result.success:
        title = "✓ DRY-RUN COMPLETED" if result.dry_run else "✓ PLAYBOOK COMPLETED SUCCESSFULLY"
        body.append(title, style="bold green")
        body.append(f"\n  All {result.successful} host(s) completed successfully")
        body.append(f"\n  Total time: {duration}")
        return Panel(body, box=box.DOUBLE, border_style="green", expand=False)

    body.append("✗ PLAYBOOK FAILED", style="bold red")
    body.append(f"\n  Successful: {result.successful}  Failed: {result.failed}")
    body.append(f"\n  Total time: {duration}")
    if result.error is not None:
        body.append(f"\n  Error: {result.error}", style="red")
    failed = [r for r in result.results if r.is_failure]
    if failed:
        body.append("\n  Failed hosts:")
        for host_result in failed:
            body.append(f"\n    - {host_result.host.name}: {host_result.error}")
    return Panel(body, box=box.DOUBLE, border_style="red", expand=False)
