# Copyright 2026 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# SPDX-License-Identifier: Apache-2.0

"""Report rendering: a rich summary table plus Rust-style diagnostics.

Output format::

    Category           Package          Severity    Message
    denied             term@0.7.0       ✖ error     package term@0.7.0 is ...
    ...

    error[denied]: package term@0.7.0 is explicitly denied: use termcolor
      --> term@0.7.0
       = note: reason: use termcolor

    Found 1 error(s), 2 warning(s).
"""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from depaudit.diagnostics import Report, Severity

__all__ = [
    'format_report',
    'print_report',
    'report_to_json',
]

_SEVERITY_STYLE: dict[Severity, tuple[str, str, str]] = {
    Severity.VIOLATION: ('✖', 'error', 'red'),
    Severity.WARNING: ('⚠', 'warning', 'yellow'),
}


def print_report(report: Report, console: Console | None = None) -> None:
    """Print *report* with Rich formatting.

    Args:
        report: The aggregated audit report.
        console: Rich :class:`Console` to print to.  When ``None``,
            a default ``Console()`` is created (auto-detects TTY).
    """
    if console is None:
        console = Console()

    if not report.diagnostics:
        console.print('[bold green]No findings. Audit passed.[/]')
        return

    # ── Summary table ──
    table = Table(
        show_header=True,
        header_style='bold',
        show_edge=False,
        pad_edge=False,
        expand=True,
    )
    table.add_column('Category', min_width=18, style='bold')
    table.add_column('Package', min_width=16)
    table.add_column('Severity', min_width=10)
    table.add_column('Message', ratio=3, style='dim')

    for d in report.diagnostics:
        icon, label, style = _SEVERITY_STYLE[d.severity]
        table.add_row(d.category.value, Text(d.subject), Text(f'{icon} {label}', style=style), Text(d.message))

    console.print(table)
    console.print()

    # ── Rust-style diagnostics ──
    for d in report.diagnostics:
        _, label, style = _SEVERITY_STYLE[d.severity]
        console.print(f'[bold {style}]{label}\\[{d.category.value}][/][bold]: {escape(d.message)}[/]')
        console.print(f'  [cyan]-->[/] {escape(d.subject)}')
        for note in d.notes:
            console.print(f'   [cyan]=[/] [bold]note[/]: {escape(note)}')
        console.print()

    errors = len(report.violations)
    warnings = len(report.warnings)
    parts: list[str] = []
    if errors:
        parts.append(f'[bold red]{errors} error(s)[/]')
    if warnings:
        parts.append(f'[bold yellow]{warnings} warning(s)[/]')
    console.print(f'Found {", ".join(parts)}.')
    if report.passed:
        console.print('[bold green]Audit passed.[/]')
    else:
        console.print('[bold red]Audit failed.[/]')


def format_report(report: Report, *, color: bool = False, width: int = 120) -> str:
    """Capture :func:`print_report` output as a string.

    Args:
        report: The aggregated audit report.
        color: If ``True``, include ANSI color codes in the output.
        width: Console width in columns.

    Returns:
        Multi-line formatted string.
    """
    buf = StringIO()
    console = Console(file=buf, force_terminal=color, width=width)
    print_report(report, console=console)
    return buf.getvalue().rstrip('\n')


def report_to_json(report: Report, *, indent: int = 2) -> str:
    """Serialize *report* to JSON."""
    return report.to_json(indent=indent)
