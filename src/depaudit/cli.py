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

"""Command line entry point.

Commands::

    depaudit check GRAPH [--config deny.toml] [--format text|json]
    depaudit hash FILE...

``check`` exits 0 when the audit passes, 1 when it finds violations
and 2 when an input is invalid (malformed graph or policy, stale
clarification, bad license expression) or the run times out.

``hash`` prints the CRC-32 and SHA-256 hashes of license files, in the
form ``[[licenses.clarify]]`` expects.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Sequence
from dataclasses import replace
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from depaudit import __version__
from depaudit.audit import DEFAULT_PARTITIONS, run_audit
from depaudit.checks._license_resolve import file_hash
from depaudit.config import load_policy
from depaudit.errors import AuditError
from depaudit.graph import LicenseFile, load_graph
from depaudit.logging import configure_logging
from depaudit.render import print_report, report_to_json

__all__ = [
    'build_parser',
    'main',
]

EXIT_OK = 0
EXIT_VIOLATIONS = 1
EXIT_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    """Return the ``depaudit`` argument parser."""
    parser = argparse.ArgumentParser(
        prog='depaudit',
        description='Enforce dependency bans, version uniqueness and license policy.',
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging.')
    parser.add_argument('-q', '--quiet', action='store_true', help='Only log warnings and errors.')
    parser.add_argument('--json-log', action='store_true', help='Emit logs as JSON lines on stderr.')
    sub = parser.add_subparsers(dest='command', required=True)

    check = sub.add_parser('check', help='Audit a resolved dependency graph.')
    check.add_argument('graph', type=Path, help='Resolution document (JSON).')
    check.add_argument(
        '--config',
        type=Path,
        default=Path('deny.toml'),
        help='Policy file (default: ./deny.toml).',
    )
    check.add_argument(
        '--format',
        choices=('text', 'json'),
        default='text',
        help='Report format written to stdout.',
    )
    check.add_argument(
        '--all-features',
        action='store_true',
        help='Activate every optional dependency, overriding [graph] all-features.',
    )
    check.add_argument(
        '--partitions',
        type=int,
        default=DEFAULT_PARTITIONS,
        help=f'Number of concurrent license-check tasks (default: {DEFAULT_PARTITIONS}).',
    )
    check.add_argument('--timeout', type=float, default=None, help='Abort the audit after this many seconds.')

    hash_cmd = sub.add_parser('hash', help='Print license file hashes for clarifications.')
    hash_cmd.add_argument('files', type=Path, nargs='+', help='License files to hash.')
    return parser


def _cmd_check(args: argparse.Namespace, out: Console, err: Console) -> int:
    try:
        policy = load_policy(args.config)
        if args.all_features:
            policy = replace(policy, graph=replace(policy.graph, all_features=True))
        graph = load_graph(
            args.graph,
            all_features=policy.graph.all_features,
            exclude=policy.graph.exclude,
        )
        report = run_audit(graph, policy, partitions=args.partitions, timeout=args.timeout)
    except AuditError as exc:
        err.print(f'[bold red]error[/][bold]: {escape(str(exc))}[/]')
        return EXIT_ERROR
    except OSError as exc:
        err.print(f'[bold red]error[/][bold]: cannot read {escape(str(args.graph))}: {escape(str(exc))}[/]')
        return EXIT_ERROR
    except asyncio.TimeoutError:
        err.print(f'[bold red]error[/][bold]: audit did not finish within {args.timeout}s[/]')
        return EXIT_ERROR
    except ValueError as exc:
        err.print(f'[bold red]error[/][bold]: {escape(str(exc))}[/]')
        return EXIT_ERROR

    if args.format == 'json':
        sys.stdout.write(report_to_json(report) + '\n')
    else:
        print_report(report, console=out)
    return EXIT_OK if report.passed else EXIT_VIOLATIONS


def _cmd_hash(args: argparse.Namespace, out: Console, err: Console) -> int:
    status = EXIT_OK
    for path in args.files:
        try:
            lf = LicenseFile(path=path.name, content=path.read_bytes())
        except OSError as exc:
            err.print(f'[bold red]error[/][bold]: {escape(str(exc))}[/]')
            status = EXIT_ERROR
            continue
        out.print(
            f'{escape(str(path))}: hash = {file_hash(lf, "crc32")}  # or "{file_hash(lf, "sha256")}"',
            highlight=False,
        )
    return status


def main(argv: Sequence[str] | None = None) -> int:
    """Run the CLI and return the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(verbose=args.verbose, quiet=args.quiet, json_log=args.json_log)

    out = Console()
    err = Console(stderr=True)
    if args.command == 'check':
        return _cmd_check(args, out, err)
    return _cmd_hash(args, out, err)


if __name__ == '__main__':
    sys.exit(main())
