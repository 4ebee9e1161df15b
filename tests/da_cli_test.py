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

"""Tests for report rendering and the command line."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
from depaudit._types import Severity
from depaudit.cli import main
from depaudit.diagnostics import Category, Diagnostic, aggregate
from depaudit.render import format_report, report_to_json

DENY_TOML = """\
[bans]
multiple-versions = "deny"
deny = [{ crate = "term", reason = "termcolor replaces it" }]

[licenses]
allow = ["MIT"]
unused-allowed-license = "allow"
"""


def _pkg(name: str, version: str, *deps: str) -> dict[str, Any]:
    return {
        'name': name,
        'version': version,
        'license': 'MIT',
        'dependencies': [{'name': d.split('@')[0], 'version': d.split('@')[1]} for d in deps],
    }


@pytest.fixture()
def workspace(tmp_path: Path) -> Path:
    """A directory holding deny.toml and two resolution documents."""
    (tmp_path / 'deny.toml').write_text(DENY_TOML, encoding='utf-8')
    (tmp_path / 'clean.json').write_text(json.dumps({'packages': [_pkg('app', '1.0.0', 'x@1.0.0'), _pkg('x', '1.0.0')]}))
    (tmp_path / 'dirty.json').write_text(json.dumps({'packages': [_pkg('app', '1.0.0', 'term@0.7.0'), _pkg('term', '0.7.0')]}))
    return tmp_path


# ── Rendering ────────────────────────────────────────────────────────


class TestRender:
    """Tests for report rendering."""

    def test_rust_style_block(self) -> None:
        """Test each finding renders as an error block."""
        report = aggregate([
            Diagnostic(
                severity=Severity.VIOLATION,
                category=Category.DENIED,
                package='term',
                version='0.7.0',
                message='package term@0.7.0 is explicitly denied: termcolor replaces it',
                notes=('reason: termcolor replaces it',),
            ),
            Diagnostic(
                severity=Severity.WARNING,
                category=Category.UNMATCHED_SKIP,
                package='ghost',
                message='skip entry ghost does not match any package in the graph',
            ),
        ])
        text = format_report(report)
        assert 'error[denied]: package term@0.7.0 is explicitly denied' in text
        assert '--> term@0.7.0' in text
        assert '= note: reason: termcolor replaces it' in text
        assert 'warning[unmatched-skip]' in text
        assert 'Found 1 error(s), 1 warning(s).' in text
        assert 'Audit failed.' in text

    def test_empty_report(self) -> None:
        """Test an empty report says it passed."""
        assert 'Audit passed' in format_report(aggregate())

    def test_json(self) -> None:
        """Test JSON rendering."""
        assert json.loads(report_to_json(aggregate()))['passed'] is True


# ── CLI ──────────────────────────────────────────────────────────────


class TestCli:
    """Tests for the depaudit command."""

    def test_clean_graph_exits_zero(self, workspace: Path) -> None:
        """Test a passing audit exits 0."""
        assert main(['-q', 'check', str(workspace / 'clean.json'), '--config', str(workspace / 'deny.toml')]) == 0

    def test_violation_exits_one(self, workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """Test a failing audit exits 1."""
        code = main(['-q', 'check', str(workspace / 'dirty.json'), '--config', str(workspace / 'deny.toml')])
        assert code == 1
        assert 'denied' in capsys.readouterr().out

    def test_json_format(self, workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """Test JSON output on stdout."""
        args = ['-q', 'check', str(workspace / 'dirty.json'), '--config', str(workspace / 'deny.toml')]
        main([*args, '--format', 'json'])
        data = json.loads(capsys.readouterr().out)
        assert data['diagnostics'][0]['package'] == 'term'

    def test_bad_policy_exits_two(self, workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """Test an invalid policy exits 2."""
        bad = workspace / 'bad.toml'
        bad.write_text('[bans]\nmultiple-versions = "sometimes"\n')
        assert main(['-q', 'check', str(workspace / 'clean.json'), '--config', str(bad)]) == 2
        assert 'multiple-versions' in capsys.readouterr().err

    def test_malformed_graph_exits_two(self, workspace: Path) -> None:
        """Test a malformed graph exits 2."""
        broken = workspace / 'broken.json'
        broken.write_text(json.dumps({'packages': [_pkg('app', '1.0.0', 'ghost@1.0.0')]}))
        assert main(['-q', 'check', str(broken), '--config', str(workspace / 'deny.toml')]) == 2

    def test_missing_graph_exits_two(self, workspace: Path) -> None:
        """Test a missing graph file exits 2."""
        assert main(['-q', 'check', str(workspace / 'nope.json'), '--config', str(workspace / 'deny.toml')]) == 2

    def test_hash_command(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """Test hash prints both hash forms."""
        lic = tmp_path / 'LICENSE'
        lic.write_bytes(b'abc')
        assert main(['-q', 'hash', str(lic)]) == 0
        out = capsys.readouterr().out
        assert 'hash = 0x352441c2' in out
        assert 'sha256:ba7816bf' in out
