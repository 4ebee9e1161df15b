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

"""Tests for the ban rule engine."""

from __future__ import annotations

from typing import Any

import pytest
from depaudit._types import LintLevel, Severity
from depaudit.checks import check_bans, skip_tree_members
from depaudit.diagnostics import Category, Diagnostic
from depaudit.errors import PolicyError
from depaudit.graph import DependencyGraph, build
from depaudit.policy import BanKind, BanRule, BansPolicy


def _pkg(name: str, version: str, *deps: str) -> dict[str, Any]:
    return {
        'name': name,
        'version': version,
        'dependencies': [{'name': d.split('@')[0], 'version': d.split('@')[1]} for d in deps],
    }


def _graph(*packages: dict[str, Any]) -> DependencyGraph:
    return build({'packages': list(packages)})


def _of(diags: list[Diagnostic], category: Category) -> list[Diagnostic]:
    return [d for d in diags if d.category is category]


@pytest.fixture()
def two_versions() -> DependencyGraph:
    """app -> (old-user -> itertools 0.12.1, itertools 0.13.0)."""
    return _graph(
        _pkg('app', '1.0.0', 'old-user@1.0.0', 'itertools@0.13.0'),
        _pkg('old-user', '1.0.0', 'itertools@0.12.1'),
        _pkg('itertools', '0.12.1'),
        _pkg('itertools', '0.13.0'),
    )


# ── Rules ────────────────────────────────────────────────────────────


class TestBanRule:
    """Tests for BanRule constructors."""

    def test_deny_parses_spec(self) -> None:
        """Test deny parses a name@version spec."""
        rule = BanRule.deny('term@0.7.0', reason='unmaintained')
        assert rule.kind is BanKind.DENY
        assert (rule.name, rule.version, rule.reason) == ('term', '0.7.0', 'unmaintained')

    def test_skip_tree_negative_depth(self) -> None:
        """Test negative skip-tree depth is rejected."""
        with pytest.raises(PolicyError):
            BanRule.skip_tree('windows-sys', depth=-1)

    def test_empty_spec(self) -> None:
        """Test an empty spec is rejected."""
        with pytest.raises(PolicyError):
            BanRule.skip('@1.0.0')


# ── Denied packages ──────────────────────────────────────────────────


class TestDenied:
    """Tests for deny rules."""

    def test_one_violation_per_occurrence(self) -> None:
        """Test every version of a denied package is reported once."""
        graph = _graph(
            _pkg('app', '1.0.0', 'term@0.5.0', 'tool@1.0.0'),
            _pkg('tool', '1.0.0', 'term@0.7.0'),
            _pkg('term', '0.5.0'),
            _pkg('term', '0.7.0'),
        )
        policy = BansPolicy(
            multiple_versions=LintLevel.ALLOW,
            rules=(BanRule.deny('term', reason='use termcolor'),),
        )
        denied = _of(check_bans(graph, policy), Category.DENIED)
        assert [d.version for d in denied] == ['0.5.0', '0.7.0']
        assert all(d.severity is Severity.VIOLATION for d in denied)
        assert all('use termcolor' in d.message for d in denied)
        assert all('reason: use termcolor' in d.notes for d in denied)

    def test_versioned_deny(self) -> None:
        """Test a versioned deny only matches that version."""
        graph = _graph(_pkg('app', '1.0.0', 'term@0.7.0'), _pkg('term', '0.7.0'))
        policy = BansPolicy(rules=(BanRule.deny('term@0.5.0'),))
        assert _of(check_bans(graph, policy), Category.DENIED) == []

    def test_wrappers_all_dependents(self) -> None:
        """Test a deny is lifted when every dependent is a wrapper."""
        graph = _graph(
            _pkg('app', '1.0.0', 'native-tls@1.0.0'),
            _pkg('native-tls', '1.0.0', 'openssl@0.10.0'),
            _pkg('openssl', '0.10.0'),
        )
        policy = BansPolicy(rules=(BanRule.deny('openssl', wrappers={'native-tls'}),))
        assert _of(check_bans(graph, policy), Category.DENIED) == []

    def test_wrappers_with_outside_dependent(self) -> None:
        """Test a deny holds when a non-wrapper also depends on it."""
        graph = _graph(
            _pkg('app', '1.0.0', 'native-tls@1.0.0', 'openssl@0.10.0'),
            _pkg('native-tls', '1.0.0', 'openssl@0.10.0'),
            _pkg('openssl', '0.10.0'),
        )
        policy = BansPolicy(rules=(BanRule.deny('openssl', wrappers={'native-tls'}),))
        denied = _of(check_bans(graph, policy), Category.DENIED)
        assert len(denied) == 1
        assert 'depended on by non-wrapper(s): app' in denied[0].notes

    def test_skip_tree_suppresses_deny(self) -> None:
        """Test a denied package inside a skip-tree is not reported."""
        graph = _graph(
            _pkg('app', '1.0.0', 'legacy@1.0.0', 'term@0.7.0'),
            _pkg('legacy', '1.0.0', 'term@0.5.0'),
            _pkg('term', '0.5.0'),
            _pkg('term', '0.7.0'),
        )
        policy = BansPolicy(
            multiple_versions=LintLevel.ALLOW,
            rules=(BanRule.deny('term'), BanRule.skip_tree('legacy')),
        )
        denied = _of(check_bans(graph, policy), Category.DENIED)
        assert [d.subject for d in denied] == ['term@0.7.0']


# ── Multiple versions ────────────────────────────────────────────────


class TestMultipleVersions:
    """Tests for duplicate version detection."""

    def test_two_versions_reported(self, two_versions: DependencyGraph) -> None:
        """Test two uncovered versions produce one diagnostic naming both."""
        diags = _of(check_bans(two_versions, BansPolicy(multiple_versions=LintLevel.DENY)), Category.MULTIPLE_VERSIONS)
        assert len(diags) == 1
        assert diags[0].package == 'itertools'
        assert diags[0].severity is Severity.VIOLATION
        assert diags[0].message.endswith('0.12.1, 0.13.0')

    def test_warn_level(self, two_versions: DependencyGraph) -> None:
        """Test warn level yields a warning."""
        diags = _of(check_bans(two_versions, BansPolicy(multiple_versions=LintLevel.WARN)), Category.MULTIPLE_VERSIONS)
        assert [d.severity for d in diags] == [Severity.WARNING]

    def test_allow_level(self, two_versions: DependencyGraph) -> None:
        """Test allow level disables the lint."""
        diags = check_bans(two_versions, BansPolicy(multiple_versions=LintLevel.ALLOW))
        assert _of(diags, Category.MULTIPLE_VERSIONS) == []

    def test_skip_one_version(self, two_versions: DependencyGraph) -> None:
        """Test skipping one of two versions clears the lint."""
        policy = BansPolicy(multiple_versions=LintLevel.DENY, rules=(BanRule.skip('itertools@0.12.1'),))
        assert check_bans(two_versions, policy) == []

    def test_skip_consumed_per_version(self) -> None:
        """Test a skip excuses only the version it names."""
        graph = _graph(
            _pkg('app', '1.0.0', 'x@1.0.0', 'x@2.0.0', 'x@3.0.0'),
            _pkg('x', '1.0.0'),
            _pkg('x', '2.0.0'),
            _pkg('x', '3.0.0'),
        )
        policy = BansPolicy(multiple_versions=LintLevel.DENY, rules=(BanRule.skip('x@1.0.0'),))
        diags = _of(check_bans(graph, policy), Category.MULTIPLE_VERSIONS)
        assert len(diags) == 1
        assert diags[0].message == 'found 2 uncovered versions of x: 2.0.0, 3.0.0'

    def test_bare_skip_covers_all_versions(self, two_versions: DependencyGraph) -> None:
        """Test a skip without a version covers every version."""
        policy = BansPolicy(multiple_versions=LintLevel.DENY, rules=(BanRule.skip('itertools'),))
        assert _of(check_bans(two_versions, policy), Category.MULTIPLE_VERSIONS) == []

    def test_skip_tree_covers_subtree(self, two_versions: DependencyGraph) -> None:
        """Test a skip-tree covers versions inside its subtree."""
        policy = BansPolicy(multiple_versions=LintLevel.DENY, rules=(BanRule.skip_tree('old-user'),))
        assert check_bans(two_versions, policy) == []

    def test_sibling_outside_skip_tree_still_evaluated(self) -> None:
        """Test packages outside the skip-tree are still checked."""
        graph = _graph(
            _pkg('app', '1.0.0', 'win@1.0.0', 'other@1.0.0', 'y@3.0.0'),
            _pkg('win', '1.0.0', 'y@1.0.0'),
            _pkg('other', '1.0.0', 'y@2.0.0'),
            _pkg('y', '1.0.0'),
            _pkg('y', '2.0.0'),
            _pkg('y', '3.0.0'),
        )
        policy = BansPolicy(multiple_versions=LintLevel.DENY, rules=(BanRule.skip_tree('win'),))
        diags = _of(check_bans(graph, policy), Category.MULTIPLE_VERSIONS)
        assert len(diags) == 1
        assert diags[0].message == 'found 2 uncovered versions of y: 2.0.0, 3.0.0'

    def test_skip_tree_depth(self) -> None:
        """Test skip-tree depth limits what is covered."""
        graph = _graph(
            _pkg('app', '1.0.0', 'win@1.0.0', 'z@2.0.0'),
            _pkg('win', '1.0.0', 'mid@1.0.0'),
            _pkg('mid', '1.0.0', 'z@1.0.0'),
            _pkg('z', '1.0.0'),
            _pkg('z', '2.0.0'),
        )
        shallow = BansPolicy(multiple_versions=LintLevel.DENY, rules=(BanRule.skip_tree('win', depth=1),))
        deep = BansPolicy(multiple_versions=LintLevel.DENY, rules=(BanRule.skip_tree('win', depth=2),))
        assert len(_of(check_bans(graph, shallow), Category.MULTIPLE_VERSIONS)) == 1
        assert _of(check_bans(graph, deep), Category.MULTIPLE_VERSIONS) == []

    def test_single_uncovered_version_tolerated_by_default(self, two_versions: DependencyGraph) -> None:
        """Test one uncovered version is not flagged by default."""
        policy = BansPolicy(multiple_versions=LintLevel.DENY, rules=(BanRule.skip('itertools@0.12.1'),))
        assert _of(check_bans(two_versions, policy), Category.MULTIPLE_VERSIONS) == []

    def test_zero_tolerance(self, two_versions: DependencyGraph) -> None:
        """Test zero tolerance flags a single uncovered version."""
        policy = BansPolicy(
            multiple_versions=LintLevel.DENY,
            multiple_versions_zero_tolerance=True,
            rules=(BanRule.skip('itertools@0.12.1'),),
        )
        diags = _of(check_bans(two_versions, policy), Category.MULTIPLE_VERSIONS)
        assert len(diags) == 1
        assert diags[0].message == 'found 1 uncovered versions of itertools: 0.13.0'

    def test_notes_name_dependents(self, two_versions: DependencyGraph) -> None:
        """Test notes say who pulls each version in."""
        diags = _of(check_bans(two_versions, BansPolicy()), Category.MULTIPLE_VERSIONS)
        assert 'itertools@0.12.1 required by old-user@1.0.0' in diags[0].notes


# ── Stale exceptions ─────────────────────────────────────────────────


class TestStaleExceptions:
    """Tests for unmatched and unnecessary exceptions."""

    def test_skip_unknown_crate(self, two_versions: DependencyGraph) -> None:
        """Test skip naming an absent crate warns."""
        diags = check_bans(two_versions, BansPolicy(rules=(BanRule.skip('sync_wrapper@0.1.2'),)))
        stale = _of(diags, Category.UNMATCHED_SKIP)
        assert [(d.package, d.severity) for d in stale] == [('sync_wrapper', Severity.WARNING)]

    def test_skip_unknown_version(self, two_versions: DependencyGraph) -> None:
        """Test skip naming an absent version warns."""
        diags = check_bans(two_versions, BansPolicy(rules=(BanRule.skip('itertools@0.10.0'),)))
        stale = _of(diags, Category.UNMATCHED_SKIP)
        assert len(stale) == 1
        assert stale[0].notes == ('versions present: 0.12.1, 0.13.0',)

    def test_unnecessary_skip(self) -> None:
        """Test skip for a single-version crate warns."""
        graph = _graph(_pkg('app', '1.0.0', 'x@1.0.0'), _pkg('x', '1.0.0'))
        diags = check_bans(graph, BansPolicy(rules=(BanRule.skip('x@1.0.0'),)))
        assert [d.category for d in diags] == [Category.UNNECESSARY_SKIP]

    def test_unmatched_skip_tree(self, two_versions: DependencyGraph) -> None:
        """Test skip-tree naming an absent crate warns."""
        diags = check_bans(two_versions, BansPolicy(rules=(BanRule.skip_tree('windows-sys'),)))
        assert [d.package for d in _of(diags, Category.UNMATCHED_SKIP_TREE)] == ['windows-sys']

    def test_stale_entries_never_violations(self, two_versions: DependencyGraph) -> None:
        """Test stale exceptions are only warnings."""
        policy = BansPolicy(
            multiple_versions=LintLevel.ALLOW,
            rules=(BanRule.skip('ghost'), BanRule.skip_tree('ghost-tree')),
        )
        assert all(d.severity is Severity.WARNING for d in check_bans(two_versions, policy))


class TestSkipTreeMembers:
    """Tests for skip_tree_members."""

    def test_union_of_subtrees(self, two_versions: DependencyGraph) -> None:
        """Test members are the union of every skip-tree subtree."""
        policy = BansPolicy(rules=(BanRule.skip_tree('old-user'),))
        members = skip_tree_members(two_versions, policy)
        assert sorted(str(p.id) for p in members) == ['itertools@0.12.1', 'old-user@1.0.0']
