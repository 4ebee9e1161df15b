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

r"""Ban rule engine: denied packages and duplicate versions.

Two lints run over the graph:

1. **Denied packages** — every package matching a ``deny`` rule is a
   violation, one per occurrence, carrying the rule's reason verbatim.
   A rule with ``wrappers`` tolerates the package when every package
   that depends on it directly is a listed wrapper.

2. **Multiple versions** — packages are grouped by name.  For a group
   with more than one distinct version, each version is *covered* if a
   ``skip`` rule names that exact version (a rule without a version
   covers them all) or the package lies inside a ``skip-tree``
   subtree.  The lint fires when two or more versions are left
   uncovered (or one, in zero-tolerance mode).

Skip-tree subtrees also suppress denials inside them.

Key Concepts (ELI5)::

    ┌─────────────────────┬────────────────────────────────────────────────┐
    │ Rule                │ Plain-English                                  │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ deny term           │ "term" must not be in the build, any version. │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ skip itertools@0.12 │ Ignore this one duplicate version.  It does   │
    │                     │ not excuse any *other* duplicate version.     │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ skip-tree windows-* │ Ignore this package and everything under it.  │
    └─────────────────────┴────────────────────────────────────────────────┘

Exceptions that match nothing are reported as warnings so stale
entries get cleaned up; they never fail the audit.
"""

from __future__ import annotations

from depaudit._types import PackageId, Severity, version_key
from depaudit.diagnostics import Category, Diagnostic
from depaudit.graph import DependencyGraph, Package
from depaudit.logging import get_logger
from depaudit.policy import BanRule, BansPolicy

__all__ = [
    'check_bans',
    'skip_tree_members',
]

logger = get_logger(__name__)


def skip_tree_members(graph: DependencyGraph, bans: BansPolicy) -> frozenset[Package]:
    """Return every package excluded by the policy's skip-tree rules."""
    members: set[Package] = set()
    for rule in bans.skip_tree:
        members |= graph.subtree(rule.spec, rule.depth)
    return frozenset(members)


def _check_denied(
    graph: DependencyGraph,
    bans: BansPolicy,
    skipped: frozenset[Package],
) -> list[Diagnostic]:
    diags: list[Diagnostic] = []
    for rule in bans.deny:
        for pkg in graph.by_name(rule.name):
            if not rule.matches(pkg.id):
                continue
            if pkg in skipped:
                logger.debug('deny_suppressed_by_skip_tree', package=str(pkg.id))
                continue
            dependents = graph.dependents(pkg)
            if rule.wrappers and dependents and all(d.name in rule.wrappers for d in dependents):
                logger.debug('deny_allowed_by_wrapper', package=str(pkg.id))
                continue
            notes: list[str] = []
            if rule.reason:
                notes.append(f'reason: {rule.reason}')
            if rule.wrappers:
                outside = sorted({d.name for d in dependents if d.name not in rule.wrappers})
                notes.append(f'depended on by non-wrapper(s): {", ".join(outside)}')
            diags.append(
                Diagnostic.for_package(
                    Severity.VIOLATION,
                    Category.DENIED,
                    pkg.id,
                    f'package {pkg.id} is explicitly denied' + (f': {rule.reason}' if rule.reason else ''),
                    notes,
                )
            )
    return diags


def _is_skipped(pkg: PackageId, skips: tuple[BanRule, ...]) -> bool:
    return any(rule.matches(pkg) for rule in skips)


def _check_duplicates(
    graph: DependencyGraph,
    bans: BansPolicy,
    skipped: frozenset[Package],
) -> list[Diagnostic]:
    severity = bans.multiple_versions.severity
    if severity is None:
        return []
    limit = 0 if bans.multiple_versions_zero_tolerance else 1
    skips = bans.skip
    diags: list[Diagnostic] = []
    for name in graph.names():
        group = graph.by_name(name)
        versions = sorted({p.version for p in group}, key=version_key)
        if len(versions) < 2:
            continue
        uncovered = sorted(
            {p.version for p in group if p not in skipped and not _is_skipped(p.id, skips)},
            key=version_key,
        )
        if len(uncovered) <= limit:
            continue
        notes = [f'uncovered version(s): {", ".join(uncovered)}']
        covered = [v for v in versions if v not in uncovered]
        if covered:
            notes.append(f'skipped version(s): {", ".join(covered)}')
        for version in uncovered:
            parents = sorted({str(d.id) for p in group if p.version == version for d in graph.dependents(p)})
            if parents:
                notes.append(f'{name}@{version} required by {", ".join(parents)}')
        diags.append(
            Diagnostic(
                severity=severity,
                category=Category.MULTIPLE_VERSIONS,
                package=name,
                message=f'found {len(uncovered)} uncovered versions of {name}: {", ".join(uncovered)}',
                notes=tuple(notes),
            )
        )
    return diags


def _check_stale_exceptions(graph: DependencyGraph, bans: BansPolicy) -> list[Diagnostic]:
    diags: list[Diagnostic] = []
    for rule in bans.skip:
        group = graph.by_name(rule.name)
        if not group:
            diags.append(
                Diagnostic(
                    severity=Severity.WARNING,
                    category=Category.UNMATCHED_SKIP,
                    package=rule.name,
                    version=rule.version or '',
                    message=f'skip entry {rule.spec} does not match any package in the graph',
                    notes=(f'reason: {rule.reason}',) if rule.reason else (),
                )
            )
        elif rule.version is not None and not any(rule.matches(p.id) for p in group):
            present = ', '.join(sorted({p.version for p in group}, key=version_key))
            diags.append(
                Diagnostic(
                    severity=Severity.WARNING,
                    category=Category.UNMATCHED_SKIP,
                    package=rule.name,
                    version=rule.version,
                    message=f'skip entry {rule.spec} does not match any version in the graph',
                    notes=(f'versions present: {present}',),
                )
            )
        elif len({p.version for p in group}) < 2:
            diags.append(
                Diagnostic(
                    severity=Severity.WARNING,
                    category=Category.UNNECESSARY_SKIP,
                    package=rule.name,
                    version=rule.version or '',
                    message=f'skip entry {rule.spec} is unnecessary; only one version of {rule.name} is present',
                )
            )
    for rule in bans.skip_tree:
        if not any(rule.matches(p.id) for p in graph.by_name(rule.name)):
            diags.append(
                Diagnostic(
                    severity=Severity.WARNING,
                    category=Category.UNMATCHED_SKIP_TREE,
                    package=rule.name,
                    version=rule.version or '',
                    message=f'skip-tree entry {rule.spec} does not match any package in the graph',
                )
            )
    return diags


def check_bans(graph: DependencyGraph, bans: BansPolicy) -> list[Diagnostic]:
    """Evaluate deny rules and the multiple-versions lint.

    Visits every package; never stops at the first finding.

    Args:
        graph: The audited dependency graph.
        bans: The ``[bans]`` policy.

    Returns:
        Diagnostics in discovery order (the aggregator sorts them).
    """
    skipped = skip_tree_members(graph, bans)
    diags = [
        *_check_denied(graph, bans, skipped),
        *_check_duplicates(graph, bans, skipped),
        *_check_stale_exceptions(graph, bans),
    ]
    logger.debug(
        'bans_checked',
        packages=len(graph),
        skip_tree_members=len(skipped),
        diagnostics=len(diags),
    )
    return diags
