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

"""License check: every package's effective license against the allow-list.

For each package the :class:`LicenseResolver` produces an outcome:

- ``Unresolved`` → ``license-unresolved`` violation.
- otherwise the expression is evaluated with
  :func:`depaudit.spdx_expr.is_allowed` against the allow-list plus any
  per-package exceptions; a failing expression is a
  ``license-rejected`` violation naming the offending identifiers.

After all packages are visited, policy entries nobody used are
reported as warnings (unused clarifications, unused exceptions and,
at the configured level, unused allow-list entries).

The per-package pass (:func:`evaluate_partition`) is independent for
every package, so the audit runner splits it across tasks.  Each
partition also reports the license ids its packages use; the
policy-wide warnings (:func:`unused_policy_entries`) take the union of
those sets and never resolve a package again.
"""

from __future__ import annotations

from collections.abc import Iterable

from depaudit._types import Severity
from depaudit.checks._license_resolve import (
    ClarifiedOverride,
    Declared,
    Inferred,
    LicenseOutcome,
    LicenseResolver,
    Unresolved,
)
from depaudit.diagnostics import Category, Diagnostic
from depaudit.graph import DependencyGraph, Package
from depaudit.logging import get_logger
from depaudit.policy import LicensePolicy
from depaudit.spdx_expr import failing_ids, is_allowed, leaf_ids

__all__ = [
    'check_licenses',
    'evaluate_packages',
    'evaluate_partition',
    'unused_policy_entries',
]

logger = get_logger(__name__)


def _used_ids(outcome: LicenseOutcome) -> frozenset[str]:
    if isinstance(outcome, Unresolved):
        return frozenset()
    leaves = {leaf.lower() for leaf in leaf_ids(outcome.expression)}
    return frozenset(leaves | {leaf.removesuffix('+') for leaf in leaves})


def _evaluate(pkg: Package, outcome: LicenseOutcome, resolver: LicenseResolver) -> Diagnostic | None:
    if isinstance(outcome, Unresolved):
        notes = [f'{m.path}: closest match {m.license_id} ({m.confidence:.3f})' for m in outcome.rejected]
        return Diagnostic.for_package(
            Severity.VIOLATION,
            Category.LICENSE_UNRESOLVED,
            pkg.id,
            f'unable to determine the license of {pkg.id}: {outcome.reason}',
            notes,
        )

    allow = resolver.policy.allowed_for(pkg.id)
    if is_allowed(outcome.expression, allow):
        return None

    notes: list[str] = []
    if isinstance(outcome, ClarifiedOverride):
        notes.append(f'license clarified as {outcome.expression}')
    elif isinstance(outcome, Declared):
        notes.append(f'declared license {outcome.raw!r}')
    elif isinstance(outcome, Inferred):
        notes.extend(f'{m.path}: {m.license_id} ({m.confidence:.3f})' for m in outcome.matches)
    notes.append(f'not allowed: {", ".join(failing_ids(outcome.expression, allow))}')
    return Diagnostic.for_package(
        Severity.VIOLATION,
        Category.LICENSE_REJECTED,
        pkg.id,
        f'license {outcome.expression} of {pkg.id} is not allowed',
        notes,
    )


def evaluate_partition(
    packages: Iterable[Package],
    resolver: LicenseResolver,
) -> tuple[list[Diagnostic], frozenset[str]]:
    """Resolve and evaluate the license of each package, once.

    Args:
        packages: The packages of one partition.
        resolver: Shared resolver for the audited policy.

    Returns:
        The diagnostics for *packages* and the lowercased license ids
        their resolved expressions use (``X+`` also counts as ``X``).

    Raises:
        StaleClarificationError: A clarification no longer matches.
        ExpressionSyntaxError: A license expression is malformed.
    """
    diags: list[Diagnostic] = []
    used: set[str] = set()
    for pkg in packages:
        outcome = resolver.resolve(pkg)
        used |= _used_ids(outcome)
        diag = _evaluate(pkg, outcome, resolver)
        if diag is not None:
            diags.append(diag)
    return diags, frozenset(used)


def evaluate_packages(packages: Iterable[Package], resolver: LicenseResolver) -> list[Diagnostic]:
    """Like :func:`evaluate_partition`, without the used license ids."""
    diags, _ = evaluate_partition(packages, resolver)
    return diags


def unused_policy_entries(
    graph: DependencyGraph,
    policy: LicensePolicy,
    used_licenses: Iterable[str],
) -> list[Diagnostic]:
    """Warn about clarifications, exceptions and allowed licenses nobody uses.

    *used_licenses* are the lowercased license ids collected by
    :func:`evaluate_partition` over the whole graph.
    """
    diags: list[Diagnostic] = []

    for name, clar in sorted(policy.clarifications.items()):
        if not any(clar.applies_to(p.id) for p in graph.by_name(name)):
            diags.append(
                Diagnostic(
                    severity=Severity.WARNING,
                    category=Category.UNUSED_CLARIFICATION,
                    package=name,
                    version=clar.version or '',
                    message=f'license clarification for {name} does not match any package in the graph',
                )
            )

    for exc in policy.exceptions:
        if not any(exc.spec.matches(p.id) for p in graph.by_name(exc.spec.name)):
            diags.append(
                Diagnostic(
                    severity=Severity.WARNING,
                    category=Category.UNUSED_LICENSE_EXCEPTION,
                    package=exc.spec.name,
                    version=exc.spec.version or '',
                    message=f'license exception for {exc.spec} does not match any package in the graph',
                )
            )

    severity = policy.unused_allowed_license.severity
    if severity is not None and policy.allow:
        used = frozenset(used_licenses)
        for spdx_id in sorted(policy.allow):
            if spdx_id.lower() not in used:
                diags.append(
                    Diagnostic(
                        severity=severity,
                        category=Category.UNUSED_ALLOWED_LICENSE,
                        package=spdx_id,
                        message=f'license {spdx_id} is allowed but not used by any package',
                    )
                )
    return diags


def check_licenses(graph: DependencyGraph, resolver: LicenseResolver) -> list[Diagnostic]:
    """Run the whole license check over *graph* in one pass."""
    diags, used = evaluate_partition(graph, resolver)
    diags.extend(unused_policy_entries(graph, resolver.policy, used))
    logger.debug('licenses_checked', packages=len(graph), diagnostics=len(diags))
    return diags
