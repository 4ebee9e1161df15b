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

"""Audit runner: fan the checks out as tasks and join their findings.

The ban engine and the license check only read the graph and the
policy, so they run independently.  The per-package license pass is
further split into ``partitions`` disjoint slices.  Every task runs in
a worker thread and returns its own list of diagnostics; the lists are
merged by :func:`~depaudit.diagnostics.aggregate` once all tasks have
finished, so the report does not depend on completion order.

:func:`run_audit` owns its thread pool.  When the deadline passes it
stops waiting for the workers, cancels the slices that have not
started and returns without joining the ones still running.

A fatal error (stale clarification, malformed expression) in any task
propagates out of :func:`run_audit_async` and aborts the run.

Usage::

    from depaudit.audit import run_audit

    report = run_audit(graph, policy, timeout=30.0)
    if report.has_violations():
        ...
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from concurrent.futures import Executor, ThreadPoolExecutor
from pathlib import Path
from typing import Any

from depaudit.checks import (
    LicenseResolver,
    LicenseTextStore,
    check_bans,
    evaluate_partition,
    unused_policy_entries,
)
from depaudit.diagnostics import Diagnostic, Report, aggregate
from depaudit.graph import DependencyGraph, build, load_graph
from depaudit.logging import get_logger
from depaudit.policy import Policy

__all__ = [
    'DEFAULT_PARTITIONS',
    'audit_resolution',
    'build_graph',
    'run_audit',
    'run_audit_async',
]

logger = get_logger(__name__)

DEFAULT_PARTITIONS = 4


def build_graph(raw_resolution: Mapping[str, Any], policy: Policy, *, base_dir: Path | None = None) -> DependencyGraph:
    """Build the graph with the policy's ``[graph]`` options applied."""
    return build(
        raw_resolution,
        all_features=policy.graph.all_features,
        exclude=policy.graph.exclude,
        base_dir=base_dir,
    )


async def run_audit_async(
    graph: DependencyGraph,
    policy: Policy,
    *,
    partitions: int = DEFAULT_PARTITIONS,
    timeout: float | None = None,
    store: LicenseTextStore | None = None,
    executor: Executor | None = None,
) -> Report:
    """Run every check over *graph* concurrently.

    Args:
        graph: The audited dependency graph.
        policy: The policy to enforce.
        partitions: Number of tasks the per-package license pass is
            split into (at least 1).
        timeout: Overall deadline in seconds; ``None`` waits forever.
        store: Canonical license texts; defaults to the bundled store.
        executor: Pool the checks run in; ``None`` uses the loop's
            default executor, whose threads outlive a timeout.

    Returns:
        The aggregated report.

    Raises:
        ValueError: If *partitions* is less than 1.
        asyncio.TimeoutError: If the run exceeds *timeout*.
        AuditError: Any fatal error raised by a check.
    """
    if partitions < 1:
        raise ValueError(f'partitions must be >= 1, got {partitions}')

    resolver = LicenseResolver(policy.licenses, store)
    packages = graph.packages
    slices = [packages[i::partitions] for i in range(min(partitions, len(packages)))]

    loop = asyncio.get_running_loop()

    async def _run() -> list[list[Diagnostic]]:
        bans = loop.run_in_executor(executor, check_bans, graph, policy.bans)
        parts = [loop.run_in_executor(executor, evaluate_partition, part, resolver) for part in slices]
        bans_diags, *outcomes = await asyncio.gather(bans, *parts)
        used: set[str] = set()
        license_diags: list[Diagnostic] = []
        for diags, used_ids in outcomes:
            license_diags.extend(diags)
            used |= used_ids
        return [bans_diags, license_diags, unused_policy_entries(graph, policy.licenses, used)]

    logger.debug('audit_started', packages=len(graph), license_tasks=len(slices), timeout=timeout)
    results = await asyncio.wait_for(_run(), timeout=timeout)
    report = aggregate(*results)
    logger.info(
        'audit_finished',
        passed=report.passed,
        violations=len(report.violations),
        warnings=len(report.warnings),
    )
    return report


def run_audit(
    graph: DependencyGraph,
    policy: Policy,
    *,
    partitions: int = DEFAULT_PARTITIONS,
    timeout: float | None = None,
    store: LicenseTextStore | None = None,
) -> Report:
    """Synchronous wrapper around :func:`run_audit_async`.

    The checks run in a private thread pool that is abandoned, not
    joined, when the run fails or *timeout* expires.
    """
    if partitions < 1:
        raise ValueError(f'partitions must be >= 1, got {partitions}')
    executor = ThreadPoolExecutor(max_workers=partitions + 1, thread_name_prefix='depaudit')
    try:
        report = asyncio.run(
            run_audit_async(graph, policy, partitions=partitions, timeout=timeout, store=store, executor=executor)
        )
    except BaseException:
        executor.shutdown(wait=False, cancel_futures=True)
        raise
    executor.shutdown()
    return report


def audit_resolution(
    path: Path,
    policy: Policy,
    *,
    partitions: int = DEFAULT_PARTITIONS,
    timeout: float | None = None,
) -> Report:
    """Load a resolution document from *path* and audit it under *policy*.

    Raises:
        MalformedGraphError: If the document is not a valid graph.
    """
    graph = load_graph(path, all_features=policy.graph.all_features, exclude=policy.graph.exclude)
    return run_audit(graph, policy, partitions=partitions, timeout=timeout)
