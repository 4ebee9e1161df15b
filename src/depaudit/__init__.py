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

"""depaudit: dependency policy enforcement.

Audits a resolved dependency graph against a ``deny.toml`` policy:
banned packages, duplicate versions (with skip and skip-tree
exceptions) and license allow-lists (with clarifications verified by
file hash).

Usage::

    from pathlib import Path

    from depaudit import load_graph, load_policy, run_audit

    policy = load_policy(Path('deny.toml'))
    graph = load_graph(Path('resolution.json'), all_features=policy.graph.all_features)
    report = run_audit(graph, policy)
    print(report.passed)
"""

from depaudit.audit import run_audit, run_audit_async
from depaudit.config import load_policy, parse_policy
from depaudit.diagnostics import Category, Diagnostic, Report, Severity, aggregate
from depaudit.errors import (
    AuditError,
    ExpressionSyntaxError,
    MalformedGraphError,
    PolicyError,
    StaleClarificationError,
)
from depaudit.graph import DependencyGraph, LicenseFile, Package, build, load_graph
from depaudit.policy import (
    BanKind,
    BanRule,
    BansPolicy,
    Clarification,
    ClarifiedFile,
    GraphOptions,
    LicenseException,
    LicensePolicy,
    Policy,
)

__version__ = '0.1.0'

__all__ = [
    'AuditError',
    'BanKind',
    'BanRule',
    'BansPolicy',
    'Category',
    'Clarification',
    'ClarifiedFile',
    'DependencyGraph',
    'Diagnostic',
    'ExpressionSyntaxError',
    'GraphOptions',
    'LicenseException',
    'LicenseFile',
    'LicensePolicy',
    'MalformedGraphError',
    'Package',
    'Policy',
    'PolicyError',
    'Report',
    'Severity',
    'StaleClarificationError',
    '__version__',
    'aggregate',
    'build',
    'load_graph',
    'load_policy',
    'parse_policy',
    'run_audit',
    'run_audit_async',
]
