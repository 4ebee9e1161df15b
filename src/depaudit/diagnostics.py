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

"""Diagnostic records and the aggregated audit report.

Checks never raise for policy findings; they return lists of
:class:`Diagnostic`.  :func:`aggregate` merges those lists into one
:class:`Report` in a deterministic order, and the report is the only
place that decides pass or fail: any ``VIOLATION`` fails the run,
``WARNING`` entries are surfaced but never change the verdict.

Usage::

    from depaudit.diagnostics import aggregate

    report = aggregate(ban_diags, license_diags)
    if report.has_violations():
        sys.exit(1)
"""

from __future__ import annotations

import enum
import json
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from depaudit._types import PackageId, Severity, version_key

__all__ = [
    'Category',
    'Diagnostic',
    'Report',
    'Severity',
    'aggregate',
]


class Category(str, enum.Enum):
    """What a diagnostic is about.

    Declaration order is the report order.
    """

    DENIED = 'denied'
    MULTIPLE_VERSIONS = 'multiple-versions'
    LICENSE_REJECTED = 'license-rejected'
    LICENSE_UNRESOLVED = 'license-unresolved'
    UNMATCHED_SKIP = 'unmatched-skip'
    UNMATCHED_SKIP_TREE = 'unmatched-skip-tree'
    UNNECESSARY_SKIP = 'unnecessary-skip'
    UNUSED_CLARIFICATION = 'unused-clarification'
    UNUSED_LICENSE_EXCEPTION = 'unused-license-exception'
    UNUSED_ALLOWED_LICENSE = 'unused-allowed-license'


_CATEGORY_ORDER: dict[Category, int] = {c: i for i, c in enumerate(Category)}


@dataclass(frozen=True)
class Diagnostic:
    """A single audit finding.

    Attributes:
        severity: Whether the finding fails the audit.
        category: What kind of finding this is.
        package: Subject package name (or the policy entry's subject,
            e.g. an allow-listed license id, for policy warnings).
        version: Subject version, ``""`` when the finding is about a
            name rather than one version.
        message: One-line human-readable summary.
        notes: Extra context lines (reasons, offending versions, ...).
    """

    severity: Severity
    category: Category
    package: str
    message: str
    version: str = ''
    notes: tuple[str, ...] = ()

    @classmethod
    def for_package(
        cls,
        severity: Severity,
        category: Category,
        pkg: PackageId,
        message: str,
        notes: Iterable[str] = (),
    ) -> Diagnostic:
        """Build a diagnostic about one resolved package."""
        return cls(
            severity=severity,
            category=category,
            package=pkg.name,
            version=pkg.version,
            message=message,
            notes=tuple(notes),
        )

    @property
    def is_violation(self) -> bool:
        """``True`` if this finding fails the audit."""
        return self.severity is Severity.VIOLATION

    @property
    def subject(self) -> str:
        """``name@version``, or just ``name`` without a version."""
        return f'{self.package}@{self.version}' if self.version else self.package

    def sort_key(self) -> tuple[Any, ...]:
        """Report order: category, package name, version."""
        return (_CATEGORY_ORDER[self.category], self.package, version_key(self.version), self.version)

    def to_dict(self) -> dict[str, Any]:
        """JSON-compatible representation."""
        return {
            'severity': self.severity.value,
            'category': self.category.value,
            'package': self.package,
            'version': self.version,
            'message': self.message,
            'notes': list(self.notes),
        }


@dataclass(frozen=True)
class Report:
    """The ordered, immutable result of one audit run.

    Attributes:
        diagnostics: Every finding, in report order.
    """

    diagnostics: tuple[Diagnostic, ...] = ()

    def has_violations(self) -> bool:
        """``True`` if any finding is a violation (the run fails)."""
        return any(d.is_violation for d in self.diagnostics)

    @property
    def passed(self) -> bool:
        """``True`` if the audit passed."""
        return not self.has_violations()

    @property
    def violations(self) -> tuple[Diagnostic, ...]:
        """Violation-severity findings."""
        return tuple(d for d in self.diagnostics if d.severity is Severity.VIOLATION)

    @property
    def warnings(self) -> tuple[Diagnostic, ...]:
        """Warning-severity findings."""
        return tuple(d for d in self.diagnostics if d.severity is Severity.WARNING)

    def by_category(self, category: Category) -> tuple[Diagnostic, ...]:
        """Findings of one category."""
        return tuple(d for d in self.diagnostics if d.category is category)

    def to_dict(self) -> dict[str, Any]:
        """JSON-compatible representation including the verdict."""
        return {
            'passed': self.passed,
            'violations': len(self.violations),
            'warnings': len(self.warnings),
            'diagnostics': [d.to_dict() for d in self.diagnostics],
        }

    def to_json(self, *, indent: int = 2) -> str:
        """Serialize :meth:`to_dict` as JSON."""
        return json.dumps(self.to_dict(), indent=indent)


def aggregate(*collections: Iterable[Diagnostic]) -> Report:
    """Merge per-check diagnostic collections into one :class:`Report`.

    Collections are concatenated in argument order and then stably
    sorted by category, package name and version, so identical inputs
    always produce an identical report regardless of which task
    finished first.
    """
    merged = [d for collection in collections for d in collection]
    merged.sort(key=Diagnostic.sort_key)
    return Report(diagnostics=tuple(merged))
