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

"""Shared leaf-level types used across depaudit.

This module must have **zero** imports from other ``depaudit``
modules to avoid circular-import chains.  It is safe to import
from any module in the project.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass

__all__ = [
    'LintLevel',
    'PackageId',
    'PackageSpec',
    'Severity',
    'version_key',
]

_VERSION_PART_RE = re.compile(r'(\d+|[A-Za-z]+)')


class Severity(str, enum.Enum):
    """How a diagnostic affects the audit verdict."""

    VIOLATION = 'violation'
    WARNING = 'warning'


class LintLevel(str, enum.Enum):
    """Configured reaction to a lint (``deny``, ``warn`` or ``allow``)."""

    DENY = 'deny'
    WARN = 'warn'
    ALLOW = 'allow'

    @property
    def severity(self) -> Severity | None:
        """The diagnostic severity for this level, ``None`` for ``allow``."""
        if self is LintLevel.DENY:
            return Severity.VIOLATION
        if self is LintLevel.WARN:
            return Severity.WARNING
        return None


def version_key(version: str) -> tuple[tuple[int, int | str], ...]:
    """Return a natural sort key for a version string.

    Numeric runs compare as integers, so ``0.9.0`` sorts before
    ``0.10.0``.  Alphabetic runs (pre-release tags) sort before numbers
    at the same position.

    Examples::

        >>> sorted(['0.10.0', '0.9.1', '0.9.0'], key=version_key)
        ['0.9.0', '0.9.1', '0.10.0']
    """
    parts: list[tuple[int, int | str]] = []
    for token in _VERSION_PART_RE.findall(version):
        if token.isdigit():
            parts.append((1, int(token)))
        else:
            parts.append((0, token.lower()))
    return tuple(parts)


@dataclass(frozen=True, order=True)
class PackageId:
    """Identity of a resolved package.

    Attributes:
        name: Package name as published (e.g. ``"windows-sys"``).
        version: Resolved version (e.g. ``"0.52.0"``).
        source: Where the package came from (registry URL, git URL,
            path).  Empty for the default registry.
    """

    name: str
    version: str
    source: str = ''

    def __str__(self) -> str:
        """Return ``name@version``."""
        return f'{self.name}@{self.version}'


@dataclass(frozen=True)
class PackageSpec:
    """A package selector of the form ``name`` or ``name@version``.

    Attributes:
        name: Package name to match.
        version: Exact version to match, or ``None`` for any version.
    """

    name: str
    version: str | None = None

    @classmethod
    def parse(cls, text: str) -> PackageSpec:
        """Parse ``name`` or ``name@version``.

        Raises:
            ValueError: If the name or version part is empty.
        """
        stripped = text.strip()
        name, sep, version = stripped.partition('@')
        name = name.strip()
        version = version.strip()
        if not name:
            raise ValueError(f'package spec {text!r} has an empty name')
        if sep and not version:
            raise ValueError(f'package spec {text!r} has an empty version')
        return cls(name=name, version=version or None)

    def matches(self, pkg: PackageId) -> bool:
        """Return ``True`` if *pkg* is selected by this spec."""
        if pkg.name != self.name:
            return False
        return self.version is None or pkg.version == self.version

    def __str__(self) -> str:
        """Return ``name`` or ``name@version``."""
        return f'{self.name}@{self.version}' if self.version else self.name
