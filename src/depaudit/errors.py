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

"""Fatal error types raised by the audit engine.

Every error here means the inputs are structurally broken and a
verdict cannot be trusted, so the run aborts.  Policy findings are
never raised; they are recorded as
:class:`~depaudit.diagnostics.Diagnostic` values instead.

Hierarchy::

    AuditError
    ├── MalformedGraphError      dangling edge, duplicate id, cycle, bad schema
    ├── ExpressionSyntaxError    invalid SPDX expression (also a ValueError)
    ├── StaleClarificationError  clarified license file changed or vanished
    └── PolicyError              invalid configuration
"""

from __future__ import annotations

__all__ = [
    'AuditError',
    'ExpressionSyntaxError',
    'MalformedGraphError',
    'PolicyError',
    'StaleClarificationError',
]


class AuditError(Exception):
    """Base class for all fatal depaudit errors."""


class MalformedGraphError(AuditError):
    """Raised when the resolved dependency graph is structurally invalid.

    Attributes:
        errors: List of human-readable error strings.
        cycle: Package ids forming a cycle (first id repeated at the
            end), or an empty tuple if the problem is not a cycle.
    """

    def __init__(self, errors: list[str], *, cycle: tuple[str, ...] = ()) -> None:
        self.errors = errors
        self.cycle = cycle
        bullet_list = '\n'.join(f'  - {e}' for e in errors)
        super().__init__(f'Dependency graph has {len(errors)} structural error(s):\n{bullet_list}')


class ExpressionSyntaxError(AuditError, ValueError):
    """Raised when an SPDX expression cannot be parsed.

    Attributes:
        expression: The original expression string.
        position: Character offset where the error was detected.
        detail: Human-readable description of the problem.
    """

    def __init__(self, expression: str, position: int, detail: str) -> None:
        """Initialize with expression text, error position, and detail message."""
        self.expression = expression
        self.position = position
        self.detail = detail
        marker = ' ' * position + '^'
        super().__init__(f'SPDX parse error at position {position}: {detail}\n  {expression}\n  {marker}')


class StaleClarificationError(AuditError):
    """Raised when a clarified license file no longer matches its hash.

    The clarification was authored against specific license text; if
    that text changed the override may no longer be correct.

    Attributes:
        package: ``name@version`` of the clarified package.
        path: License file path named by the clarification.
        expected: Hash recorded in the policy.
        actual: Hash of the current file, or ``None`` if it is missing.
    """

    def __init__(self, package: str, path: str, expected: str, actual: str | None) -> None:
        self.package = package
        self.path = path
        self.expected = expected
        self.actual = actual
        if actual is None:
            detail = f'license file {path!r} is missing'
        else:
            detail = f'license file {path!r} hash is {actual}, expected {expected}'
        super().__init__(f'Stale license clarification for {package}: {detail}')


class PolicyError(AuditError):
    """Raised when the policy configuration fails validation.

    Attributes:
        errors: List of human-readable error strings.
    """

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        bullet_list = '\n'.join(f'  - {e}' for e in errors)
        super().__init__(f'Policy has {len(errors)} validation error(s):\n{bullet_list}')
