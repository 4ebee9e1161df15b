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

"""Policy model: graph options, ban rules and license policy.

All policy objects are frozen dataclasses.  They are usually produced
by :func:`depaudit.config.load_policy` from a ``deny.toml`` file, but
can be built directly in code::

    policy = Policy(
        bans=BansPolicy(rules=(
            BanRule.deny('term', reason='use termcolor'),
            BanRule.skip('itertools@0.12.1', reason='bindgen'),
            BanRule.skip_tree('windows-sys'),
        )),
        licenses=LicensePolicy(allow=frozenset({'MIT', 'Apache-2.0'})),
    )

Ban rules are one record type tagged by :class:`BanKind` rather than a
class per rule shape; the engine dispatches on ``rule.kind``.
"""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass, field

from depaudit._types import LintLevel, PackageId, PackageSpec
from depaudit.errors import PolicyError

__all__ = [
    'BanKind',
    'BanRule',
    'BansPolicy',
    'ClarifiedFile',
    'Clarification',
    'GraphOptions',
    'LicenseException',
    'LicensePolicy',
    'Policy',
]


class BanKind(str, enum.Enum):
    """The shape of a :class:`BanRule`."""

    DENY = 'deny'
    SKIP = 'skip'
    SKIP_TREE = 'skip-tree'


@dataclass(frozen=True)
class BanRule:
    """A single entry of the ``[bans]`` section.

    Attributes:
        kind: Which list the rule came from.
        spec: Package selector (``name`` or ``name@version``).
        reason: Free-text reason, reported verbatim.
        depth: ``SKIP_TREE`` only; how deep the exclusion reaches
            (``None`` for the whole subtree).
        wrappers: ``DENY`` only; packages allowed to depend on the
            denied package directly.
    """

    kind: BanKind
    spec: PackageSpec
    reason: str = ''
    depth: int | None = None
    wrappers: frozenset[str] = frozenset()

    @property
    def name(self) -> str:
        """The package name the rule targets."""
        return self.spec.name

    @property
    def version(self) -> str | None:
        """The exact version the rule targets, if any."""
        return self.spec.version

    @classmethod
    def deny(
        cls,
        spec: str | PackageSpec,
        *,
        reason: str = '',
        wrappers: frozenset[str] | set[str] | tuple[str, ...] = frozenset(),
    ) -> BanRule:
        """A rule that bans a package outright."""
        return cls(BanKind.DENY, _spec(spec), reason=reason, wrappers=frozenset(wrappers))

    @classmethod
    def skip(cls, spec: str | PackageSpec, *, reason: str = '') -> BanRule:
        """A rule that exempts one version from duplicate detection."""
        return cls(BanKind.SKIP, _spec(spec), reason=reason)

    @classmethod
    def skip_tree(cls, spec: str | PackageSpec, *, reason: str = '', depth: int | None = None) -> BanRule:
        """A rule that exempts a package and its dependencies."""
        if depth is not None and depth < 0:
            raise PolicyError([f'skip-tree {spec}: depth must be >= 0, got {depth}'])
        return cls(BanKind.SKIP_TREE, _spec(spec), reason=reason, depth=depth)

    def matches(self, pkg: PackageId) -> bool:
        """Return ``True`` if the rule's spec selects *pkg*."""
        return self.spec.matches(pkg)


def _spec(spec: str | PackageSpec) -> PackageSpec:
    if isinstance(spec, PackageSpec):
        return spec
    try:
        return PackageSpec.parse(spec)
    except ValueError as exc:
        raise PolicyError([str(exc)]) from exc


@dataclass(frozen=True)
class BansPolicy:
    """The ``[bans]`` section.

    Attributes:
        multiple_versions: Reaction to several versions of one package.
        multiple_versions_zero_tolerance: Also flag a group in which a
            single version is left uncovered by skip exceptions.  Off
            by default: only two or more uncovered versions are flagged.
        rules: Deny, skip and skip-tree rules in configuration order.
    """

    multiple_versions: LintLevel = LintLevel.WARN
    multiple_versions_zero_tolerance: bool = False
    rules: tuple[BanRule, ...] = ()

    def of_kind(self, kind: BanKind) -> tuple[BanRule, ...]:
        """Rules of one kind, in configuration order."""
        return tuple(r for r in self.rules if r.kind is kind)

    @property
    def deny(self) -> tuple[BanRule, ...]:
        """``DENY`` rules."""
        return self.of_kind(BanKind.DENY)

    @property
    def skip(self) -> tuple[BanRule, ...]:
        """``SKIP`` rules."""
        return self.of_kind(BanKind.SKIP)

    @property
    def skip_tree(self) -> tuple[BanRule, ...]:
        """``SKIP_TREE`` rules."""
        return self.of_kind(BanKind.SKIP_TREE)


@dataclass(frozen=True)
class ClarifiedFile:
    """A license file a clarification was authored against.

    Attributes:
        path: Path relative to the package root.
        hash: Expected hash.  ``0x``-prefixed hex (or an integer in the
            config) is a CRC-32 of the file bytes; ``sha256:<hex>`` is a
            SHA-256 digest.
    """

    path: str
    hash: str


@dataclass(frozen=True)
class Clarification:
    """A manual license override for one package.

    Attributes:
        name: Package name.
        expression: SPDX expression that replaces inference.
        license_files: Files whose hashes must still match.
        version: Restrict the clarification to one exact version.
    """

    name: str
    expression: str
    license_files: tuple[ClarifiedFile, ...] = ()
    version: str | None = None

    def applies_to(self, pkg: PackageId) -> bool:
        """Return ``True`` if the clarification covers *pkg*."""
        return pkg.name == self.name and (self.version is None or pkg.version == self.version)


@dataclass(frozen=True)
class LicenseException:
    """Extra licenses allowed for one package only.

    Attributes:
        spec: Package selector.
        allow: Additional allowed license identifiers.
    """

    spec: PackageSpec
    allow: frozenset[str]


@dataclass(frozen=True)
class LicensePolicy:
    """The ``[licenses]`` section.

    Attributes:
        allow: Allowed SPDX identifiers.  ``WITH`` combinations must be
            listed in full (``"GPL-2.0 WITH Classpath-exception-2.0"``).
        confidence_threshold: Minimum similarity (0.0–1.0) for a license
            text match to be trusted.
        clarifications: Overrides keyed by package name.
        exceptions: Per-package extra allowed identifiers.
        unused_allowed_license: Reaction to allow-list entries that no
            package in the graph uses.
    """

    allow: frozenset[str] = frozenset()
    confidence_threshold: float = 0.8
    clarifications: Mapping[str, Clarification] = field(default_factory=dict)
    exceptions: tuple[LicenseException, ...] = ()
    unused_allowed_license: LintLevel = LintLevel.WARN

    def __post_init__(self) -> None:
        errors: list[str] = []
        if not 0.0 <= self.confidence_threshold <= 1.0:
            errors.append(f'confidence-threshold must be within [0, 1], got {self.confidence_threshold}')
        for name, clar in self.clarifications.items():
            if clar.name != name:
                errors.append(f'clarification keyed {name!r} names package {clar.name!r}')
        if errors:
            raise PolicyError(errors)

    def allowed_for(self, pkg: PackageId) -> frozenset[str]:
        """The allow set for *pkg*, including its exceptions."""
        extra: set[str] = set()
        for exc in self.exceptions:
            if exc.spec.matches(pkg):
                extra |= exc.allow
        return self.allow | extra if extra else self.allow


@dataclass(frozen=True)
class GraphOptions:
    """The ``[graph]`` section.

    Attributes:
        all_features: Treat every optional dependency as enabled.
        exclude: Roots to drop before auditing (``name[@version]``).
    """

    all_features: bool = False
    exclude: tuple[str, ...] = ()


@dataclass(frozen=True)
class Policy:
    """A complete audit policy."""

    graph: GraphOptions = field(default_factory=GraphOptions)
    bans: BansPolicy = field(default_factory=BansPolicy)
    licenses: LicensePolicy = field(default_factory=LicensePolicy)
