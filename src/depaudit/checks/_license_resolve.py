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

r"""Effective license resolution for a single package.

Resolution order (first match wins):

    1. **Clarification** — a manual override for the package.  Every
       license file it names must still hash to the recorded value;
       then its expression is used as-is, ignoring all inference.  A
       missing or changed file raises :class:`StaleClarificationError`.
    2. **Declared** — the license expression from the package manifest.
       Legacy ``MIT/Apache-2.0`` declarations are read as ``OR``.
    3. **Inferred** — each license file is scored against the bundled
       canonical texts; files scoring at least ``confidence_threshold``
       are combined with ``AND``.
    4. **Unresolved** — nothing usable; always a violation downstream.

Hash formats accepted in clarifications::

    0xbd0eed23            CRC-32 of the file bytes
    sha256:9f86d08...     SHA-256 of the file bytes

Usage::

    resolver = LicenseResolver(policy.licenses)
    outcome = resolver.resolve(pkg)
    match outcome:
        case ClarifiedOverride(expression=expr) | Declared(expression=expr): ...
        case Unresolved(reason=why): ...
"""

from __future__ import annotations

import functools
import hashlib
import zlib
from dataclasses import dataclass

from depaudit.checks._license_text import LicenseTextStore, TextMatch
from depaudit.errors import StaleClarificationError
from depaudit.graph import LicenseFile, Package
from depaudit.logging import get_logger
from depaudit.policy import Clarification, LicensePolicy
from depaudit.spdx_expr import And, ExprNode, LicenseId, normalize_legacy, parse

__all__ = [
    'ClarifiedOverride',
    'Declared',
    'Inferred',
    'LicenseOutcome',
    'LicenseResolver',
    'Unresolved',
    'file_hash',
    'hash_matches',
]

logger = get_logger(__name__)

_SHA256_PREFIX = 'sha256:'


@dataclass(frozen=True)
class Declared:
    """License taken from the package's own metadata."""

    expression: ExprNode
    raw: str


@dataclass(frozen=True)
class ClarifiedOverride:
    """License taken from a verified clarification."""

    expression: ExprNode
    clarification: Clarification


@dataclass(frozen=True)
class Inferred:
    """License recovered from license file text.

    Attributes:
        expression: ``AND`` of the accepted matches.
        matches: Accepted matches, one per license file.
        rejected: Matches that scored below the threshold.
    """

    expression: ExprNode
    matches: tuple[TextMatch, ...]
    rejected: tuple[TextMatch, ...] = ()


@dataclass(frozen=True)
class Unresolved:
    """No trustworthy license could be determined.

    Attributes:
        reason: Why resolution failed.
        rejected: Text matches that scored below the threshold.
    """

    reason: str
    rejected: tuple[TextMatch, ...] = ()


LicenseOutcome = Declared | ClarifiedOverride | Inferred | Unresolved


def file_hash(lf: LicenseFile, algorithm: str = 'crc32') -> str:
    """Hash a license file the way clarifications record it.

    Args:
        lf: The license file.
        algorithm: ``"crc32"`` (``0x`` + 8 hex digits) or ``"sha256"``
            (``sha256:`` + 64 hex digits).
    """
    if algorithm == 'sha256':
        return _SHA256_PREFIX + hashlib.sha256(lf.content).hexdigest()
    return f'0x{zlib.crc32(lf.content) & 0xFFFFFFFF:08x}'


def hash_matches(lf: LicenseFile, expected: str) -> tuple[bool, str]:
    """Compare *lf* against an expected hash string.

    Returns:
        ``(matches, actual)`` where *actual* uses the same format as
        *expected*.
    """
    wanted = expected.strip().lower()
    if wanted.startswith(_SHA256_PREFIX):
        actual = file_hash(lf, 'sha256')
        return actual == wanted, actual
    actual = file_hash(lf, 'crc32')
    return int(actual, 16) == int(wanted, 16), actual


class LicenseResolver:
    """Determines the effective license of packages under a policy.

    Args:
        policy: The ``[licenses]`` policy (threshold, clarifications).
        store: Canonical texts for inference; defaults to the bundled
            store.
    """

    def __init__(self, policy: LicensePolicy, store: LicenseTextStore | None = None) -> None:
        self._policy = policy
        self._store = store if store is not None else LicenseTextStore.builtin()
        # Clarification expressions are shared by every version of a package.
        self._parse_cached = functools.lru_cache(maxsize=256)(parse)

    @property
    def policy(self) -> LicensePolicy:
        """The policy this resolver applies."""
        return self._policy

    def clarification_for(self, pkg: Package) -> Clarification | None:
        """The clarification covering *pkg*, if any."""
        clar = self._policy.clarifications.get(pkg.name)
        if clar is not None and clar.applies_to(pkg.id):
            return clar
        return None

    def resolve(self, pkg: Package) -> LicenseOutcome:
        """Resolve the effective license of *pkg*.

        Raises:
            StaleClarificationError: If a clarification applies but a
                referenced license file is missing or changed.
            ExpressionSyntaxError: If the clarified or declared
                expression is not valid SPDX syntax.
        """
        clar = self.clarification_for(pkg)
        if clar is not None:
            self._verify(pkg, clar)
            logger.debug('license_clarified', package=str(pkg.id), expression=clar.expression)
            return ClarifiedOverride(expression=self._parse_cached(clar.expression), clarification=clar)

        if pkg.license:
            return Declared(expression=self._parse_cached(normalize_legacy(pkg.license)), raw=pkg.license)

        return self._infer(pkg)

    def _verify(self, pkg: Package, clar: Clarification) -> None:
        for expected in clar.license_files:
            lf = pkg.license_file(expected.path)
            if lf is None:
                raise StaleClarificationError(str(pkg.id), expected.path, expected.hash, None)
            ok, actual = hash_matches(lf, expected.hash)
            if not ok:
                raise StaleClarificationError(str(pkg.id), expected.path, expected.hash, actual)

    def _infer(self, pkg: Package) -> LicenseOutcome:
        if not pkg.license_files:
            return Unresolved(reason='no license expression declared and no license files found')

        threshold = self._policy.confidence_threshold
        accepted: list[TextMatch] = []
        rejected: list[TextMatch] = []
        for lf in pkg.license_files:
            match = self._store.best_match(lf.text, path=lf.path)
            if match is None:
                continue
            (accepted if match.confidence >= threshold else rejected).append(match)
        logger.debug(
            'license_inferred',
            package=str(pkg.id),
            accepted=[f'{m.path}={m.license_id}:{m.confidence:.3f}' for m in accepted],
            rejected=[f'{m.path}={m.license_id}:{m.confidence:.3f}' for m in rejected],
        )

        if not accepted:
            best = max(rejected, key=lambda m: m.confidence, default=None)
            if best is None:
                reason = 'license files contain no recognizable text'
            else:
                reason = (
                    f'best license text match {best.license_id} in {best.path} has confidence '
                    f'{best.confidence:.3f}, below the threshold {threshold}'
                )
            return Unresolved(reason=reason, rejected=tuple(rejected))

        ids = sorted({m.license_id for m in accepted})
        expr: ExprNode = LicenseId(ids[0])
        for spdx_id in ids[1:]:
            expr = And(expr, LicenseId(spdx_id))
        return Inferred(expression=expr, matches=tuple(accepted), rejected=tuple(rejected))
