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

r"""Confidence-scored matching of license file text.

Compares a license file against a bundled set of canonical license
texts and reports the closest one with a confidence score between 0.0
and 1.0.  This is deliberately not a general classifier: a text only
matches licenses we ship a template for.

Scoring:

    1. **Normalize** — lowercase, drop copyright lines and ``<...>``
       template placeholders, strip punctuation, collapse whitespace.
    2. **Shingle** — split into overlapping word trigrams.
    3. **Compare** — Sørensen–Dice coefficient between the two
       shingle sets: ``2·|A∩B| / (|A| + |B|)``.

Copyright lines differ in every copy of a license, so removing them
keeps a verbatim MIT license at confidence 1.0 regardless of its
holder line.

Usage::

    from depaudit.checks._license_text import LicenseTextStore

    store = LicenseTextStore.builtin()
    match = store.best_match(Path('LICENSE').read_text())
    if match and match.confidence >= 0.92:
        print(match.license_id)
"""

from __future__ import annotations

import functools
import importlib.resources as _resources
import re
from collections.abc import Mapping
from dataclasses import dataclass

from depaudit.logging import get_logger

__all__ = [
    'LicenseTextStore',
    'TextMatch',
    'normalize_text',
    'similarity',
]

logger = get_logger(__name__)

_COPYRIGHT_LINE_RE = re.compile(
    r'^\s*(?:copyright\s*(?:\(c\)|©|\d{4}|\[)|\(c\)\s*\d{4}|©|all rights reserved\.?\s*$).*$',
    re.IGNORECASE | re.MULTILINE,
)
_PLACEHOLDER_RE = re.compile(r'<[^<>\n]{1,80}>|\[[^\[\]\n]{1,80}\]')
_NON_WORD_RE = re.compile(r'[^a-z0-9]+')

_SHINGLE_SIZE = 3


def normalize_text(text: str) -> list[str]:
    """Return the word tokens of *text* after normalization."""
    text = _COPYRIGHT_LINE_RE.sub(' ', text)
    text = _PLACEHOLDER_RE.sub(' ', text)
    return _NON_WORD_RE.sub(' ', text.lower()).split()


def _shingles(tokens: list[str]) -> frozenset[tuple[str, ...]]:
    if len(tokens) < _SHINGLE_SIZE:
        return frozenset({tuple(tokens)}) if tokens else frozenset()
    return frozenset(tuple(tokens[i : i + _SHINGLE_SIZE]) for i in range(len(tokens) - _SHINGLE_SIZE + 1))


def _dice(a: frozenset[tuple[str, ...]], b: frozenset[tuple[str, ...]]) -> float:
    if not a or not b:
        return 0.0
    return 2.0 * len(a & b) / (len(a) + len(b))


def similarity(a: str, b: str) -> float:
    """Similarity of two license texts, from 0.0 to 1.0."""
    return _dice(_shingles(normalize_text(a)), _shingles(normalize_text(b)))


@dataclass(frozen=True)
class TextMatch:
    """The best canonical match for a license text.

    Attributes:
        license_id: SPDX identifier of the closest canonical text.
        confidence: Similarity score from 0.0 to 1.0.
        path: License file the text came from (``""`` if unknown).
    """

    license_id: str
    confidence: float
    path: str = ''


class LicenseTextStore:
    """Canonical license texts with precomputed shingle sets.

    Args:
        texts: Mapping from SPDX identifier to canonical license text.
    """

    def __init__(self, texts: Mapping[str, str]) -> None:
        self._shingles = {spdx_id: _shingles(normalize_text(text)) for spdx_id, text in texts.items()}
        # License files are frequently identical across packages.
        self._best_cached = functools.lru_cache(maxsize=1024)(self._best_impl)

    @classmethod
    @functools.cache
    def builtin(cls) -> LicenseTextStore:
        """The store of texts bundled under ``depaudit/data/licenses``."""
        texts: dict[str, str] = {}
        root = _resources.files('depaudit') / 'data' / 'licenses'
        for entry in root.iterdir():
            if entry.name.endswith('.txt'):
                texts[entry.name.removesuffix('.txt')] = entry.read_text(encoding='utf-8')
        logger.debug('license_texts_loaded', count=len(texts))
        return cls(texts)

    @property
    def license_ids(self) -> list[str]:
        """Sorted identifiers with a canonical text."""
        return sorted(self._shingles)

    def score(self, text: str, spdx_id: str) -> float:
        """Similarity between *text* and the canonical *spdx_id* text.

        Raises:
            KeyError: If no canonical text exists for *spdx_id*.
        """
        return _dice(_shingles(normalize_text(text)), self._shingles[spdx_id])

    def best_match(self, text: str, *, path: str = '') -> TextMatch | None:
        """Return the closest canonical license for *text*.

        Ties are broken by identifier so the result is deterministic.
        Returns ``None`` if *text* has no words or the store is empty.
        """
        best = self._best_cached(text)
        if best is None:
            return None
        return TextMatch(license_id=best[0], confidence=best[1], path=path)

    def _best_impl(self, text: str) -> tuple[str, float] | None:
        shingles = _shingles(normalize_text(text))
        if not shingles or not self._shingles:
            return None
        scored = sorted(
            ((spdx_id, _dice(shingles, canon)) for spdx_id, canon in self._shingles.items()),
            key=lambda item: (-item[1], item[0]),
        )
        return scored[0]
