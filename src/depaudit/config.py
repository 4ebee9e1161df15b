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

r"""Load a :class:`~depaudit.policy.Policy` from a ``deny.toml`` file.

Supported layout (sections and keys not listed are ignored with a
debug log, so a full cargo-deny configuration loads unchanged)::

    [graph]
    all-features = true
    exclude = ["examples"]

    [bans]
    multiple-versions = "deny"              # deny | warn | allow
    multiple-versions-zero-tolerance = false
    deny = [
        { crate = "term", reason = "use termcolor" },
        { crate = "openssl", wrappers = ["native-tls"] },
        "quickersort",
    ]
    skip = [{ crate = "itertools@0.12.1", reason = "bindgen" }]
    skip-tree = [{ crate = "windows-sys", depth = 3 }]

    [licenses]
    confidence-threshold = 0.92
    allow = ["MIT", "Apache-2.0"]
    unused-allowed-license = "warn"

    [[licenses.clarify]]
    crate = "ring"
    expression = "ISC AND MIT AND OpenSSL"
    license-files = [{ path = "LICENSE", hash = 0xbd0eed23 }]

    [[licenses.exceptions]]
    crate = "webpki-roots"
    allow = ["MPL-2.0"]

Package specs are ``name`` or ``name@version``; the older
``{ name = "x", version = "=1.2.3" }`` form is accepted for exact
versions.  All validation problems are collected and raised together
as one :class:`~depaudit.errors.PolicyError`.
"""

from __future__ import annotations

import re
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from depaudit._types import LintLevel, PackageSpec
from depaudit.errors import ExpressionSyntaxError, PolicyError
from depaudit.logging import get_logger
from depaudit.policy import (
    BanRule,
    BansPolicy,
    Clarification,
    ClarifiedFile,
    GraphOptions,
    LicenseException,
    LicensePolicy,
    Policy,
)
from depaudit.spdx_expr import parse as spdx_parse

__all__ = [
    'load_policy',
    'parse_policy',
]

logger = get_logger(__name__)

_HEX_RE = re.compile(r'^0x[0-9a-fA-F]{1,8}$')
_SHA256_RE = re.compile(r'^sha256:[0-9a-fA-F]{64}$')

_KNOWN_KEYS: dict[str, frozenset[str]] = {
    'graph': frozenset({'all-features', 'exclude'}),
    'bans': frozenset({'multiple-versions', 'multiple-versions-zero-tolerance', 'deny', 'skip', 'skip-tree'}),
    'licenses': frozenset({
        'version',
        'allow',
        'confidence-threshold',
        'clarify',
        'exceptions',
        'unused-allowed-license',
    }),
}


class _Collector:
    """Accumulates validation errors while walking the document."""

    def __init__(self) -> None:
        self.errors: list[str] = []

    def add(self, where: str, message: str) -> None:
        self.errors.append(f'{where}: {message}')

    def table(self, data: Mapping[str, Any], key: str) -> dict[str, Any]:
        value = data.get(key, {})
        if not isinstance(value, dict):
            self.add(f'[{key}]', f'expected a table, got {type(value).__name__}')
            return {}
        for unknown in sorted(set(value) - _KNOWN_KEYS.get(key, frozenset(value))):
            logger.debug('config_key_ignored', section=key, key=unknown)
        return value

    def array(self, data: Mapping[str, Any], key: str, where: str) -> list[Any]:
        value = data.get(key, [])
        if not isinstance(value, list):
            self.add(f'{where}.{key}', f'expected an array, got {type(value).__name__}')
            return []
        return value

    def string_list(self, data: Mapping[str, Any], key: str, where: str) -> list[str]:
        items = self.array(data, key, where)
        if not all(isinstance(i, str) for i in items):
            self.add(f'{where}.{key}', 'all entries must be strings')
            return []
        return items

    def boolean(self, data: Mapping[str, Any], key: str, where: str, default: bool) -> bool:
        value = data.get(key, default)
        if not isinstance(value, bool):
            self.add(f'{where}.{key}', f'expected a boolean, got {type(value).__name__}')
            return default
        return value

    def lint_level(self, data: Mapping[str, Any], key: str, where: str, default: LintLevel) -> LintLevel:
        value = data.get(key, default.value)
        try:
            return LintLevel(value)
        except ValueError:
            allowed = ', '.join(level.value for level in LintLevel)
            self.add(f'{where}.{key}', f'{value!r} is not one of: {allowed}')
            return default


def _entry_spec(entry: Any, where: str, errors: _Collector) -> PackageSpec | None:  # noqa: ANN401
    """Read the package spec of a ``crate``/``name`` entry or bare string."""
    if isinstance(entry, str):
        raw, version = entry, None
    elif isinstance(entry, dict):
        raw = entry.get('crate', entry.get('name'))
        version = entry.get('version')
        if not isinstance(raw, str):
            errors.add(where, 'missing required string field "crate"')
            return None
    else:
        errors.add(where, f'expected a string or table, got {type(entry).__name__}')
        return None

    try:
        spec = PackageSpec.parse(raw)
    except ValueError as exc:
        errors.add(where, str(exc))
        return None

    if version is not None:
        if not isinstance(version, str):
            errors.add(f'{where}.version', f'expected a string, got {type(version).__name__}')
            return None
        exact = version.strip().removeprefix('=').strip()
        if not exact or any(ch in exact for ch in '<>^~*, '):
            errors.add(f'{where}.version', f'only exact versions are supported, got {version!r}')
            return None
        if spec.version is not None and spec.version != exact:
            errors.add(where, f'conflicting versions {spec.version!r} and {exact!r}')
            return None
        spec = PackageSpec(spec.name, exact)
    return spec


def _reason(entry: Any, where: str, errors: _Collector) -> str:  # noqa: ANN401
    if not isinstance(entry, dict):
        return ''
    reason = entry.get('reason', '')
    if not isinstance(reason, str):
        errors.add(f'{where}.reason', f'expected a string, got {type(reason).__name__}')
        return ''
    return reason


def _parse_graph(data: Mapping[str, Any], errors: _Collector) -> GraphOptions:
    section = errors.table(data, 'graph')
    exclude = errors.string_list(section, 'exclude', '[graph]')
    for i, text in enumerate(exclude):
        try:
            PackageSpec.parse(text)
        except ValueError as exc:
            errors.add(f'[graph].exclude[{i}]', str(exc))
    return GraphOptions(
        all_features=errors.boolean(section, 'all-features', '[graph]', False),
        exclude=tuple(exclude),
    )


def _parse_bans(data: Mapping[str, Any], errors: _Collector) -> BansPolicy:
    section = errors.table(data, 'bans')
    rules: list[BanRule] = []

    for i, entry in enumerate(errors.array(section, 'deny', '[bans]')):
        where = f'[bans].deny[{i}]'
        spec = _entry_spec(entry, where, errors)
        if spec is None:
            continue
        wrappers: list[str] = []
        if isinstance(entry, dict):
            wrappers = errors.string_list(entry, 'wrappers', where)
        rules.append(BanRule.deny(spec, reason=_reason(entry, where, errors), wrappers=frozenset(wrappers)))

    for i, entry in enumerate(errors.array(section, 'skip', '[bans]')):
        where = f'[bans].skip[{i}]'
        spec = _entry_spec(entry, where, errors)
        if spec is not None:
            rules.append(BanRule.skip(spec, reason=_reason(entry, where, errors)))

    for i, entry in enumerate(errors.array(section, 'skip-tree', '[bans]')):
        where = f'[bans].skip-tree[{i}]'
        spec = _entry_spec(entry, where, errors)
        if spec is None:
            continue
        depth = entry.get('depth') if isinstance(entry, dict) else None
        if depth is not None and (not isinstance(depth, int) or isinstance(depth, bool) or depth < 0):
            errors.add(f'{where}.depth', f'expected a non-negative integer, got {depth!r}')
            continue
        rules.append(BanRule.skip_tree(spec, reason=_reason(entry, where, errors), depth=depth))

    return BansPolicy(
        multiple_versions=errors.lint_level(section, 'multiple-versions', '[bans]', LintLevel.WARN),
        multiple_versions_zero_tolerance=errors.boolean(
            section, 'multiple-versions-zero-tolerance', '[bans]', False
        ),
        rules=tuple(rules),
    )


def _parse_hash(value: Any, where: str, errors: _Collector) -> str | None:  # noqa: ANN401
    if isinstance(value, int) and not isinstance(value, bool):
        if not 0 <= value <= 0xFFFFFFFF:
            errors.add(where, f'CRC-32 hash out of range: {value}')
            return None
        return f'0x{value:08x}'
    if isinstance(value, str):
        text = value.strip()
        if _HEX_RE.match(text):
            return f'0x{int(text, 16):08x}'
        if _SHA256_RE.match(text):
            return text.lower()
    errors.add(where, f'expected a CRC-32 integer, "0x..." or "sha256:..." hash, got {value!r}')
    return None


def _check_expression(text: Any, where: str, errors: _Collector) -> str | None:  # noqa: ANN401
    if not isinstance(text, str):
        errors.add(where, 'missing required string field "expression"')
        return None
    try:
        spdx_parse(text)
    except ExpressionSyntaxError as exc:
        errors.add(where, exc.detail + f' in {text!r}')
        return None
    return text


def _parse_clarifications(section: Mapping[str, Any], errors: _Collector) -> dict[str, Clarification]:
    clarifications: dict[str, Clarification] = {}
    for i, entry in enumerate(errors.array(section, 'clarify', '[licenses]')):
        where = f'[[licenses.clarify]][{i}]'
        if not isinstance(entry, dict):
            errors.add(where, f'expected a table, got {type(entry).__name__}')
            continue
        spec = _entry_spec(entry, where, errors)
        expression = _check_expression(entry.get('expression'), f'{where}.expression', errors)
        files: list[ClarifiedFile] = []
        for j, lf in enumerate(errors.array(entry, 'license-files', where)):
            lf_where = f'{where}.license-files[{j}]'
            if not isinstance(lf, dict) or not isinstance(lf.get('path'), str):
                errors.add(lf_where, 'expected a table with a string "path"')
                continue
            digest = _parse_hash(lf.get('hash'), f'{lf_where}.hash', errors)
            if digest is not None:
                files.append(ClarifiedFile(path=lf['path'], hash=digest))
        if spec is None or expression is None:
            continue
        if spec.name in clarifications:
            errors.add(where, f'duplicate clarification for {spec.name!r}')
            continue
        clarifications[spec.name] = Clarification(
            name=spec.name,
            expression=expression,
            license_files=tuple(files),
            version=spec.version,
        )
    return clarifications


def _parse_licenses(data: Mapping[str, Any], errors: _Collector) -> LicensePolicy | None:
    section = errors.table(data, 'licenses')
    version = section.get('version', 2)
    if version != 2:
        logger.warning('licenses_config_version', version=version, supported=2)

    allow = errors.string_list(section, 'allow', '[licenses]')
    threshold = section.get('confidence-threshold', 0.8)
    if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
        errors.add('[licenses].confidence-threshold', f'expected a number, got {type(threshold).__name__}')
        threshold = 0.8
    elif not 0.0 <= threshold <= 1.0:
        errors.add('[licenses].confidence-threshold', f'must be within [0, 1], got {threshold}')
        threshold = 0.8

    exceptions: list[LicenseException] = []
    for i, entry in enumerate(errors.array(section, 'exceptions', '[licenses]')):
        where = f'[[licenses.exceptions]][{i}]'
        spec = _entry_spec(entry, where, errors)
        extra = errors.string_list(entry, 'allow', where) if isinstance(entry, dict) else []
        if spec is not None:
            exceptions.append(LicenseException(spec=spec, allow=frozenset(extra)))

    clarifications = _parse_clarifications(section, errors)
    unused = errors.lint_level(section, 'unused-allowed-license', '[licenses]', LintLevel.WARN)
    if errors.errors:
        return None
    return LicensePolicy(
        allow=frozenset(allow),
        confidence_threshold=float(threshold),
        clarifications=clarifications,
        exceptions=tuple(exceptions),
        unused_allowed_license=unused,
    )


def parse_policy(data: Mapping[str, Any]) -> Policy:
    """Build a :class:`Policy` from an already-parsed TOML document.

    Raises:
        PolicyError: With every validation problem found.
    """
    errors = _Collector()
    graph = _parse_graph(data, errors)
    bans = _parse_bans(data, errors)
    licenses = _parse_licenses(data, errors)
    if errors.errors or licenses is None:
        raise PolicyError(errors.errors)
    logger.debug(
        'policy_loaded',
        rules=len(bans.rules),
        allowed_licenses=len(licenses.allow),
        clarifications=len(licenses.clarifications),
    )
    return Policy(graph=graph, bans=bans, licenses=licenses)


def load_policy(path: Path) -> Policy:
    """Read and validate a ``deny.toml`` policy file.

    Raises:
        PolicyError: If the file is missing, is not valid TOML, or fails
            validation.
    """
    try:
        with path.open('rb') as f:
            data = tomllib.load(f)
    except FileNotFoundError as exc:
        raise PolicyError([f'{path}: file not found']) from exc
    except tomllib.TOMLDecodeError as exc:
        raise PolicyError([f'{path}: invalid TOML: {exc}']) from exc
    return parse_policy(data)
