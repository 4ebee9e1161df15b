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

r"""Resolved dependency graph model.

The graph is built once per audit from a resolver's output and is never
mutated afterwards.  Packages live in an arena indexed by a stable
integer id (their position in name/version order), and edges are
stored as sets of those ids.

Key Concepts (ELI5)::

    ┌─────────────────────┬────────────────────────────────────────────────┐
    │ Concept             │ Plain-English                                  │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ Root                │ A package nothing else depends on (your own   │
    │                     │ workspace members).                            │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ Optional edge       │ A dependency pulled in only when a feature is │
    │                     │ enabled.  ``all_features`` turns them all on. │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ Exclude             │ Drop a root and everything only it pulls in.  │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ Subtree             │ A package plus everything it transitively     │
    │                     │ depends on.  Used by skip-tree exceptions.    │
    └─────────────────────┴────────────────────────────────────────────────┘

Input document (the resolver's output, JSON-compatible)::

    {
      "roots": ["my-app@0.1.0"],                    # optional
      "packages": [
        {
          "name": "my-app", "version": "0.1.0",
          "license": "MIT",
          "default_features": ["tls"],
          "dependencies": [
            {"name": "ring", "version": "0.17.8", "optional": true, "feature": "tls"}
          ]
        },
        {
          "name": "ring", "version": "0.17.8",
          "license_files": [{"path": "LICENSE", "text": "..."}]
        }
      ]
    }

Usage::

    from depaudit.graph import build, load_graph

    graph = load_graph(Path('resolution.json'), all_features=True)
    graph.subtree('windows-sys')  # frozenset of Package
"""

from __future__ import annotations

import functools
import json
from collections import deque
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema

from depaudit._types import PackageId, PackageSpec, version_key
from depaudit.errors import MalformedGraphError
from depaudit.logging import get_logger

__all__ = [
    'DependencyGraph',
    'LicenseFile',
    'Package',
    'RESOLUTION_SCHEMA',
    'build',
    'load_graph',
]

logger = get_logger(__name__)

# File name prefixes treated as license files when a package directory
# is given instead of inline license texts.
_LICENSE_FILE_PREFIXES = ('LICENSE', 'LICENCE', 'COPYING', 'UNLICENSE')

_SPEC_OR_ID = {'type': 'string', 'minLength': 1}

RESOLUTION_SCHEMA: dict[str, Any] = {
    '$schema': 'https://json-schema.org/draft/2020-12/schema',
    'type': 'object',
    'required': ['packages'],
    'properties': {
        'roots': {'type': 'array', 'items': _SPEC_OR_ID},
        'packages': {
            'type': 'array',
            'items': {
                'type': 'object',
                'required': ['name', 'version'],
                'properties': {
                    'name': {'type': 'string', 'minLength': 1},
                    'version': {'type': 'string', 'minLength': 1},
                    'source': {'type': 'string'},
                    'license': {'type': ['string', 'null']},
                    'path': {'type': 'string'},
                    'features': {'type': 'array', 'items': {'type': 'string'}},
                    'default_features': {'type': 'array', 'items': {'type': 'string'}},
                    'license_files': {
                        'type': 'array',
                        'items': {
                            'type': 'object',
                            'required': ['path'],
                            'properties': {
                                'path': {'type': 'string', 'minLength': 1},
                                'text': {'type': 'string'},
                            },
                        },
                    },
                    'dependencies': {
                        'type': 'array',
                        'items': {
                            'type': 'object',
                            'required': ['name', 'version'],
                            'properties': {
                                'name': {'type': 'string', 'minLength': 1},
                                'version': {'type': 'string', 'minLength': 1},
                                'source': {'type': 'string'},
                                'optional': {'type': 'boolean'},
                                'feature': {'type': 'string'},
                            },
                        },
                    },
                },
            },
        },
    },
}


def _norm_path(path: str) -> str:
    path = path.replace('\\', '/')
    while path.startswith('./'):
        path = path[2:]
    return path


@dataclass(frozen=True)
class LicenseFile:
    """A license file shipped with a package.

    Attributes:
        path: Path relative to the package root (e.g. ``"LICENSE"``).
        content: Raw file bytes, hashed for clarification checks.
    """

    path: str
    content: bytes = field(repr=False)

    @property
    def text(self) -> str:
        """The content decoded as UTF-8 (undecodable bytes replaced)."""
        return self.content.decode('utf-8', errors='replace')


@dataclass(frozen=True)
class Package:
    """A resolved package.  Equality and hashing use :attr:`id` only.

    Attributes:
        id: ``(name, version, source)`` identity.
        license: Declared license expression from the manifest, as
            written, or ``None`` if the manifest declares none.
        license_files: License files found in the package.
        features: Every feature the package defines.
        default_features: Features enabled by default.
    """

    id: PackageId
    license: str | None = field(default=None, compare=False)
    license_files: tuple[LicenseFile, ...] = field(default=(), compare=False, repr=False)
    features: frozenset[str] = field(default=frozenset(), compare=False, repr=False)
    default_features: frozenset[str] = field(default=frozenset(), compare=False, repr=False)

    @property
    def name(self) -> str:
        """Package name."""
        return self.id.name

    @property
    def version(self) -> str:
        """Package version."""
        return self.id.version

    def license_file(self, path: str) -> LicenseFile | None:
        """Return the license file at *path*, or ``None``."""
        wanted = _norm_path(path)
        for lf in self.license_files:
            if _norm_path(lf.path) == wanted:
                return lf
        return None


class DependencyGraph:
    """Immutable package dependency graph.

    Do not construct directly; use :func:`build` or :func:`load_graph`.

    Args:
        packages: Arena of packages; a package's index is its id.
        edges: Mapping from package index to the indices it depends on.
        roots: Indices of the root packages.
    """

    def __init__(
        self,
        packages: list[Package],
        edges: Mapping[int, frozenset[int]],
        roots: Iterable[int],
    ) -> None:
        self._packages = tuple(packages)
        self._index = {pkg.id: i for i, pkg in enumerate(self._packages)}
        self._edges = {i: frozenset(edges.get(i, frozenset())) for i in range(len(self._packages))}
        reverse: dict[int, set[int]] = {i: set() for i in range(len(self._packages))}
        for src, targets in self._edges.items():
            for dst in targets:
                reverse[dst].add(src)
        self._reverse = {i: frozenset(s) for i, s in reverse.items()}
        self._roots = tuple(sorted(set(roots)))
        by_name: dict[str, list[Package]] = {}
        for pkg in self._packages:
            by_name.setdefault(pkg.name, []).append(pkg)
        self._by_name = {name: tuple(pkgs) for name, pkgs in by_name.items()}
        # Subtree queries repeat for every skip-tree rule and every check.
        self._reach_cached = functools.lru_cache(maxsize=None)(self._reach)

    def __len__(self) -> int:
        return len(self._packages)

    def __iter__(self) -> Iterator[Package]:
        return iter(self._packages)

    def __contains__(self, item: object) -> bool:
        if isinstance(item, Package):
            return item.id in self._index
        if isinstance(item, PackageId):
            return item in self._index
        return False

    @property
    def packages(self) -> tuple[Package, ...]:
        """All packages in name/version order."""
        return self._packages

    @property
    def roots(self) -> tuple[Package, ...]:
        """Root packages (workspace members)."""
        return tuple(self._packages[i] for i in self._roots)

    def names(self) -> list[str]:
        """Sorted distinct package names."""
        return sorted(self._by_name)

    def by_name(self, name: str) -> tuple[Package, ...]:
        """Every package called *name*, in version order."""
        return self._by_name.get(name, ())

    def get(self, name: str, version: str, source: str | None = None) -> Package | None:
        """Look up a package; *source* may be omitted if unambiguous."""
        matches = [p for p in self.by_name(name) if p.version == version]
        if source is not None:
            matches = [p for p in matches if p.id.source == source]
        return matches[0] if len(matches) == 1 else None

    def index_of(self, pkg: Package | PackageId) -> int:
        """Return the arena index of *pkg*.

        Raises:
            KeyError: If *pkg* is not in the graph.
        """
        pkg_id = pkg.id if isinstance(pkg, Package) else pkg
        return self._index[pkg_id]

    def dependencies(self, pkg: Package) -> tuple[Package, ...]:
        """Direct dependencies of *pkg*."""
        return tuple(self._packages[i] for i in sorted(self._edges[self.index_of(pkg)]))

    def dependents(self, pkg: Package) -> tuple[Package, ...]:
        """Packages that depend directly on *pkg*."""
        return tuple(self._packages[i] for i in sorted(self._reverse[self.index_of(pkg)]))

    def _reach(self, start: int, depth: int | None) -> frozenset[int]:
        seen = {start}
        frontier: deque[tuple[int, int]] = deque([(start, 0)])
        while frontier:
            current, level = frontier.popleft()
            if depth is not None and level >= depth:
                continue
            for nxt in self._edges[current]:
                if nxt not in seen:
                    seen.add(nxt)
                    frontier.append((nxt, level + 1))
        return frozenset(seen)

    def subtree(self, name: str | PackageSpec, depth: int | None = None) -> frozenset[Package]:
        """Return *name* and every package reachable from it.

        Args:
            name: Package name, or a :class:`PackageSpec` to restrict
                the starting points to one version.
            depth: Maximum number of edges to follow; ``None`` means
                unlimited.  ``0`` returns only the named packages.

        Returns:
            The starting packages and their transitive dependencies.
            Empty if no package matches.
        """
        spec = name if isinstance(name, PackageSpec) else PackageSpec(name)
        reached: set[int] = set()
        for pkg in self.by_name(spec.name):
            if spec.matches(pkg.id):
                reached |= self._reach_cached(self._index[pkg.id], depth)
        return frozenset(self._packages[i] for i in reached)


# ── Construction ─────────────────────────────────────────────────────


def _validate_schema(raw: Any) -> None:  # noqa: ANN401
    validator = jsonschema.Draft202012Validator(RESOLUTION_SCHEMA)
    errors = sorted(validator.iter_errors(raw), key=lambda e: list(e.absolute_path))
    if errors:
        raise MalformedGraphError([
            f'{".".join(str(p) for p in e.absolute_path) or "(root)"}: {e.message}' for e in errors
        ])


def _read_license_files(
    entry: Mapping[str, Any],
    base_dir: Path | None,
    errors: list[str],
) -> tuple[LicenseFile, ...]:
    label = f'{entry["name"]}@{entry["version"]}'
    pkg_dir: Path | None = None
    if 'path' in entry:
        pkg_dir = Path(entry['path'])
        if base_dir is not None and not pkg_dir.is_absolute():
            pkg_dir = base_dir / pkg_dir

    files: list[LicenseFile] = []
    declared = entry.get('license_files')
    if declared is None:
        if pkg_dir is None or not pkg_dir.is_dir():
            return ()
        for child in sorted(pkg_dir.iterdir()):
            if child.is_file() and child.name.upper().startswith(_LICENSE_FILE_PREFIXES):
                files.append(LicenseFile(path=child.name, content=child.read_bytes()))
        return tuple(files)

    for lf in declared:
        if 'text' in lf:
            files.append(LicenseFile(path=lf['path'], content=lf['text'].encode('utf-8')))
            continue
        if pkg_dir is None:
            errors.append(f'{label}: license file {lf["path"]!r} has no text and the package has no path')
            continue
        file_path = pkg_dir / lf['path']
        try:
            files.append(LicenseFile(path=lf['path'], content=file_path.read_bytes()))
        except OSError as exc:
            errors.append(f'{label}: cannot read license file {str(file_path)!r}: {exc.strerror}')
    return tuple(files)


def _find_cycle(edges: Mapping[int, Iterable[int]], count: int) -> list[int]:
    """Return one cycle as a list of indices (first repeated last), or ``[]``."""
    white, gray, black = 0, 1, 2
    color = [white] * count
    for start in range(count):
        if color[start] != white:
            continue
        stack: list[tuple[int, list[int]]] = [(start, sorted(edges.get(start, ())))]
        path = [start]
        color[start] = gray
        while stack:
            node, pending = stack[-1]
            if not pending:
                color[node] = black
                stack.pop()
                path.pop()
                continue
            nxt = pending.pop(0)
            if color[nxt] == gray:
                return [*path[path.index(nxt) :], nxt]
            if color[nxt] == white:
                color[nxt] = gray
                path.append(nxt)
                stack.append((nxt, sorted(edges.get(nxt, ()))))
    return []


def build(
    raw_resolution: Mapping[str, Any],
    *,
    all_features: bool = False,
    exclude: Iterable[str | PackageSpec] = (),
    base_dir: Path | None = None,
) -> DependencyGraph:
    """Build a :class:`DependencyGraph` from a resolver's output.

    Args:
        raw_resolution: The resolution document (see module docstring).
        all_features: Include every optional edge regardless of which
            features are enabled by default.
        exclude: Package specs (``name`` or ``name@version``) to drop
            together with everything only reachable through them.
        base_dir: Directory that relative package ``path`` values are
            resolved against.

    Returns:
        The immutable dependency graph.

    Raises:
        MalformedGraphError: If the document does not match the schema,
            a package id is duplicated, an edge or root names an unknown
            package, no root can be found, or any edge (optional ones
            included) closes a cycle.
    """
    _validate_schema(raw_resolution)
    entries: list[Mapping[str, Any]] = sorted(
        raw_resolution['packages'],
        key=lambda e: (e['name'], version_key(e['version']), e['version'], e.get('source', '')),
    )

    errors: list[str] = []
    packages: list[Package] = []
    index: dict[PackageId, int] = {}
    by_name_version: dict[tuple[str, str], list[int]] = {}
    for entry in entries:
        pkg_id = PackageId(entry['name'], entry['version'], entry.get('source', ''))
        if pkg_id in index:
            errors.append(f'duplicate package {pkg_id} (source {pkg_id.source!r})')
            continue
        pkg = Package(
            id=pkg_id,
            license=entry.get('license') or None,
            license_files=_read_license_files(entry, base_dir, errors),
            features=frozenset(entry.get('features', ())) | frozenset(entry.get('default_features', ())),
            default_features=frozenset(entry.get('default_features', ())),
        )
        index[pkg_id] = len(packages)
        by_name_version.setdefault((pkg_id.name, pkg_id.version), []).append(len(packages))
        packages.append(pkg)

    all_edges: dict[int, set[int]] = {i: set() for i in range(len(packages))}
    active: dict[int, set[int]] = {i: set() for i in range(len(packages))}
    for entry in entries:
        src_id = PackageId(entry['name'], entry['version'], entry.get('source', ''))
        src = index.get(src_id)
        if src is None:
            continue
        for dep in entry.get('dependencies', ()):
            candidates = by_name_version.get((dep['name'], dep['version']), [])
            if 'source' in dep:
                candidates = [i for i in candidates if packages[i].id.source == dep['source']]
            if not candidates:
                errors.append(f'{src_id} depends on unknown package {dep["name"]}@{dep["version"]}')
                continue
            if len(candidates) > 1:
                errors.append(
                    f'{src_id} dependency {dep["name"]}@{dep["version"]} is ambiguous; '
                    'it exists from several sources, give "source"'
                )
                continue
            dst = candidates[0]
            all_edges[src].add(dst)
            if not dep.get('optional', False) or all_features:
                active[src].add(dst)
            elif dep.get('feature') in packages[src].default_features:
                active[src].add(dst)

    roots: set[int] = set()
    if 'roots' in raw_resolution:
        for text in raw_resolution['roots']:
            try:
                spec = PackageSpec.parse(text)
            except ValueError as exc:
                errors.append(f'root {text!r}: {exc}')
                continue
            matched = [i for i, p in enumerate(packages) if spec.matches(p.id)]
            if not matched:
                errors.append(f'root {text!r} does not name a package in the resolution')
            roots.update(matched)
    else:
        has_incoming = {dst for targets in all_edges.values() for dst in targets}
        roots = {i for i in range(len(packages)) if i not in has_incoming}

    if packages and not roots:
        errors.append('no root package: every package is depended on by another package')
    if errors:
        raise MalformedGraphError(errors)

    # Optional edges included, enabled or not.
    cycle = _find_cycle(all_edges, len(packages))
    if cycle:
        names = tuple(str(packages[i].id) for i in cycle)
        raise MalformedGraphError([f'dependency cycle: {" -> ".join(names)}'], cycle=names)

    excluded = _excluded_indices(packages, exclude)
    kept = _reachable(active, roots - excluded, excluded)
    return _compact(packages, active, roots, kept)


def _excluded_indices(packages: list[Package], exclude: Iterable[str | PackageSpec]) -> set[int]:
    excluded: set[int] = set()
    for item in exclude:
        spec = item if isinstance(item, PackageSpec) else PackageSpec.parse(item)
        matched = {i for i, p in enumerate(packages) if spec.matches(p.id)}
        if not matched:
            logger.warning('exclude_unmatched', spec=str(spec))
        excluded |= matched
    return excluded


def _reachable(edges: Mapping[int, set[int]], starts: set[int], blocked: set[int]) -> set[int]:
    seen = set(starts)
    queue = deque(sorted(starts))
    while queue:
        current = queue.popleft()
        for nxt in edges[current]:
            if nxt not in seen and nxt not in blocked:
                seen.add(nxt)
                queue.append(nxt)
    return seen


def _compact(
    packages: list[Package],
    edges: Mapping[int, set[int]],
    roots: set[int],
    kept: set[int],
) -> DependencyGraph:
    order = sorted(kept)
    remap = {old: new for new, old in enumerate(order)}
    new_edges = {remap[old]: frozenset(remap[d] for d in edges[old] if d in remap) for old in order}
    new_roots = [remap[r] for r in roots if r in remap]
    dropped = len(packages) - len(order)
    logger.debug('graph_built', packages=len(order), roots=len(new_roots), pruned=dropped)
    return DependencyGraph([packages[i] for i in order], new_edges, new_roots)


def load_graph(
    path: Path,
    *,
    all_features: bool = False,
    exclude: Iterable[str | PackageSpec] = (),
) -> DependencyGraph:
    """Read a JSON resolution document from *path* and :func:`build` it.

    Relative package directories are resolved against the document's
    parent directory.

    Raises:
        MalformedGraphError: If the file is not valid JSON or the graph
            is invalid.
    """
    try:
        raw = json.loads(path.read_text(encoding='utf-8'))
    except json.JSONDecodeError as exc:
        raise MalformedGraphError([f'{path}: invalid JSON: {exc}']) from exc
    return build(raw, all_features=all_features, exclude=exclude, base_dir=path.parent)
