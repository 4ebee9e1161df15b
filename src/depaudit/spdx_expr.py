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

r"""SPDX license expression parsing and allow-list evaluation.

Parses SPDX license expressions (SPDX Specification Annex B) into an
immutable syntax tree and decides whether a tree is satisfied by a set
of allowed license identifiers.

Grammar, rewritten for recursive descent::

    or-expr    = and-expr *( "OR" and-expr )
    and-expr   = with-expr *( "AND" with-expr )
    with-expr  = primary [ "WITH" exception-id ]
    primary    = "(" or-expr ")" / license-id [ "+" ] / license-ref

Operator precedence (tightest to loosest)::

    +  >  WITH  >  AND  >  OR

Operators are recognised in all-upper or all-lower case only.  License
identifiers are matched case-insensitively.

Allow-list semantics::

    ┌─────────────────┬────────────────────────────────────────────────┐
    │ Node            │ Allowed when                                   │
    ├─────────────────┼────────────────────────────────────────────────┤
    │ MIT             │ "MIT" is in the allow set.                     │
    │ GPL-2.0+        │ "GPL-2.0+" or "GPL-2.0" is in the allow set.   │
    │ A WITH E        │ "A WITH E" is in the allow set.  The bare "A"  │
    │                 │ does not cover it, nor the other way round.    │
    │ A AND B         │ both A and B are allowed.                      │
    │ A OR B          │ at least one of A, B is allowed.               │
    └─────────────────┴────────────────────────────────────────────────┘

Usage::

    from depaudit.spdx_expr import is_allowed, parse

    expr = parse('ISC AND MIT AND OpenSSL')
    assert is_allowed(expr, {'ISC', 'MIT', 'OpenSSL'})
    assert not is_allowed(expr, {'ISC', 'MIT'})
    assert is_allowed(parse('MIT OR Apache-2.0'), {'Apache-2.0'})
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from depaudit.errors import ExpressionSyntaxError

__all__ = [
    'And',
    'ExprNode',
    'ExpressionSyntaxError',
    'LicenseId',
    'LicenseRef',
    'Or',
    'With',
    'failing_ids',
    'is_allowed',
    'leaf_ids',
    'normalize_legacy',
    'parse',
]


# ---------------------------------------------------------------------------
# Syntax tree
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LicenseId:
    """A license identifier such as ``MIT``, optionally ``+`` (or-later).

    Attributes:
        id: The SPDX short identifier.
        or_later: ``True`` if the ``+`` suffix was present.
    """

    id: str
    or_later: bool = False

    def __str__(self) -> str:
        """Return the identifier, with ``+`` suffix if or-later."""
        return f'{self.id}+' if self.or_later else self.id


@dataclass(frozen=True)
class LicenseRef:
    """A user-defined ``LicenseRef-...`` (optionally ``DocumentRef-...:``).

    Attributes:
        ref: The reference string (e.g. ``"LicenseRef-ring"``).
        document_ref: Optional ``DocumentRef-`` prefix.
    """

    ref: str
    document_ref: str = ''

    def __str__(self) -> str:
        """Return the license reference string."""
        return f'{self.document_ref}:{self.ref}' if self.document_ref else self.ref


@dataclass(frozen=True)
class With:
    """A license with an exception (``license WITH exception``).

    Attributes:
        license: The base license.
        exception: The exception identifier.
    """

    license: LicenseId | LicenseRef
    exception: str

    def __str__(self) -> str:
        """Return ``license WITH exception``."""
        return f'{self.license} WITH {self.exception}'


@dataclass(frozen=True)
class And:
    """Conjunction: the licensee must comply with both operands."""

    left: ExprNode
    right: ExprNode

    def __str__(self) -> str:
        """Return ``left AND right``, parenthesizing nested ``OR``."""
        return f'{_wrap_or(self.left)} AND {_wrap_or(self.right)}'


@dataclass(frozen=True)
class Or:
    """Disjunction: the licensee may pick either operand."""

    left: ExprNode
    right: ExprNode

    def __str__(self) -> str:
        """Return ``left OR right``."""
        return f'{self.left} OR {self.right}'


ExprNode = LicenseId | LicenseRef | With | And | Or


def _wrap_or(node: ExprNode) -> str:
    return f'({node})' if isinstance(node, Or) else str(node)


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------

_TOKEN_RE = re.compile(
    r"""
    (?P<op>AND|and|OR|or|WITH|with)(?![A-Za-z0-9.\-+:])
  | (?P<lparen>\()
  | (?P<rparen>\))
  | (?P<id>(?:DocumentRef-[A-Za-z0-9.\-]+:)?[A-Za-z0-9.\-]+)(?P<plus>\+)?
    """,
    re.VERBOSE,
)

# Cargo manifests historically used "/" as a disjunction.
_LEGACY_SLASH_RE = re.compile(r'\s*/\s*')


@dataclass(frozen=True)
class _Token:
    kind: str  # 'AND', 'OR', 'WITH', '(', ')', 'ID', 'EOF'
    text: str
    pos: int
    or_later: bool = False


def _tokens(expr: str) -> Iterator[_Token]:
    pos = 0
    length = len(expr)
    while pos < length:
        if expr[pos].isspace():
            pos += 1
            continue
        m = _TOKEN_RE.match(expr, pos)
        if m is None:
            raise ExpressionSyntaxError(expr, pos, f'unexpected character {expr[pos]!r}')
        if m.group('op'):
            yield _Token(m.group('op').upper(), m.group('op'), pos)
        elif m.group('lparen'):
            yield _Token('(', '(', pos)
        elif m.group('rparen'):
            yield _Token(')', ')', pos)
        else:
            yield _Token('ID', m.group('id'), pos, or_later=m.group('plus') is not None)
        pos = m.end()
    yield _Token('EOF', '', length)


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class _Parser:
    """Recursive descent parser over a token list."""

    def __init__(self, expr: str) -> None:
        self._expr = expr
        self._toks = list(_tokens(expr))
        self._i = 0

    @property
    def _cur(self) -> _Token:
        return self._toks[self._i]

    def _take(self, kind: str, what: str) -> _Token:
        tok = self._cur
        if tok.kind != kind:
            found = 'end of expression' if tok.kind == 'EOF' else repr(tok.text)
            raise ExpressionSyntaxError(self._expr, tok.pos, f'expected {what}, found {found}')
        self._i += 1
        return tok

    def parse(self) -> ExprNode:
        node = self._or_expr()
        if self._cur.kind != 'EOF':
            raise ExpressionSyntaxError(self._expr, self._cur.pos, f'unexpected {self._cur.text!r} after expression')
        return node

    def _or_expr(self) -> ExprNode:
        node = self._and_expr()
        while self._cur.kind == 'OR':
            self._i += 1
            node = Or(node, self._and_expr())
        return node

    def _and_expr(self) -> ExprNode:
        node = self._with_expr()
        while self._cur.kind == 'AND':
            self._i += 1
            node = And(node, self._with_expr())
        return node

    def _with_expr(self) -> ExprNode:
        node = self._primary()
        if self._cur.kind == 'WITH':
            with_tok = self._take('WITH', 'WITH')
            if not isinstance(node, (LicenseId, LicenseRef)):
                raise ExpressionSyntaxError(
                    self._expr,
                    with_tok.pos,
                    'WITH must follow a single license, not a compound expression',
                )
            exception = self._take('ID', 'license exception identifier')
            node = With(license=node, exception=exception.text)
        return node

    def _primary(self) -> ExprNode:
        tok = self._cur
        if tok.kind == '(':
            self._i += 1
            node = self._or_expr()
            self._take(')', '")"')
            return node
        ident = self._take('ID', 'license identifier or "("')
        if 'LicenseRef-' in ident.text or 'AdditionRef-' in ident.text:
            doc_ref, _, ref = ident.text.rpartition(':')
            return LicenseRef(ref=ref, document_ref=doc_ref)
        return LicenseId(id=ident.text, or_later=ident.or_later)


def normalize_legacy(text: str) -> str:
    """Rewrite legacy ``MIT/Apache-2.0`` declarations as ``MIT OR Apache-2.0``."""
    return _LEGACY_SLASH_RE.sub(' OR ', text.strip())


def parse(text: str) -> ExprNode:
    """Parse an SPDX license expression.

    Args:
        text: Expression such as ``"ISC AND MIT AND OpenSSL"``.

    Returns:
        The root node of the syntax tree.

    Raises:
        ExpressionSyntaxError: If *text* is empty or not a valid
            expression.

    Examples::

        >>> parse('MIT OR Apache-2.0')
        Or(left=LicenseId(id='MIT', or_later=False), right=LicenseId(id='Apache-2.0', or_later=False))
    """
    stripped = text.strip()
    if not stripped:
        raise ExpressionSyntaxError(text, 0, 'empty expression')
    return _Parser(stripped).parse()


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def _leaf_key(node: LicenseId | LicenseRef | With) -> str:
    return str(node).lower()


def _fold(allow: Iterable[str]) -> frozenset[str]:
    return frozenset(a.strip().lower() for a in allow)


def _leaf_allowed(node: LicenseId | LicenseRef | With, allow: frozenset[str]) -> bool:
    if _leaf_key(node) in allow:
        return True
    # "GPL-2.0+" is satisfied by choosing GPL-2.0 itself.
    return isinstance(node, LicenseId) and node.or_later and node.id.lower() in allow


def _eval(node: ExprNode, allow: frozenset[str]) -> bool:
    if isinstance(node, And):
        return _eval(node.left, allow) and _eval(node.right, allow)
    if isinstance(node, Or):
        return _eval(node.left, allow) or _eval(node.right, allow)
    return _leaf_allowed(node, allow)


def is_allowed(expr: ExprNode, allow: Iterable[str]) -> bool:
    """Return ``True`` if *expr* is satisfied by the *allow* set.

    ``AND`` requires every operand, ``OR`` requires at least one, and a
    ``WITH`` clause is a compound identifier of its own.  There is no
    partial credit.

    Args:
        expr: Parsed expression.
        allow: Allowed identifiers (case-insensitive).  ``WITH``
            entries are written as ``"GPL-2.0 WITH Classpath-exception-2.0"``.
    """
    return _eval(expr, _fold(allow))


def failing_ids(expr: ExprNode, allow: Iterable[str]) -> list[str]:
    """Return the leaves that keep *expr* from being allowed.

    For an ``OR`` where neither side passes, the failures of both sides
    are reported.  Returns an empty list when *expr* is allowed.
    """
    folded = _fold(allow)
    failed: list[str] = []

    def walk(node: ExprNode) -> None:
        if _eval(node, folded):
            return
        if isinstance(node, (And, Or)):
            walk(node.left)
            walk(node.right)
        elif str(node) not in failed:
            failed.append(str(node))

    walk(expr)
    return failed


def leaf_ids(expr: ExprNode) -> set[str]:
    """Collect every leaf identifier of *expr* as written.

    ``WITH`` clauses are reported as one compound identifier.

    Examples::

        >>> sorted(leaf_ids(parse('MIT OR (Apache-2.0 WITH LLVM-exception)')))
        ['Apache-2.0 WITH LLVM-exception', 'MIT']
    """
    if isinstance(expr, (And, Or)):
        return leaf_ids(expr.left) | leaf_ids(expr.right)
    return {str(expr)}
