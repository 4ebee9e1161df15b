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

"""Tests for SPDX expression parsing and allow-list evaluation."""

from __future__ import annotations

import pytest
from depaudit.errors import AuditError
from depaudit.spdx_expr import (
    And,
    ExpressionSyntaxError,
    LicenseId,
    LicenseRef,
    Or,
    With,
    failing_ids,
    is_allowed,
    leaf_ids,
    normalize_legacy,
    parse,
)

# ── Parsing ──────────────────────────────────────────────────────────


class TestParse:
    """Tests for parse."""

    def test_single_id(self) -> None:
        """Test single id."""
        assert parse('MIT') == LicenseId('MIT')

    def test_or_later(self) -> None:
        """Test or later suffix."""
        assert parse('GPL-2.0+') == LicenseId('GPL-2.0', or_later=True)

    def test_and_binds_tighter_than_or(self) -> None:
        """Test AND binds tighter than OR."""
        assert parse('MIT OR Apache-2.0 AND ISC') == Or(
            LicenseId('MIT'),
            And(LicenseId('Apache-2.0'), LicenseId('ISC')),
        )

    def test_parentheses_override_precedence(self) -> None:
        """Test parentheses override precedence."""
        assert parse('(MIT OR Apache-2.0) AND ISC') == And(
            Or(LicenseId('MIT'), LicenseId('Apache-2.0')),
            LicenseId('ISC'),
        )

    def test_with_exception(self) -> None:
        """Test WITH exception."""
        assert parse('Apache-2.0 WITH LLVM-exception') == With(LicenseId('Apache-2.0'), 'LLVM-exception')

    def test_license_ref(self) -> None:
        """Test LicenseRef."""
        assert parse('LicenseRef-ring') == LicenseRef('LicenseRef-ring')

    def test_document_ref(self) -> None:
        """Test DocumentRef prefix."""
        assert parse('DocumentRef-x:LicenseRef-y') == LicenseRef('LicenseRef-y', document_ref='DocumentRef-x')

    def test_lowercase_operators(self) -> None:
        """Test lowercase operators."""
        assert parse('MIT or ISC') == Or(LicenseId('MIT'), LicenseId('ISC'))

    def test_chain_is_left_associative(self) -> None:
        """Test a chain of ANDs nests to the left."""
        assert parse('ISC AND MIT AND OpenSSL') == And(
            And(LicenseId('ISC'), LicenseId('MIT')),
            LicenseId('OpenSSL'),
        )

    def test_str_round_trip(self) -> None:
        """Test str parenthesizes OR inside AND."""
        assert str(parse('(MIT OR Apache-2.0) AND ISC')) == '(MIT OR Apache-2.0) AND ISC'


class TestParseErrors:
    """Tests for malformed expressions."""

    @pytest.mark.parametrize(
        'text',
        ['', '   ', 'MIT AND', 'AND MIT', '(MIT', 'MIT)', 'MIT ISC', 'MIT / ISC', '(MIT OR ISC) WITH X'],
    )
    def test_rejected(self, text: str) -> None:
        """Test rejected expressions."""
        with pytest.raises(ExpressionSyntaxError):
            parse(text)

    def test_is_value_error_and_audit_error(self) -> None:
        """Test the error type hierarchy."""
        with pytest.raises(ValueError):
            parse('MIT AND')
        with pytest.raises(AuditError):
            parse('MIT AND')

    def test_position_and_caret(self) -> None:
        """Test the error carries a position and caret message."""
        with pytest.raises(ExpressionSyntaxError) as exc_info:
            parse('MIT AND')
        err = exc_info.value
        assert err.expression == 'MIT AND'
        assert err.position == 7
        assert '^' in str(err)


class TestNormalizeLegacy:
    """Tests for normalize_legacy."""

    def test_slash_becomes_or(self) -> None:
        """Test slash becomes OR."""
        assert normalize_legacy('MIT/Apache-2.0') == 'MIT OR Apache-2.0'

    def test_spaced_slash(self) -> None:
        """Test spaced slash."""
        assert parse(normalize_legacy('MIT / Apache-2.0')) == Or(LicenseId('MIT'), LicenseId('Apache-2.0'))

    def test_plain_expression_unchanged(self) -> None:
        """Test plain expression unchanged."""
        assert normalize_legacy('MIT AND ISC') == 'MIT AND ISC'


# ── Evaluation ───────────────────────────────────────────────────────


class TestIsAllowed:
    """Tests for is_allowed."""

    def test_and_requires_all(self) -> None:
        """Test AND requires all operands."""
        expr = parse('ISC AND MIT AND OpenSSL')
        assert is_allowed(expr, {'ISC', 'MIT', 'OpenSSL'})
        assert not is_allowed(expr, {'ISC', 'MIT'})

    @pytest.mark.parametrize('missing', ['ISC', 'MIT', 'OpenSSL'])
    def test_and_fails_without_any_operand(self, missing: str) -> None:
        """Test dropping any one AND operand from the allow-list rejects."""
        allow = {'ISC', 'MIT', 'OpenSSL'} - {missing}
        assert not is_allowed(parse('ISC AND MIT AND OpenSSL'), allow)

    def test_or_requires_one(self) -> None:
        """Test OR requires one operand."""
        expr = parse('MIT OR GPL-3.0-only')
        assert is_allowed(expr, {'MIT'})
        assert not is_allowed(expr, {'ISC'})

    def test_or_right_operand(self) -> None:
        """Test OR is satisfied by its right operand alone."""
        assert is_allowed(parse('MIT OR Apache-2.0'), {'Apache-2.0'})

    def test_case_insensitive(self) -> None:
        """Test allow matching is case-insensitive."""
        assert is_allowed(parse('mit'), {'MIT'})
        assert is_allowed(parse('Apache-2.0'), {'apache-2.0'})

    def test_with_is_compound(self) -> None:
        """Test WITH is distinct from the bare license."""
        expr = parse('GPL-2.0 WITH Classpath-exception-2.0')
        assert not is_allowed(expr, {'GPL-2.0'})
        assert is_allowed(expr, {'GPL-2.0 WITH Classpath-exception-2.0'})

    def test_bare_license_not_covered_by_with_entry(self) -> None:
        """Test a WITH allow entry does not cover the bare license."""
        assert not is_allowed(parse('GPL-2.0'), {'GPL-2.0 WITH Classpath-exception-2.0'})

    def test_or_later_allowed_by_base(self) -> None:
        """Test an or-later leaf is allowed by its base id."""
        assert is_allowed(parse('GPL-2.0+'), {'GPL-2.0'})
        assert is_allowed(parse('GPL-2.0+'), {'GPL-2.0+'})

    def test_empty_allow_set(self) -> None:
        """Test nothing is allowed by an empty set."""
        assert not is_allowed(parse('MIT'), set())


class TestFailingIds:
    """Tests for failing_ids."""

    def test_allowed_has_no_failures(self) -> None:
        """Test allowed expression has no failures."""
        assert failing_ids(parse('MIT OR GPL-3.0'), {'MIT'}) == []

    def test_and_reports_missing_side(self) -> None:
        """Test AND reports only the missing side."""
        assert failing_ids(parse('ISC AND MIT AND OpenSSL'), {'ISC', 'MIT'}) == ['OpenSSL']

    def test_or_reports_both_sides(self) -> None:
        """Test a failing OR reports both sides."""
        assert failing_ids(parse('GPL-3.0 OR AGPL-3.0'), {'MIT'}) == ['GPL-3.0', 'AGPL-3.0']


class TestLeafIds:
    """Tests for leaf_ids."""

    def test_collects_leaves(self) -> None:
        """Test collects every leaf."""
        assert leaf_ids(parse('MIT OR (Apache-2.0 WITH LLVM-exception) AND ISC')) == {
            'MIT',
            'Apache-2.0 WITH LLVM-exception',
            'ISC',
        }
