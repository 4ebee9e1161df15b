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

"""Policy checks run by the audit.

Each check is a pure function of the graph and the policy and returns
a list of :class:`~depaudit.diagnostics.Diagnostic`.
"""

from depaudit.checks._bans import check_bans, skip_tree_members
from depaudit.checks._license_resolve import (
    ClarifiedOverride,
    Declared,
    Inferred,
    LicenseOutcome,
    LicenseResolver,
    Unresolved,
)
from depaudit.checks._license_text import LicenseTextStore, TextMatch
from depaudit.checks._licenses import (
    check_licenses,
    evaluate_packages,
    evaluate_partition,
    unused_policy_entries,
)

__all__ = [
    'ClarifiedOverride',
    'Declared',
    'Inferred',
    'LicenseOutcome',
    'LicenseResolver',
    'LicenseTextStore',
    'TextMatch',
    'Unresolved',
    'check_bans',
    'check_licenses',
    'evaluate_packages',
    'evaluate_partition',
    'skip_tree_members',
    'unused_policy_entries',
]
