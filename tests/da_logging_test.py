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

"""Tests for depaudit.logging module."""

from __future__ import annotations

import logging

import pytest
from depaudit.logging import configure_logging, get_logger


class TestConfigureLogging:
    """Tests for configure_logging()."""

    def test_default_level_is_info(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Default logging level should be INFO."""
        monkeypatch.delenv('DEPAUDIT_LOG_LEVEL', raising=False)
        configure_logging()
        assert logging.root.level == logging.INFO

    def test_verbose_sets_debug(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Verbose flag should set DEBUG level."""
        monkeypatch.delenv('DEPAUDIT_LOG_LEVEL', raising=False)
        configure_logging(verbose=True)
        assert logging.root.level == logging.DEBUG

    def test_quiet_sets_warning(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Quiet flag should set WARNING level."""
        monkeypatch.delenv('DEPAUDIT_LOG_LEVEL', raising=False)
        configure_logging(quiet=True)
        assert logging.root.level == logging.WARNING

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """DEPAUDIT_LOG_LEVEL wins over the flags."""
        monkeypatch.setenv('DEPAUDIT_LOG_LEVEL', 'error')
        configure_logging(verbose=True)
        assert logging.root.level == logging.ERROR

    def test_json_log_does_not_crash(self) -> None:
        """JSON log mode should configure without errors."""
        configure_logging(json_log=True)
        get_logger().info('test_json', key='value')


class TestGetLogger:
    """Tests for get_logger()."""

    def test_returns_bound_logger(self) -> None:
        """get_logger should return a usable logger."""
        configure_logging()
        log = get_logger('depaudit.test')
        log.debug('graph_built', packages=3)
        assert log is not None
