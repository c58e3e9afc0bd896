"""Unit tests for structured logging helpers."""

import logging

import pytest

from paintcal.core.logging import actor_context, log_action


@pytest.mark.unit
class TestLogAction:
    """Tests for log_action and actor_context."""

    def test_actor_fields_merged_into_extra(self, caplog, crew_user):
        logger = logging.getLogger("paintcal.test")

        with caplog.at_level(logging.INFO, logger="paintcal.test"):
            log_action(logger, "info", "Task scheduled", actor=crew_user, task_id="task-wash")

        record = caplog.records[-1]
        assert record.message == "Task scheduled"
        assert record.user_id == "crew1"
        assert record.user_type == "crew"
        assert record.task_id == "task-wash"

    def test_anonymous_actor(self):
        assert actor_context(None) == {"user_id": None}

    def test_level_is_case_insensitive(self, caplog, admin_user):
        logger = logging.getLogger("paintcal.test")

        with caplog.at_level(logging.WARNING, logger="paintcal.test"):
            log_action(logger, "WARNING", "Denied", actor=admin_user)

        assert caplog.records[-1].levelno == logging.WARNING
