"""Unit tests for settings helpers."""

import pytest

from intent_graph.config import Settings


@pytest.mark.unit
def test_clamp_limit():
    settings = Settings()
    settings.DEFAULT_LIMIT = 10
    settings.MAX_LIMIT = 50

    assert settings.clamp_limit(None) == 10
    assert settings.clamp_limit(5) == 5
    assert settings.clamp_limit(500) == 50
    assert settings.clamp_limit(-3) == 0


@pytest.mark.unit
def test_closed_session_policy_validation():
    settings = Settings()

    settings.CLOSED_SESSION_POLICY = " Restart "
    assert settings.closed_session_policy == "restart"

    settings.CLOSED_SESSION_POLICY = "ignore-everything"
    assert settings.closed_session_policy == "reject"
