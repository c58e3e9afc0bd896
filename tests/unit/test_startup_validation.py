"""Tests for startup validation."""

import pytest

from paintcal.core.config import settings
from paintcal.main import validate_startup_configuration


@pytest.mark.unit
def test_development_needs_no_credentials(monkeypatch) -> None:
    """Outside production the Logfire token is optional."""
    monkeypatch.setattr(settings, "environment", "development")
    monkeypatch.setattr(settings, "logfire_token", None)

    validate_startup_configuration()


@pytest.mark.unit
def test_production_requires_logfire_token(monkeypatch, capsys) -> None:
    """Startup exits with status 1 when production has no Logfire token."""
    monkeypatch.setattr(settings, "environment", "production")
    monkeypatch.setattr(settings, "logfire_token", None)

    with pytest.raises(SystemExit) as exc_info:
        validate_startup_configuration()

    assert exc_info.value.code == 1
    assert "Pydantic Logfire" in capsys.readouterr().err


@pytest.mark.unit
def test_production_with_token(monkeypatch) -> None:
    monkeypatch.setattr(settings, "environment", "production")
    monkeypatch.setattr(settings, "logfire_token", "token-123")

    validate_startup_configuration()
