import pytest

from trainer_backend.core import config
from trainer_backend.main import app, root


def test_root_reports_service_status() -> None:
    assert root() == {'status': 'Trainer Booking API Running'}


def test_scheduling_routers_are_mounted() -> None:
    paths = app.openapi()['paths']

    assert '/availability/{trainer_id}/slots' in paths
    assert '/bookings/{booking_id}/confirm' in paths


def test_production_refuses_default_jwt_secret(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'APP_ENV', 'production')
    monkeypatch.setattr(config, 'JWT_SECRET_KEY', 'change-me')

    with pytest.raises(RuntimeError):
        config.validate_runtime_config()


def test_session_bounds_are_checked(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'MIN_SESSION_MINUTES', 200)

    with pytest.raises(RuntimeError):
        config.validate_runtime_config()
