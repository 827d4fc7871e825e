"""Tests for configuration and the cached service factories."""

import pytest
from pydantic import ValidationError

from table_checkin.core.config import EnvironmentMode, Settings, get_settings
from table_checkin.services.backend import get_backend_client, reset_backend_client
from table_checkin.services.backend.http import HttpBackendClient
from table_checkin.services.backend.mock import MockBackendClient
from table_checkin.services.checkin import CheckinFlow, get_checkin_flow, reset_checkin_flow
from table_checkin.services.geo import get_geo_sampler, reset_geo_sampler
from table_checkin.services.geo.device import DevicePositionSampler
from table_checkin.services.geo.mock import MockGeoSampler
from table_checkin.services.session import get_session_store, reset_session_store
from table_checkin.services.session.store import JsonFileSessionStore


def reset_all() -> None:
    get_settings.cache_clear()
    reset_backend_client()
    reset_geo_sampler()
    reset_session_store()
    reset_checkin_flow()


@pytest.fixture
def environment(monkeypatch, tmp_path):
    """Isolated environment with caches cleared before and after."""
    monkeypatch.delenv("BACKEND_BASE_URL", raising=False)
    monkeypatch.setenv("SESSION_STORE_PATH", str(tmp_path / "session.json"))
    reset_all()
    yield monkeypatch
    reset_all()


class TestSettings:

    def test_env_mode_is_case_insensitive(self):
        assert Settings(env_mode="PRODUCTION").env_mode == EnvironmentMode.PRODUCTION

    def test_invalid_env_mode(self):
        with pytest.raises(ValidationError):
            Settings(env_mode="qa")

    def test_geo_timeout_bounds(self):
        with pytest.raises(ValidationError):
            Settings(geo_timeout_seconds=5)
        with pytest.raises(ValidationError):
            Settings(geo_timeout_seconds=20)

    def test_production_requires_backend_url(self, environment):
        settings = Settings(env_mode="production")
        assert settings.use_real_services
        assert settings.validate_production_config() == ["BACKEND_BASE_URL"]

    def test_matching_defaults(self):
        settings = Settings()
        assert settings.ambiguity_epsilon_m == 0.05
        assert settings.fallback_radius_m == 20.0
        assert settings.widen_radius_by_accuracy is False


class TestDevelopmentFactories:

    def test_mock_services(self, environment, tmp_path):
        environment.setenv("ENV_MODE", "development")

        assert isinstance(get_backend_client(), MockBackendClient)
        assert isinstance(get_geo_sampler(), MockGeoSampler)
        store = get_session_store()
        assert isinstance(store, JsonFileSessionStore)
        assert store.path == tmp_path / "session.json"

    def test_factories_are_cached(self, environment):
        environment.setenv("ENV_MODE", "development")
        assert get_backend_client() is get_backend_client()
        assert get_checkin_flow() is get_checkin_flow()

    def test_checkin_flow_uses_factories(self, environment):
        environment.setenv("ENV_MODE", "development")

        flow = get_checkin_flow()
        assert isinstance(flow, CheckinFlow)
        assert flow.backend is get_backend_client()
        assert flow.sampler is get_geo_sampler()
        assert flow.store is get_session_store()

    def test_demo_venue_twins(self, environment):
        environment.setenv("ENV_MODE", "development")
        venue = get_backend_client()
        assert venue.tables["table-3"].location == venue.tables["table-4"].location


class TestProductionFactories:

    def test_missing_backend_url_fails(self, environment):
        environment.setenv("ENV_MODE", "production")
        with pytest.raises(ValueError, match="BACKEND_BASE_URL"):
            get_backend_client()

    @pytest.mark.asyncio
    async def test_http_backend_and_device_sampler(self, environment):
        environment.setenv("ENV_MODE", "staging")
        environment.setenv("BACKEND_BASE_URL", "https://venue.example.com/api")

        backend = get_backend_client()
        assert isinstance(backend, HttpBackendClient)
        assert isinstance(get_geo_sampler(), DevicePositionSampler)
        await backend.aclose()
