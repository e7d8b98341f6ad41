"""
Unit tests for application settings and parameter level tables.
"""

import pytest

from opossum.config import LevelConfig, Settings


class TestLevelLookups:
    """Tests for the discrete level lookups."""

    @pytest.fixture
    def settings(self):
        return Settings()

    def test_conservation_level(self, settings):
        assert settings.get_conservation_level(1) == LevelConfig.CONSERVATION_LEVELS[1]

    def test_threshold_level(self, settings):
        assert settings.get_threshold_level(2)["threshold"] == 0.80

    def test_search_region_level(self, settings):
        level = settings.get_search_region_level(3)
        assert level == {"upstream_bp": 2000, "downstream_bp": 2000}

    @pytest.mark.parametrize("lookup", [
        "get_conservation_level",
        "get_threshold_level",
        "get_search_region_level",
    ])
    def test_unknown_level(self, settings, lookup):
        with pytest.raises(ValueError, match="Unknown"):
            getattr(settings, lookup)(99)


class TestSettingsFromEnvironment:
    """Settings are overridable with OPOSSUM_-prefixed variables."""

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("OPOSSUM_DEFAULT_DISTANCE", "250")
        monkeypatch.setenv("OPOSSUM_DATABASE_URL", "sqlite:///:memory:")
        settings = Settings()
        assert settings.default_distance == 250
        assert settings.database_url == "sqlite:///:memory:"

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("OPOSSUM_DEFAULT_THRESHOLD", raising=False)
        assert Settings().default_threshold == 0.80
