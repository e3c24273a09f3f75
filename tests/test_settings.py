import pytest

from shoplocate.config.settings import get_logging_config, get_settings
from shoplocate.errors import ConfigError


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch):
    monkeypatch.delenv("SHOPLOCATE_CONFIG_PATH", raising=False)
    monkeypatch.delenv("SHOPLOCATE_LOG_LEVEL", raising=False)
    monkeypatch.delenv("SHOPLOCATE_NOMINATIM_URL", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_packaged_defaults_match_search_contract():
    settings = get_settings()

    assert settings.search.min_query_length == 2
    assert settings.search.debounce_seconds == pytest.approx(0.3)
    assert settings.device.permission == "prompt"
    assert settings.device.latitude is None


def test_env_overrides_whitelisted_keys(monkeypatch):
    monkeypatch.setenv("SHOPLOCATE_LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("SHOPLOCATE_NOMINATIM_URL", "http://localhost:8080")

    settings = get_settings()

    assert settings.app.log_level == "DEBUG"
    assert settings.nominatim.base_url == "http://localhost:8080"


def test_external_config_file_replaces_defaults(monkeypatch, tmp_path):
    path = tmp_path / "shoplocate.yaml"
    path.write_text(
        "search:\n  debounce_seconds: 0.5\ndevice:\n  permission: granted\n  latitude: 12.97\n  longitude: 77.59\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("SHOPLOCATE_CONFIG_PATH", str(path))

    settings = get_settings()

    assert settings.search.debounce_seconds == pytest.approx(0.5)
    assert settings.search.min_query_length == 2
    assert settings.device.permission == "granted"
    assert settings.device.latitude == pytest.approx(12.97)


def test_non_mapping_config_root_is_rejected(monkeypatch, tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    monkeypatch.setenv("SHOPLOCATE_CONFIG_PATH", str(path))

    with pytest.raises(ConfigError):
        get_settings()


def test_logging_config_is_a_dictconfig_mapping():
    config = get_logging_config()
    assert config["version"] == 1
    assert "console" in config["handlers"]
