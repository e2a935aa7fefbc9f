"""Tests for configuration loading."""

import pytest

from skvk_screens.config import Config, get_config_dir, load_config


def test_defaults_when_file_missing(tmp_path):
    config = load_config(tmp_path / "missing.toml")
    assert config == Config()
    assert config.SEARCH_MIN_LENGTH == 3
    assert config.SEARCH_DEBOUNCE_SECONDS == 0.3


def test_overrides_from_toml(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(
        '[skvk]\n'
        'track_source = "ytmusic"\n'
        'search_debounce_seconds = 0.5\n'
        'book_language = "te"\n'
        'not_a_setting = 1\n'
    )
    config = load_config(path)
    assert config.TRACK_SOURCE == "ytmusic"
    assert config.SEARCH_DEBOUNCE_SECONDS == 0.5
    assert config.BOOK_LANGUAGE == "te"
    assert not hasattr(config, "NOT_A_SETTING")


def test_env_var_points_at_config(tmp_path, monkeypatch):
    path = tmp_path / "custom.toml"
    path.write_text('LOCATION_RESULT_LIMIT = 8\n')
    monkeypatch.setenv("SKVK_CONFIG", str(path))
    assert load_config().LOCATION_RESULT_LIMIT == 8


def test_invalid_values_rejected(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text('TRACK_SOURCE = "cassette"\n')
    with pytest.raises(ValueError, match="TRACK_SOURCE"):
        load_config(path)


def test_config_dir_respects_xdg(tmp_path, monkeypatch):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    assert get_config_dir() == tmp_path / "skvk-screens"


def test_string_numbers_are_coerced(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(
        'search_min_length = "4"\n'
        'search_debounce_seconds = 1\n'
        'http_timeout_seconds = "12.5"\n'
    )
    config = load_config(path)
    assert config.SEARCH_MIN_LENGTH == 4
    assert config.SEARCH_DEBOUNCE_SECONDS == 1.0
    assert isinstance(config.SEARCH_DEBOUNCE_SECONDS, float)
    assert config.HTTP_TIMEOUT_SECONDS == 12.5


@pytest.mark.parametrize("line", [
    'search_min_length = "three"\n',
    'search_min_length = 2.5\n',
    'location_result_limit = true\n',
    'book_language = ["en", "te"]\n',
])
def test_wrongly_typed_values_raise_value_error(tmp_path, line):
    path = tmp_path / "config.toml"
    path.write_text(line)
    with pytest.raises(ValueError, match="Invalid value for"):
        load_config(path)
