import pytest

from audience_api.config import DEFAULT_ROLE_COLUMNS, Settings, load_settings


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("INDEX_NAME", "people_v3")
    monkeypatch.setenv("INDEX_TIMEOUT", "2.5")
    monkeypatch.setenv("COUNTRY_LITERAL", " Australia ")
    monkeypatch.setenv("CORS_ORIGINS", "http://a.test, http://b.test,")

    settings = load_settings()

    assert settings.index_name == "people_v3"
    assert settings.index_timeout == 2.5
    assert settings.country_literal == "australia"
    assert settings.cors_origins == ("http://a.test", "http://b.test")
    assert settings.column_for("industry") == DEFAULT_ROLE_COLUMNS["industry"]


def test_bad_number_is_rejected(monkeypatch):
    monkeypatch.setenv("INDEX_TIMEOUT", "soon")
    with pytest.raises(ValueError):
        load_settings()


def test_country_literal_normalised_when_built_directly():
    assert Settings(country_literal=" United States ").country_literal == "united states"
