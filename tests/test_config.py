import pytest

from utils.config import Config

AD_VARS = ["AD_SERVER", "AD_USERNAME", "AD_PASSWORD", "BASE_DN", "AD_USE_SSL",
           "AD_QUERY_TIMEOUT", "AD_PAGE_SIZE", "ENRICH_WORKERS"]


@pytest.fixture
def config(monkeypatch, tmp_path):
    # Keep a developer's .env out of the tests
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("utils.config.load_dotenv", lambda: False)
    for name in AD_VARS:
        monkeypatch.delenv(name, raising=False)
    return Config()


def test_server_required(config):
    assert not config.validate_ad_config()
    assert config.get_missing_ad_vars() == ["AD_SERVER"]


def test_kerberos_config_is_valid(config, monkeypatch):
    monkeypatch.setenv("AD_SERVER", "ldap://dc01")
    assert config.validate_ad_config()
    assert config.ad_username is None


def test_credentials_are_all_or_nothing(config, monkeypatch):
    monkeypatch.setenv("AD_SERVER", "ldap://dc01")
    monkeypatch.setenv("AD_USERNAME", "CONTOSO\\audit")
    assert config.get_missing_ad_vars() == ["AD_PASSWORD"]

    monkeypatch.delenv("AD_USERNAME")
    monkeypatch.setenv("AD_PASSWORD", "secret")
    assert config.get_missing_ad_vars() == ["AD_USERNAME"]


def test_defaults(config):
    assert config.use_ssl is False
    assert config.query_timeout == 30
    assert config.page_size == 500
    assert config.enrich_workers == 8
    assert config.base_dn is None


def test_overrides(config, monkeypatch):
    monkeypatch.setenv("AD_USE_SSL", "True")
    monkeypatch.setenv("ENRICH_WORKERS", "2")
    assert config.use_ssl is True
    assert config.enrich_workers == 2


@pytest.mark.parametrize("raw", ["zero", "0", "-3"])
def test_bad_integer_setting(config, monkeypatch, raw):
    monkeypatch.setenv("AD_QUERY_TIMEOUT", raw)
    with pytest.raises(ValueError):
        config.query_timeout
