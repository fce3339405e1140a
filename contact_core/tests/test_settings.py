import pytest
from pydantic import ValidationError

from contact_core.config.settings import Settings


def test_defaults():
    s = Settings(_env_file=None)
    assert s.poll_interval == 30
    assert s.probe_timeout == 5
    assert s.default_model == "assist-chat"


def test_country_code_plus_prefix_stripped():
    assert Settings(default_country_code="+55").default_country_code == "55"
    assert Settings(default_country_code="").default_country_code is None


def test_invalid_country_code_rejected():
    with pytest.raises(ValidationError):
        Settings(default_country_code="BR")


def test_short_api_key_rejected():
    with pytest.raises(ValidationError):
        Settings(glm_api_key="short")


def test_non_positive_interval_rejected():
    with pytest.raises(ValidationError):
        Settings(poll_interval=0)


def test_yaml_config_file(tmp_path, monkeypatch):
    path = tmp_path / "contact-core.yaml"
    path.write_text("poll_interval: 12\ndefault_instance: loja-1\n", encoding="utf-8")
    monkeypatch.setenv("CONTACT_CORE_CONFIG_FILE", str(path))
    s = Settings()
    assert s.poll_interval == 12
    assert s.default_instance == "loja-1"
    # 显式参数优先于配置文件
    assert Settings(poll_interval=3).poll_interval == 3
