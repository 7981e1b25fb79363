#!filepath: tests/config/test_harness_config.py
import os

import pytest
import yaml
from pydantic import ValidationError

from amtest.config import AcceptanceOpts, HarnessConfig, InstanceConfig, LogConfig


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ("AMTEST_BINARY", "AMTEST_LOG_LEVEL", "AMTEST_LOG_DIR", "AMTEST_TOLERANCE"):
        monkeypatch.delenv(name, raising=False)
    # keep a developer's .env out of the tests
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def sample_config_file(tmp_path):
    data = {
        "log": {"level": "DEBUG", "dir": "logs"},
        "instance": {
            "binary": "/opt/am/alertmanager",
            "warmup": 0.5,
            "extra_args": ["--web.route-prefix=/"],
        },
        "acceptance": {"tolerance": 0.25, "fail_on_unexpected": True},
    }
    config_file = tmp_path / "amtest.yml"
    config_file.write_text(yaml.safe_dump(data), encoding="utf-8")
    return config_file


def test_load_yaml(sample_config_file):
    cfg = HarnessConfig.load(path=str(sample_config_file))

    assert isinstance(cfg.log, LogConfig)
    assert isinstance(cfg.instance, InstanceConfig)
    assert isinstance(cfg.acceptance, AcceptanceOpts)

    assert cfg.log.level == "DEBUG"
    assert cfg.instance.binary == "/opt/am/alertmanager"
    assert cfg.instance.warmup == 0.5
    assert cfg.instance.extra_args == ["--web.route-prefix=/"]
    assert cfg.acceptance.tolerance == 0.25
    assert cfg.acceptance.fail_on_unexpected is True


def test_defaults_without_file():
    cfg = HarnessConfig.load()

    assert cfg.log.dir is None
    assert cfg.instance.binary == "alertmanager"
    assert cfg.instance.warmup == 0.1
    assert cfg.acceptance.tolerance == 0.0
    assert cfg.acceptance.fail_on_unexpected is False


def test_missing_file_should_fail(tmp_path):
    with pytest.raises(FileNotFoundError):
        HarnessConfig.load(path=str(tmp_path / "nope.yml"))


def test_env_overrides_file(sample_config_file, monkeypatch):
    monkeypatch.setenv("AMTEST_BINARY", "/usr/local/bin/alertmanager")
    monkeypatch.setenv("AMTEST_TOLERANCE", "1.5")

    cfg = HarnessConfig.load(path=str(sample_config_file))

    assert cfg.instance.binary == "/usr/local/bin/alertmanager"
    assert cfg.acceptance.tolerance == 1.5


def test_dotenv_file(tmp_path):
    env_file = tmp_path / "custom.env"
    env_file.write_text("AMTEST_LOG_LEVEL=WARNING\n", encoding="utf-8")

    try:
        cfg = HarnessConfig.load(env_file=str(env_file))
    finally:
        os.environ.pop("AMTEST_LOG_LEVEL", None)

    assert cfg.log.level == "WARNING"


def test_negative_tolerance_rejected():
    with pytest.raises(ValidationError):
        AcceptanceOpts(tolerance=-1)
