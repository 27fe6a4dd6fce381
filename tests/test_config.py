# tests/test_config.py
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pydantic
import pytest

from copyfactory.config import DEFAULT_DOMAIN, CopyFactoryOptions, RetryOptions, load_cfg, options_from_cfg
from copyfactory.copy_factory import CopyFactory
from copyfactory.utils.logger import logger, mask, setup_logging

CONFIG_YAML = """
copyfactory:
  token: ${TEST_CF_TOKEN}
  domain: agiliumtrade.agiliumtrade.ai
  request_timeout: 15
  extended_timeout: 80
  polling_interval: 0.5
  retry_opts:
    retries: 3
    min_delay_in_seconds: 2
    max_delay_in_seconds: 10
"""


def test_retry_delays_double_and_cap():
    opts = RetryOptions(retries=6, min_delay_in_seconds=1, max_delay_in_seconds=30)
    assert [opts.delay(n) for n in range(1, 8)] == [1, 2, 4, 8, 16, 30, 30]


def test_retry_defaults():
    opts = RetryOptions()
    assert (opts.retries, opts.min_delay_in_seconds, opts.max_delay_in_seconds) == (5, 1.0, 30.0)


def test_retry_options_reject_inverted_bounds():
    with pytest.raises(pydantic.ValidationError):
        RetryOptions(min_delay_in_seconds=10, max_delay_in_seconds=1)
    with pytest.raises(pydantic.ValidationError):
        RetryOptions(retries=-1)


def test_options_validate_timeouts():
    with pytest.raises(pydantic.ValidationError):
        CopyFactoryOptions(request_timeout=0)
    with pytest.raises(pydantic.ValidationError):
        CopyFactoryOptions(polling_interval=-1)
    opts = CopyFactoryOptions()
    assert opts.domain == DEFAULT_DOMAIN
    assert (opts.request_timeout, opts.extended_timeout) == (10.0, 70.0)


def test_load_cfg_resolves_env(tmp_path, monkeypatch):
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(CONFIG_YAML, encoding="utf-8")
    monkeypatch.setenv("TEST_CF_TOKEN", "a.b.c")

    cfg = load_cfg(cfg_file)
    assert cfg["copyfactory"]["token"] == "a.b.c"

    opts = options_from_cfg(cfg)
    assert opts.request_timeout == 15
    assert opts.polling_interval == 0.5
    assert opts.retry_opts.retries == 3
    assert opts.retry_opts.max_delay_in_seconds == 10


def test_load_cfg_reads_dotenv(tmp_path, monkeypatch):
    monkeypatch.setenv("TEST_CF_TOKEN", "placeholder")
    monkeypatch.delenv("TEST_CF_TOKEN")
    (tmp_path / "config.yaml").write_text(CONFIG_YAML, encoding="utf-8")
    (tmp_path / ".env").write_text("TEST_CF_TOKEN=from.dot.env\n", encoding="utf-8")

    cfg = load_cfg(tmp_path / "config.yaml")
    assert cfg["copyfactory"]["token"] == "from.dot.env"


def test_from_config_falls_back_to_env_token(tmp_path, monkeypatch):
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text("copyfactory:\n  request_timeout: 5\n", encoding="utf-8")
    monkeypatch.setenv("COPYFACTORY_TOKEN", "x.y.z")

    cf = CopyFactory.from_config(cfg_file)
    assert cf.options.request_timeout == 5
    assert cf.configuration_api._token == "x.y.z"


def test_missing_token_is_rejected():
    with pytest.raises(ValueError):
        CopyFactory("")


def test_setup_logging_writes_file_sink(tmp_path):
    log_file = setup_logging("DEBUG", tmp_path / "logs")
    try:
        assert log_file.parent == tmp_path / "logs"
        assert log_file.name.startswith("copyfactory_")
        logger.info(f"token={mask('abcdefghijklmnop')}")
        logger.complete()
    finally:
        logger.remove()
        logger.add(sys.stderr)
    assert "abcd********mnop" in log_file.read_text(encoding="utf-8")


def test_load_cfg_defaults_to_working_directory(tmp_path, monkeypatch):
    (tmp_path / "config.yaml").write_text("copyfactory:\n  domain: agiliumtrade.agiliumtrade.ai\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)

    cfg = load_cfg()
    assert cfg["copyfactory"]["domain"] == DEFAULT_DOMAIN
