"""Tests for configuration loading and validation."""

import pytest

from bytecrawl.utils.config import (
    Config, CrawlerConfig, ConfigManager, load_config, validate_config
)


VALID_YAML = """
crawler:
  seed_urls:
    - https://www.google.com
  worker_count: 8
  host_fetch_limit: 50
logging:
  level: DEBUG
monitoring:
  report_interval: 2.5
"""


class TestConfig:

    def test_defaults(self):
        config = Config()
        assert config.crawler.worker_count == 5
        assert config.crawler.host_fetch_limit == 100
        assert config.crawler.request_timeout is None
        assert config.crawler.max_pages is None
        assert config.monitoring.report_interval == 10.0

    def test_from_dict_fills_missing_sections(self):
        config = Config.from_dict({'crawler': {'seed_urls': ['https://a.com']}})
        assert config.crawler.seed_urls == ['https://a.com']
        assert config.logging.level == "INFO"
        assert config.monitoring.metrics_enabled is False

    def test_from_dict_rejects_unknown_keys(self):
        with pytest.raises(ValueError, match="Unknown CrawlerConfig keys: depth"):
            Config.from_dict({'crawler': {'seed_urls': ['https://a.com'], 'depth': 3}})

    def test_load_config_from_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(VALID_YAML)

        config = load_config(str(path))

        assert config.crawler.worker_count == 8
        assert config.crawler.host_fetch_limit == 50
        assert config.logging.level == "DEBUG"
        assert config.monitoring.report_interval == 2.5

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ConfigManager(str(tmp_path / "absent.yaml")).load_config()

    def test_config_before_load(self, tmp_path):
        with pytest.raises(ValueError):
            ConfigManager(str(tmp_path / "absent.yaml")).config


class TestValidation:

    def make(self, **crawler):
        crawler.setdefault('seed_urls', ['https://a.com'])
        return Config(crawler=CrawlerConfig(**crawler))

    def test_valid(self):
        validate_config(self.make())

    @pytest.mark.parametrize("overrides, message", [
        ({'seed_urls': []}, "seed URL"),
        ({'seed_urls': ['ftp://a.com']}, "http or https"),
        ({'worker_count': 0}, "worker_count"),
        ({'host_fetch_limit': 0}, "host_fetch_limit"),
        ({'request_timeout': 0}, "request_timeout"),
        ({'max_pages': 0}, "max_pages"),
    ])
    def test_invalid_crawler_values(self, overrides, message):
        with pytest.raises(ValueError, match=message):
            validate_config(self.make(**overrides))

    def test_invalid_log_level(self):
        config = self.make()
        config.logging.level = "CHATTY"
        with pytest.raises(ValueError, match="logging level"):
            validate_config(config)


class TestConfigManager:

    def test_manager_keeps_what_it_loaded(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(VALID_YAML)

        manager = ConfigManager(str(path))
        config = manager.load_config()

        assert manager.config is config

    def test_each_load_is_independent(self, tmp_path):
        first = tmp_path / "first.yaml"
        first.write_text(VALID_YAML)
        second = tmp_path / "second.yaml"
        second.write_text(VALID_YAML.replace("worker_count: 8", "worker_count: 2"))

        assert load_config(str(first)).crawler.worker_count == 8
        assert load_config(str(second)).crawler.worker_count == 2
