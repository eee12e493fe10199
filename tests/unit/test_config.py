"""Test Settings loading and backend validation."""

import pydantic
import pytest

from order_pipeline.core.config import Settings, load_settings
from order_pipeline.core.enums import QueueBackend, StoreBackend
from order_pipeline.core.errors import ConfigError


class TestSettingsDefaults:
    def test_default_backends_are_in_memory(self):
        settings = Settings()
        assert settings.queue.backend == QueueBackend.MEMORY
        assert settings.store.backend == StoreBackend.MEMORY

    def test_queue_defaults(self):
        settings = Settings()
        assert settings.queue.visibility_timeout_seconds == 30.0
        assert settings.queue.max_delivery_count == 5
        assert settings.queue.name == "order-processing"

    def test_dead_letter_cap_default(self):
        assert Settings().queue.dead_letter_max_length == 100_000

    def test_worker_defaults(self):
        settings = Settings()
        assert settings.worker.enabled is True
        assert settings.worker.concurrency == 4


class TestLoadSettings:
    def test_missing_file_gives_defaults(self, tmp_path):
        settings = load_settings(tmp_path / "nope.toml")
        assert settings.api.port == 8000

    def test_toml_file(self, tmp_path):
        path = tmp_path / "orders.toml"
        path.write_text(
            '[queue]\nbackend = "redis"\nmax_delivery_count = 7\n'
            "[api]\nport = 9001\n"
        )
        settings = load_settings(path)
        assert settings.queue.backend == QueueBackend.REDIS
        assert settings.queue.max_delivery_count == 7
        assert settings.api.port == 9001

    def test_overrides_merge_into_sections(self, tmp_path):
        path = tmp_path / "orders.toml"
        path.write_text('[worker]\nconcurrency = 2\nenabled = true\n')
        settings = load_settings(path, overrides={"worker": {"enabled": False}})
        assert settings.worker.enabled is False
        assert settings.worker.concurrency == 2

    def test_env_overrides_default(self, monkeypatch):
        monkeypatch.setenv("ORDERS_QUEUE__MAX_DELIVERY_COUNT", "9")
        monkeypatch.setenv("ORDERS_REDIS_URL", "redis://cache:6379/1")
        settings = load_settings()
        assert settings.queue.max_delivery_count == 9
        assert settings.redis_url == "redis://cache:6379/1"

    def test_invalid_delivery_count_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            Settings(queue={"max_delivery_count": 0})


class TestValidateBackends:
    def test_defaults_pass(self):
        Settings().validate_backends()

    def test_postgres_requires_asyncpg_url(self):
        settings = Settings(
            store={"backend": "postgres"},
            postgres_url="postgresql://orders@localhost/orders",
        )
        with pytest.raises(ConfigError, match="asyncpg"):
            settings.validate_backends()

    def test_redis_requires_url(self):
        settings = Settings(queue={"backend": "redis"}, redis_url="")
        with pytest.raises(ConfigError, match="ORDERS_REDIS_URL"):
            settings.validate_backends()

    def test_unknown_log_format(self):
        settings = Settings(observability={"log_format": "xml"})
        with pytest.raises(ConfigError, match="log format"):
            settings.validate_backends()
