from sqlalchemy import inspect

from src.faceswap.config import MB, load_config


def test_load_config_defaults(monkeypatch) -> None:
    for name in (
        "PIAPI_BASE_URL",
        "PIAPI_MODEL",
        "POLL_INTERVAL_SECONDS",
        "POLL_MAX_ATTEMPTS",
        "HISTORY_LIMIT",
        "UPLOAD_MAX_BYTES",
        "IMAGE_MAX_FILE_SIZE_MB",
        "IMAGE_MAX_DIMENSION",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    monkeypatch.setenv("PIAPI_API_KEY", "  key-with-spaces  ")

    config = load_config()

    assert config.vendor.api_key == "key-with-spaces"
    assert config.vendor.base_url == "https://api.piapi.ai/api/v1"
    assert config.vendor.model == "Qubico/image-toolkit"
    assert config.polling.interval_seconds == 5.0
    assert config.polling.max_attempts == 60
    assert config.history_limit == 10
    assert config.image_limits.max_file_size_bytes == 10 * MB
    assert config.image_limits.max_dimension == 2048
    assert config.image_limits.upload_max_bytes == 20 * MB
    assert "generation" in inspect(config.engine).get_table_names()


def test_load_config_overrides(monkeypatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    monkeypatch.setenv("PIAPI_BASE_URL", "https://vendor.test/api/")
    monkeypatch.setenv("POLL_INTERVAL_SECONDS", "2")
    monkeypatch.setenv("POLL_MAX_ATTEMPTS", "3")
    monkeypatch.setenv("HISTORY_LIMIT", "5")
    monkeypatch.setenv("FRAME_BASE_URL", "https://frames.test/")

    config = load_config()

    assert config.vendor.base_url == "https://vendor.test/api"
    assert config.polling.interval_seconds == 2.0
    assert config.polling.max_attempts == 3
    assert config.history_limit == 5
    assert config.frame_base_url == "https://frames.test"
