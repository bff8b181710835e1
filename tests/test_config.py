"""Tests for configuration loading."""
import pytest

from promexport.config import Config, ServerConfig, load_config


def test_defaults():
    config = Config()
    assert config.global_.log_level == "INFO"
    assert config.server.path == "/metrics"
    assert config.export.registry == "default"
    assert config.export.source == "Dropwizard"
    assert config.export.allowed_origin is None


def test_load_config(tmp_path):
    """YAML files populate every section."""
    path = tmp_path / "exporter.yaml"
    path.write_text(
        "global:\n"
        "  log_level: DEBUG\n"
        "server:\n"
        "  port: 9100\n"
        "export:\n"
        "  registry: app\n"
        "  include_prefixes: [app.]\n"
    )

    config = load_config(str(path))
    assert config.global_.log_level == "DEBUG"
    assert config.server.port == 9100
    assert config.export.registry == "app"
    assert config.export.include_prefixes == ["app."]


def test_env_overrides(tmp_path, monkeypatch):
    """Environment variables override the file."""
    path = tmp_path / "exporter.yaml"
    path.write_text("global:\n  log_level: INFO\n")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    monkeypatch.setenv("EXPORTER_ALLOWED_ORIGIN", "https://example.com")

    config = load_config(str(path))
    assert config.global_.log_level == "WARNING"
    assert config.export.allowed_origin == "https://example.com"


def test_empty_file_uses_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.delenv("EXPORTER_ALLOWED_ORIGIN", raising=False)
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert load_config(str(path)) == Config()


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "missing.yaml"))


def test_invalid_config(tmp_path):
    """Validation errors surface as ValueError."""
    path = tmp_path / "bad.yaml"
    path.write_text("server:\n  path: metrics\n")
    with pytest.raises(ValueError):
        load_config(str(path))


def test_server_path_must_be_absolute():
    with pytest.raises(ValueError):
        ServerConfig(path="metrics")
