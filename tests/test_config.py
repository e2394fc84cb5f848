import pytest

from ops_archiver.config.config import (create_default_config, load_config,
                                        validate_config)

CONFIG = """
postgresql:
  host: ${TEST_PG_HOST:db.internal}
  port: ${TEST_PG_PORT:5432}
  user: ops
  password: ${TEST_PG_PASSWORD}
  database: hot
  circuit_breaker:
    failure_threshold: 4
archive:
  archive_dir: /var/archives
  timezone: Europe/Amsterdam
  default_months: 2
security:
  api_key: secret
logging:
  level: DEBUG
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "APP_CONFIG", "APP_ENV", "ARCHIVE_PATH",
        "TEST_PG_HOST", "TEST_PG_PORT", "TEST_PG_PASSWORD",
        "TEST_API_KEY",
    ):
        monkeypatch.delenv(name, raising=False)


def test_load_config_with_env_substitution(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG)
    monkeypatch.setenv("TEST_PG_PASSWORD", "s3cret")

    cfg = load_config(str(path))

    assert cfg.postgres.host == "db.internal"
    assert cfg.postgres.port == 5432
    assert cfg.postgres.password == "s3cret"
    assert cfg.postgres.circuit_breaker.failure_threshold == 4
    assert cfg.archive.archive_dir == "/var/archives"
    assert cfg.archive.default_months == 2
    assert cfg.archive.compression_level == 9
    assert cfg.archive.tzinfo.key == "Europe/Amsterdam"
    assert cfg.security.api_key == "secret"
    assert cfg.logging.level == "DEBUG"


def test_missing_required_env_var(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG)
    with pytest.raises(ValueError, match="TEST_PG_PASSWORD"):
        load_config(str(path))


def test_archive_path_env_overrides_directory(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG)
    monkeypatch.setenv("TEST_PG_PASSWORD", "x")
    monkeypatch.setenv("ARCHIVE_PATH", str(tmp_path / "override"))
    assert load_config(str(path)).archive.archive_dir == str(tmp_path / "override")


def test_app_config_env_selects_file(tmp_path, monkeypatch):
    path = tmp_path / "other.yaml"
    path.write_text(CONFIG)
    monkeypatch.setenv("TEST_PG_PASSWORD", "x")
    monkeypatch.setenv("APP_CONFIG", str(path))
    assert load_config().postgres.database == "hot"


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "absent.yaml"))


def test_invalid_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("postgresql: [unclosed")
    with pytest.raises(ValueError, match="Invalid YAML"):
        load_config(str(path))


@pytest.mark.parametrize(
    "field,value",
    [
        ("compression_level", 0),
        ("compression_level", 10),
        ("default_months", -1),
        ("timezone", "Mars/Olympus_Mons"),
        ("max_duration_seconds", 0),
        ("archive_dir", ""),
    ],
)
def test_validation_rejects_bad_archive_settings(field, value):
    cfg = create_default_config()
    setattr(cfg.archive, field, value)
    with pytest.raises(ValueError):
        validate_config(cfg)


def test_default_config_is_valid():
    validate_config(create_default_config())


def test_numeric_secrets_stay_strings(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG.replace("api_key: secret", "api_key: ${TEST_API_KEY}"))
    monkeypatch.setenv("TEST_PG_PASSWORD", "123456")
    monkeypatch.setenv("TEST_API_KEY", "987654")

    cfg = load_config(str(path))

    assert cfg.postgres.password == "123456"
    assert cfg.security.api_key == "987654"
    assert cfg.postgres.port == 5432
