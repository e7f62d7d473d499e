import logging

from fintrack import logging_setup
from fintrack.config import Settings, load_settings

ENV_VARS = (
    "FINTRACK_SEED_PATH",
    "FINTRACK_REPORT_MONTHS",
    "FINTRACK_CURRENCY",
    "FINTRACK_LOG_LEVEL",
    "FINTRACK_DUE_SOON_DAYS",
)


def clear_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults(tmp_path, monkeypatch):
    clear_env(monkeypatch)
    assert load_settings(tmp_path / "missing.env") == Settings()


def test_env_overrides(tmp_path, monkeypatch):
    clear_env(monkeypatch)
    monkeypatch.setenv("FINTRACK_REPORT_MONTHS", "12")
    monkeypatch.setenv("FINTRACK_CURRENCY", "EUR")

    settings = load_settings(tmp_path / "missing.env")
    assert settings.report_months == 12
    assert settings.currency == "EUR"
    assert settings.due_soon_days == 3


def test_bad_integers_fall_back(tmp_path, monkeypatch):
    clear_env(monkeypatch)
    monkeypatch.setenv("FINTRACK_REPORT_MONTHS", "six")
    monkeypatch.setenv("FINTRACK_DUE_SOON_DAYS", "-1")

    settings = load_settings(tmp_path / "missing.env")
    assert settings.report_months == 6
    assert settings.due_soon_days == 3


def test_dotenv_file_is_read(tmp_path, monkeypatch):
    clear_env(monkeypatch)
    env_file = tmp_path / ".env"
    env_file.write_text("FINTRACK_SEED_PATH=/tmp/ledger.json\nFINTRACK_DUE_SOON_DAYS=7\n")

    settings = load_settings(env_file)
    assert settings.seed_path == "/tmp/ledger.json"
    assert settings.due_soon_days == 7

    clear_env(monkeypatch)


def test_parse_level(monkeypatch):
    monkeypatch.delenv("FINTRACK_LOG_LEVEL", raising=False)
    assert logging_setup._parse_level("debug") == logging.DEBUG
    assert logging_setup._parse_level("15") == 15
    assert logging_setup._parse_level("nonsense") == logging.INFO
    assert logging_setup._parse_level(None) == logging.INFO

    monkeypatch.setenv("FINTRACK_LOG_LEVEL", "WARNING")
    assert logging_setup._parse_level(None) == logging.WARNING


def test_get_logger_is_namespaced():
    logger = logging_setup.get_logger("fintrack.tests")
    assert logger.name == "fintrack.tests"
    assert logging.getLogger("fintrack").handlers
