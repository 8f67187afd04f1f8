from __future__ import annotations

import json

import pytest

from job_autopilot.cli import main
from job_autopilot.errors import ConfigError
from job_autopilot.utils.config import Config


def test_defaults_when_file_missing(tmp_path) -> None:
    config = Config(str(tmp_path / "missing.json"))

    assert config.get("queues.concurrency.scraping") == 2
    assert config.get("scraping.boards") == ["linkedin", "indeed", "glassdoor"]
    assert config.get("nope.nothing", "fallback") == "fallback"


def test_user_file_is_deep_merged(tmp_path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"queues": {"concurrency": {"scraping": 7}}}))

    config = Config(str(path))

    assert config.get("queues.concurrency.scraping") == 7
    assert config.get("queues.concurrency.notifications") == 5
    assert config.get("queues.attempts") == 3


def test_invalid_file_raises_config_error(tmp_path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{not json")

    with pytest.raises(ConfigError):
        Config(str(path))


def test_environment_secret_wins(tmp_path, monkeypatch) -> None:
    config = Config(str(tmp_path / "config.json"))
    config.set("secrets.captcha_api_key", "from-file")

    assert config.get_secret("captcha_api_key") == "from-file"
    monkeypatch.setenv("CAPTCHA_API_KEY", "from-env")
    assert config.get_secret("captcha_api_key") == "from-env"


def test_masked_hides_secrets(tmp_path) -> None:
    config = Config(str(tmp_path / "config.json"))
    config.set("secrets.slack_webhook_url", "https://hooks.slack.com/services/abcdef")

    masked = config.masked()

    assert masked["secrets"]["slack_webhook_url"] == "http...cdef"
    assert masked["secrets"]["captcha_api_key"] == "(not set)"


def test_cli_config_set_persists(tmp_path, capsys) -> None:
    path = str(tmp_path / "config.json")

    main(["--config", path, "config", "--set", "queues.concurrency", '{"scraping": 1}'])

    assert Config(path).get("queues.concurrency.scraping") == 1
    assert "Set queues.concurrency" in capsys.readouterr().out


def test_cli_enqueues_scrape_and_reports_status(tmp_path, capsys) -> None:
    path = str(tmp_path / "config.json")
    db = str(tmp_path / "autopilot.db")

    main(["--config", path, "--db", db, "scrape", "--query", "python", "--enqueue"])
    main(["--config", path, "--db", db, "status"])

    out = capsys.readouterr().out
    assert "Queued scrape job" in out
    assert "scraping" in out and "waiting=1" in out


def test_cli_errors_exit_nonzero(tmp_path, capsys) -> None:
    with pytest.raises(SystemExit) as exc:
        main(["--config", str(tmp_path / "c.json"), "--db", str(tmp_path / "a.db"), "reorder", "--user", "alice", "missing"])

    assert exc.value.code == 1
    assert "Error:" in capsys.readouterr().out
