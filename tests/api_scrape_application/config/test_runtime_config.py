from __future__ import annotations

from api_scrape_application.config import RuntimeConfig, load_runtime_config
from api_scrape_application.config.paths import get_config_env, resolve_config_path


def test_bundled_runtime_config_matches_defaults():
    assert load_runtime_config() == RuntimeConfig()


def test_values_are_read_from_yaml(tmp_path):
    path = tmp_path / "runtime.yaml"
    path.write_text(
        "default_max_pages: 3\nlog_buffer_size: 50\nstrict_data_path: yes\ndedupe_jobs: 'true'\n",
        encoding="utf-8",
    )

    config = load_runtime_config(path)

    assert config.default_max_pages == 3
    assert config.log_buffer_size == 50
    assert config.strict_data_path is True
    assert config.dedupe_jobs is True
    assert config.default_page_size == 20


def test_invalid_values_fall_back_to_defaults(tmp_path):
    path = tmp_path / "runtime.yaml"
    path.write_text("default_max_pages: lots\nsse_heartbeat_seconds: true\n", encoding="utf-8")

    config = load_runtime_config(path)

    assert config.default_max_pages == 10
    assert config.sse_heartbeat_seconds == 20


def test_unreadable_or_missing_files_give_defaults(tmp_path):
    broken = tmp_path / "runtime.yaml"
    broken.write_text("default_max_pages: [1, 2\n", encoding="utf-8")

    assert load_runtime_config(broken) == RuntimeConfig()
    assert load_runtime_config(tmp_path / "absent.yaml") == RuntimeConfig()


def test_config_env_selection(monkeypatch):
    monkeypatch.delenv("APP_ENV", raising=False)
    monkeypatch.delenv("ENV", raising=False)
    monkeypatch.setenv("API_SCRAPE_ENV", "PROD")
    assert get_config_env() == "prod"
    assert resolve_config_path("runtime.yaml").parent.name == "prod"

    monkeypatch.setenv("API_SCRAPE_ENV", "staging")
    assert get_config_env() == "dev"
    assert resolve_config_path("sites.yaml").name == "sites.yaml"
