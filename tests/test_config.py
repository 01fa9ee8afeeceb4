import json
import logging

from config import REQUIRED_KEYS, Config, load_config
from landing import render_landing_page, tool_category
from logging_config import JSONFormatter
from tools import ToolDefinition


def test_missing_lists_required_keys():
    assert Config().missing() == list(REQUIRED_KEYS)


def test_supabase_backend_needs_credentials(config):
    config.data["STATE_BACKEND"] = "supabase"
    assert config.missing() == ["SUPABASE_URL", "SUPABASE_KEY"]


def test_defaults(config):
    assert config.is_valid()
    assert config.port == 8080
    assert config.access_token_expire_seconds == 7 * 24 * 60 * 60
    assert config.require_pkce is False
    assert config.state_backend == "memory"


def test_load_config_reads_environment(monkeypatch, tmp_path):
    for key in REQUIRED_KEYS:
        monkeypatch.setenv(key, f"value-{key}")
    monkeypatch.setenv("BASE_URL", "https://mcp.example.com/")
    monkeypatch.setenv("PORT", "9000")

    config = load_config(tmp_path / "missing.env")

    assert config.is_valid()
    assert config.base_url == "https://mcp.example.com"
    assert config.port == 9000


def test_load_config_reads_env_file(monkeypatch, tmp_path):
    # setenv first so the value load_dotenv writes is undone at teardown
    monkeypatch.setenv("GITHUB_OWNER", "placeholder")
    monkeypatch.delenv("GITHUB_OWNER")
    env_file = tmp_path / ".env"
    env_file.write_text("GITHUB_OWNER=octo\n")

    assert load_config(env_file).github_owner == "octo"


def test_json_formatter_splits_tag():
    record = logging.LogRecord("oauth", logging.INFO, __file__, 1, "[TOKEN] issued", None, None)
    entry = json.loads(JSONFormatter().format(record))

    assert entry["tag"] == "TOKEN"
    assert entry["message"] == "issued"
    assert entry["level"] == "INFO"


def test_landing_page_escapes_tool_text():
    async def handler(github, args):
        return None

    tools = {
        "x": ToolDefinition(
            "x",
            "<script>alert(1)</script>",
            {"type": "object", "properties": {"q": {"type": "string", "description": "a & b"}}},
            handler,
        )
    }
    page = render_landing_page("https://mcp.example.com", tools)

    assert "<script>alert(1)</script>" not in page
    assert "&lt;script&gt;" in page
    assert "a &amp; b" in page
    assert "q?" in page


def test_tool_categories():
    assert tool_category("list_repos") == "Repositories"
    assert tool_category("add_issue_comment") == "Issues"
    assert tool_category("list_pr_reviews") == "Pull Requests"
    assert tool_category("rerun_failed_jobs") == "Actions"
