"""Tests for config/loader.py: env > .env > default, typed by the default."""
from pathlib import Path

from config import ConfigLoader


def loader_without_env_file(tmp_path):
    return ConfigLoader(str(tmp_path / "missing.env"))


def test_default_when_unset(tmp_path, monkeypatch):
    monkeypatch.delenv("QWEN_TEST_VALUE", raising=False)

    assert loader_without_env_file(tmp_path).get("QWEN_TEST_VALUE", "portal") == "portal"


def test_environment_overrides_default(tmp_path, monkeypatch):
    monkeypatch.setenv("QWEN_TEST_VALUE", "web")

    assert loader_without_env_file(tmp_path).get("QWEN_TEST_VALUE", "portal") == "web"


def test_values_are_coerced_to_default_type(tmp_path, monkeypatch):
    loader = loader_without_env_file(tmp_path)
    monkeypatch.setenv("QWEN_TEST_BOOL", "true")
    monkeypatch.setenv("QWEN_TEST_INT", "42")
    monkeypatch.setenv("QWEN_TEST_FLOAT", "2.5")

    assert loader.get("QWEN_TEST_BOOL", False) is True
    assert loader.get("QWEN_TEST_INT", 0) == 42
    assert loader.get("QWEN_TEST_FLOAT", 1.0) == 2.5


def test_unparseable_number_falls_back_to_default(tmp_path, monkeypatch):
    monkeypatch.setenv("QWEN_TEST_INT", "lots")

    assert loader_without_env_file(tmp_path).get("QWEN_TEST_INT", 3) == 3


def test_home_relative_default_is_expanded(tmp_path, monkeypatch):
    monkeypatch.delenv("QWEN_TEST_PATH", raising=False)

    value = loader_without_env_file(tmp_path).get("QWEN_TEST_PATH", "~/.qwen-chat/tokens.json")

    assert value == str(Path.home() / ".qwen-chat" / "tokens.json")


def test_env_file_is_loaded(tmp_path, monkeypatch):
    # register cleanup for the variable load_dotenv is about to set
    monkeypatch.setenv("QWEN_TEST_FROM_FILE", "placeholder")
    monkeypatch.delenv("QWEN_TEST_FROM_FILE")
    env_file = tmp_path / ".env"
    env_file.write_text("QWEN_TEST_FROM_FILE=from-file\n")

    loader = ConfigLoader(str(env_file))

    assert loader.get("QWEN_TEST_FROM_FILE", "default") == "from-file"
