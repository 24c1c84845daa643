"""Tests for qwen_oauth/storage.py: token file persistence and status."""
import json
import os
import platform

import pytest

from conftest import START
from qwen_oauth import TokenLease, TokenStorage


@pytest.fixture
def storage(tmp_path):
    return TokenStorage(tmp_path / "qwen" / "tokens.json")


def test_saved_lease_loads_back(storage):
    lease = TokenLease("at", "rt", START + 3600)

    assert storage.save_lease(lease, profile="portal")

    assert storage.load_lease() == lease
    assert storage.load_tokens()["profile"] == "portal"


@pytest.mark.skipif(platform.system() == "Windows", reason="POSIX permissions")
def test_token_file_is_owner_only(storage):
    storage.save_lease(TokenLease("at", "rt", START))

    assert os.stat(storage.token_file).st_mode & 0o777 == 0o600
    assert os.stat(storage.token_file.parent).st_mode & 0o777 == 0o700


def test_load_lease_filters_by_profile(storage):
    storage.save_lease(TokenLease("session", "", START), profile="web")

    assert storage.load_lease("portal") is None
    assert storage.load_lease("web").access_token == "session"


def test_missing_file_loads_nothing(storage):
    assert storage.load_tokens() is None
    assert storage.load_lease() is None


def test_malformed_file_loads_nothing(storage):
    storage.token_file.parent.mkdir(parents=True)
    storage.token_file.write_text(json.dumps({"refresh_token": "rt"}))

    assert storage.load_lease() is None


@pytest.mark.parametrize("content", ['["x"]', '"token"', "42"])
def test_non_object_file_loads_nothing(storage, content):
    storage.token_file.parent.mkdir(parents=True)
    storage.token_file.write_text(content)

    assert storage.load_tokens() is None
    assert storage.load_lease("portal") is None
    assert storage.get_status(now=START)["has_tokens"] is False


def test_clear_tokens(storage):
    storage.save_lease(TokenLease("at", "rt", START))

    assert storage.clear_tokens()
    assert not storage.token_file.exists()
    assert storage.clear_tokens()


def test_status_without_tokens(storage):
    status = storage.get_status(now=START)

    assert status["has_tokens"] is False
    assert status["expires_at"] is None


def test_status_of_valid_lease(storage):
    storage.save_lease(TokenLease("at", "rt", START + 2 * 3600 + 5 * 60))

    status = storage.get_status(now=START)

    assert status["has_tokens"] is True
    assert status["is_expired"] is False
    assert status["can_refresh"] is True
    assert status["profile"] == "portal"
    assert status["time_until_expiry"] == "2h 5m"


def test_status_of_expired_lease(storage):
    storage.save_lease(TokenLease("at", "", START - 1), profile="web")

    status = storage.get_status(now=START)

    assert status["is_expired"] is True
    assert status["can_refresh"] is False
    assert status["time_until_expiry"] == "expired"
