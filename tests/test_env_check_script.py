"""Tests for the deployment pre-flight script."""

from __future__ import annotations

from pathlib import Path

import pytest

from app.clients.credential_store import SQLiteCredentialStore
from app.utils.token_cipher import TokenCipherService
from scripts import check_env

ENV_KEYS = [
    "ZOHO_CLIENT_ID",
    "ZOHO_CLIENT_SECRET",
    "ZOHO_PORTAL_ID",
    "CREDENTIAL_DB_PATH",
    "TOKEN_ENCRYPTION_SECRET",
    "TOKEN_ENCRYPTION_PREVIOUS_SECRETS",
]


def _write_env(env_path: Path, **values: str) -> None:
    contents = "\n".join(f"{key}={value}" for key, value in values.items())
    env_path.write_text(contents + "\n", encoding="utf-8")


def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # setenv first so the keys the script loads are removed again on teardown.
    for key in ENV_KEYS:
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)


def _seed(db_path: Path, secret: str, *conversation_ids: str) -> None:
    store = SQLiteCredentialStore(str(db_path), TokenCipherService(secret=secret))
    for conversation_id in conversation_ids:
        store.upsert(conversation_id, "zoho-7", "1000.access", "1000.refresh", 3600)


def test_main_requires_existing_env_file(tmp_path: Path) -> None:
    exit_code = check_env.main(["--env-file", str(tmp_path / ".missing-env")])

    assert exit_code == check_env.EXIT_RUNTIME_ERROR


def test_validation_failure_for_missing_required_values(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / ".env"
    _clear_env(monkeypatch)
    _write_env(
        env_file,
        ZOHO_CLIENT_ID="1000.abc",
        ZOHO_PORTAL_ID="60000000001",
        CREDENTIAL_DB_PATH=str(tmp_path / "credentials.db"),
    )

    exit_code = check_env.main(["--env-file", str(env_file)])

    assert exit_code == check_env.EXIT_VALIDATION_ERROR


def test_check_describes_configuration_without_secrets(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    env_file = tmp_path / ".env"
    _clear_env(monkeypatch)
    _write_env(
        env_file,
        ZOHO_CLIENT_ID="1000.abc",
        ZOHO_CLIENT_SECRET="do-not-print",
        CREDENTIAL_DB_PATH=str(tmp_path / "credentials.db"),
    )

    exit_code = check_env.main(["--env-file", str(env_file)])

    assert exit_code == check_env.EXIT_OK
    captured = capsys.readouterr()
    assert "Zoho API base URL" in captured.out
    assert "do-not-print" not in captured.out
    assert "TOKEN_ENCRYPTION_SECRET is unset" in captured.err


def test_check_store_without_database_does_not_create_one(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / ".env"
    db_path = tmp_path / "data" / "credentials.db"
    _clear_env(monkeypatch)
    _write_env(
        env_file,
        ZOHO_CLIENT_ID="1000.abc",
        ZOHO_CLIENT_SECRET="secret",
        CREDENTIAL_DB_PATH=str(db_path),
        TOKEN_ENCRYPTION_SECRET="at-rest-key",
    )

    exit_code = check_env.main(["--env-file", str(env_file), "--check-store"])

    assert exit_code == check_env.EXIT_OK
    assert not db_path.exists()


def test_check_store_accepts_records_under_current_key(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    env_file = tmp_path / ".env"
    db_path = tmp_path / "credentials.db"
    _seed(db_path, "at-rest-key", "chat-1", "chat-2")
    _clear_env(monkeypatch)
    _write_env(
        env_file,
        ZOHO_CLIENT_ID="1000.abc",
        ZOHO_CLIENT_SECRET="secret",
        CREDENTIAL_DB_PATH=str(db_path),
        TOKEN_ENCRYPTION_SECRET="at-rest-key",
    )

    exit_code = check_env.main(["--env-file", str(env_file), "--check-store"])

    assert exit_code == check_env.EXIT_OK
    assert "2 conversations" in capsys.readouterr().out


def test_check_store_flags_records_written_under_a_dropped_key(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    env_file = tmp_path / ".env"
    db_path = tmp_path / "credentials.db"
    _seed(db_path, "old-key", "chat-1")
    settings = dict(
        ZOHO_CLIENT_ID="1000.abc",
        ZOHO_CLIENT_SECRET="secret",
        CREDENTIAL_DB_PATH=str(db_path),
        TOKEN_ENCRYPTION_SECRET="new-key",
    )
    _clear_env(monkeypatch)
    _write_env(env_file, **settings)

    exit_code = check_env.main(["--env-file", str(env_file), "--check-store"])

    assert exit_code == check_env.EXIT_STORE_ERROR
    captured = capsys.readouterr()
    assert "chat-1" in captured.err
    assert "1000.access" not in captured.err + captured.out

    _clear_env(monkeypatch)
    _write_env(env_file, TOKEN_ENCRYPTION_PREVIOUS_SECRETS="old-key", **settings)

    assert check_env.main(["--env-file", str(env_file), "--check-store"]) == check_env.EXIT_OK
