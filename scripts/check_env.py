"""Pre-flight check for a bridge deployment.

Loads ``AppSettings`` from the given ``.env`` file and prints the effective
Zoho configuration without secrets. With ``--check-store`` it also opens the
credential database and confirms that every stored record still decrypts with
the configured ``TOKEN_ENCRYPTION_SECRET`` (or one of the previous secrets),
which catches a rotated key that was not kept in
``TOKEN_ENCRYPTION_PREVIOUS_SECRETS``.

Example usages::

    python -m scripts.check_env --env-file /opt/zoho-bridge/.env
    python -m scripts.check_env --env-file /opt/zoho-bridge/.env --check-store
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import List

from pydantic import ValidationError

from app.clients import SQLiteCredentialStore
from app.core.config import AppSettings, _load_env_file
from app.dependencies.clients import build_token_cipher

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_STORE_ERROR = 3
EXIT_RUNTIME_ERROR = 5


def _validate_settings(env_file: Path) -> AppSettings:
    """Ensure required settings can be loaded from the supplied env file."""
    _load_env_file(str(env_file))
    return AppSettings()  # type: ignore[call-arg]


def _describe(settings: AppSettings) -> int:
    """Print the effective Zoho configuration without revealing secrets."""
    db_path = Path(settings.storage.credential_db_path)
    print(f"Zoho API base URL:   {settings.zoho.api_base_url}")
    print(f"Zoho token endpoint: {settings.zoho.accounts_token_url}")
    print(f"Default portal:      {settings.zoho.portal_id or '(none)'}")
    print(f"Credential database: {db_path}")
    if not settings.security.token_encryption_secret:
        print(
            "TOKEN_ENCRYPTION_SECRET is unset; tokens are encrypted with a key "
            "derived from ZOHO_CLIENT_SECRET.",
            file=sys.stderr,
        )
    parent = db_path.parent if str(db_path.parent) else Path(".")
    if parent.exists() and not os.access(parent, os.W_OK):
        print(f"Credential database directory {parent} is not writable.", file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    return EXIT_OK


def _check_store(settings: AppSettings) -> int:
    """Decrypt every stored record with the configured keys."""
    db_path = Path(settings.storage.credential_db_path)
    if not db_path.exists():
        print("Credential database not created yet; nothing to decrypt.")
        return EXIT_OK

    store = SQLiteCredentialStore(str(db_path), build_token_cipher(settings))
    unreadable: List[str] = []
    conversation_ids = store.conversation_ids()
    for conversation_id in conversation_ids:
        try:
            store.get(conversation_id)
        except ValueError:
            unreadable.append(conversation_id)

    if unreadable:
        print(
            f"{len(unreadable)} of {len(conversation_ids)} stored credentials no "
            "longer decrypt. Add the old secret to TOKEN_ENCRYPTION_PREVIOUS_SECRETS "
            "or have these conversations re-authenticate:\n  "
            + "\n  ".join(unreadable),
            file=sys.stderr,
        )
        return EXIT_STORE_ERROR
    print(f"Stored credentials OK ({len(conversation_ids)} conversations).")
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate bridge settings and the credential database."
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        type=Path,
        help="Path to the environment file (default: .env in the repo root).",
    )
    parser.add_argument(
        "--check-store",
        action="store_true",
        help="Also confirm every stored credential decrypts with the configured keys.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    env_file: Path = args.env_file

    if not env_file.exists():
        print(
            f"Environment file {env_file} does not exist. "
            "Ensure the path is correct or create it before running this tool.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    try:
        settings = _validate_settings(env_file)
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR

    exit_code = _describe(settings)
    if exit_code != EXIT_OK or not args.check_store:
        return exit_code
    return _check_store(settings)


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
