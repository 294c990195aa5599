"""Inspect (and optionally refresh) the Zoho credentials of a conversation.

Secrets are never printed; only expiry information and token presence.

Example usages::

    python -m scripts.token_status 19:abc@thread.v2
    python -m scripts.token_status 19:abc@thread.v2 --refresh
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
import time
from typing import Any, Dict

from pydantic import ValidationError

from app.core.config import get_settings
from app.core.exceptions import AuthenticationRequiredError
from app.core.logging import configure_logging
from app.dependencies import get_credential_store, get_token_manager
from app.models.oauth import CredentialRecord

EXIT_OK = 0
EXIT_NOT_FOUND = 4
EXIT_AUTH_ERROR = 6
EXIT_CONFIG_ERROR = 2


def _summarize(record: CredentialRecord, state: str) -> Dict[str, Any]:
    now_ms = int(time.time() * 1000)
    return {
        "conversation_id": record.conversation_id,
        "external_user_id": record.external_user_id,
        "state": state,
        "expires_at": record.expires_at,
        "expires_in_seconds": round(record.seconds_remaining(now_ms)),
        "has_access_token": bool(record.access_token),
        "has_refresh_token": bool(record.refresh_token),
        "updated_at": record.updated_at.isoformat(),
    }


async def _run(conversation_id: str, refresh: bool) -> int:
    manager = get_token_manager()
    record = get_credential_store().get(conversation_id)
    if record is None:
        print(json.dumps({"conversation_id": conversation_id, "state": "no_token"}))
        return EXIT_NOT_FOUND

    if refresh:
        try:
            record = await manager.refresh(conversation_id, record.refresh_token)
        except AuthenticationRequiredError as exc:
            print(f"Refresh failed: {exc}", file=sys.stderr)
            return EXIT_AUTH_ERROR

    state = manager.token_state(conversation_id).value
    print(json.dumps(_summarize(record, state), indent=2))
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Show the stored Zoho token state for a conversation."
    )
    parser.add_argument("conversation_id", help="Conversation identity to inspect.")
    parser.add_argument(
        "--refresh",
        action="store_true",
        help="Force a refresh_token grant before reporting.",
    )
    args = parser.parse_args(argv)

    try:
        settings = get_settings()
    except ValidationError as exc:
        print(f"Invalid configuration:\n{exc}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    configure_logging(settings.log_level)

    return asyncio.run(_run(args.conversation_id, args.refresh))


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
