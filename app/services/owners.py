"""Resolve free-text owner names to Zoho portal users."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from app.schemas.projects import OwnerMatch, PortalUser
from app.services.fetchers import RESOURCE_ROUTES, UpstreamFetcher

logger = logging.getLogger(__name__)

# Lower rank wins.
_EXACT, _WORD, _PREFIX, _SUBSTRING = range(4)


def _user_id(raw: Mapping[str, Any]) -> Optional[str]:
    for key in ("zpuid", "id", "id_string"):
        value = raw.get(key)
        if value not in (None, ""):
            return str(value)
    return None


def _user_name(raw: Mapping[str, Any]) -> str:
    name = raw.get("full_name") or raw.get("name")
    if name:
        return str(name)
    first = raw.get("first_name") or ""
    last = raw.get("last_name") or ""
    return f"{first} {last}".strip()


def to_portal_user(raw: Mapping[str, Any]) -> Optional[PortalUser]:
    user_id = _user_id(raw)
    name = _user_name(raw)
    if user_id is None or not name:
        return None
    return PortalUser(id=user_id, name=name, email=raw.get("email"))


def match_rank(candidate: str, query: str) -> Optional[int]:
    """Rank how well ``candidate`` matches ``query``; None when it does not."""
    name = " ".join(candidate.lower().split())
    needle = " ".join(query.lower().split())
    if not needle or needle not in name:
        return None
    if name == needle:
        return _EXACT
    if needle in name.split():
        return _WORD
    if name.startswith(needle):
        return _PREFIX
    return _SUBSTRING


def pick_owner(users: List[PortalUser], query: str) -> Optional[PortalUser]:
    """Best match for ``query``; ties keep the upstream order of ``users``."""
    best: Optional[PortalUser] = None
    best_rank: Optional[int] = None
    for user in users:
        rank = match_rank(user.name, query)
        if rank is None:
            continue
        if best_rank is None or rank < best_rank:
            best, best_rank = user, rank
    return best


class OwnerResolver:
    """Look up portal users and match names against them."""

    def __init__(self, fetcher: UpstreamFetcher) -> None:
        self._fetcher = fetcher

    async def list_users(self, *, conversation_id: str, portal_id: str) -> List[PortalUser]:
        raw_users = await self._fetcher.fetch_collection(
            RESOURCE_ROUTES["users"],
            conversation_id=conversation_id,
            portal_id=portal_id,
        )
        users: List[PortalUser] = []
        for raw in raw_users:
            user = to_portal_user(raw)
            if user is not None:
                users.append(user)
        return users

    async def resolve_owner(
        self, *, conversation_id: str, portal_id: str, name_query: str
    ) -> Optional[OwnerMatch]:
        """Return the portal user best matching ``name_query``, or None."""
        users = await self.list_users(conversation_id=conversation_id, portal_id=portal_id)
        owner = pick_owner(users, name_query)
        if owner is None:
            logger.info("No portal user matches %r", name_query)
            return None
        return OwnerMatch(id=owner.id, name=owner.name)


def owner_names(raw_owner: Mapping[str, Any]) -> Dict[str, str]:
    """Lower-cased name variants of a task owner entry."""
    first = str(raw_owner.get("first_name") or "").strip()
    last = str(raw_owner.get("last_name") or "").strip()
    full = f"{first} {last}".strip() or str(raw_owner.get("full_name") or "").strip()
    display = str(raw_owner.get("name") or "").strip()
    return {
        "full": full.lower(),
        "first": first.lower(),
        "last": last.lower(),
        "display": display.lower(),
    }


__all__ = [
    "OwnerResolver",
    "match_rank",
    "owner_names",
    "pick_owner",
    "to_portal_user",
]
