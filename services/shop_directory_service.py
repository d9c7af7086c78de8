"""
Shop directory cache.

Remembers shop names a driver has billed on each route, plus the address
and phone last used for each shop, so the billing form can suggest them.
The cache is an injected collaborator of SalesService; stored sale records
remain the source of truth and the cache only adds names not yet synced
and hides names the driver dismissed.
"""

from abc import ABC, abstractmethod
from typing import Optional

import structlog

from config import settings
from utils.text_utils import clean_shop_name, normalize_shop_name

logger = structlog.get_logger(__name__)


class ShopNameCache(ABC):
    """Interface for per-route shop name memory."""

    @abstractmethod
    def known_names(self, route_id: str) -> list[str]:
        """Remembered names for a route, most recent first."""

    @abstractmethod
    def hidden_names(self, route_id: str) -> set[str]:
        """Names the driver removed from suggestions."""

    @abstractmethod
    def remember(
        self,
        route_id: str,
        name: str,
        address: Optional[str] = None,
        phone: Optional[str] = None
    ) -> None:
        """Record a billed shop."""

    @abstractmethod
    def hide(self, route_id: str, name: str) -> None:
        """Stop suggesting a shop on a route."""

    @abstractmethod
    def details(self, name: str) -> Optional[dict]:
        """Last known address/phone for a shop."""

    @abstractmethod
    def store_details(self, name: str, address: Optional[str], phone: Optional[str]) -> None:
        """Update address/phone without touching the name history."""


class InMemoryShopNameCache(ShopNameCache):
    """Process-local cache, one per SalesService."""

    def __init__(self, history_limit: Optional[int] = None):
        self.history_limit = history_limit or settings.shop_history_limit
        self._names: dict[str, list[str]] = {}
        self._hidden: dict[str, set[str]] = {}
        self._details: dict[str, dict] = {}

    def known_names(self, route_id: str) -> list[str]:
        return list(self._names.get(route_id, []))

    def hidden_names(self, route_id: str) -> set[str]:
        return set(self._hidden.get(route_id, set()))

    def remember(
        self,
        route_id: str,
        name: str,
        address: Optional[str] = None,
        phone: Optional[str] = None
    ) -> None:
        name = clean_shop_name(name)
        if not name:
            return

        names = [n for n in self._names.get(route_id, []) if n != name]
        self._names[route_id] = [name, *names][: self.history_limit]
        self._hidden.get(route_id, set()).discard(name)
        self.store_details(name, address, phone)

    def hide(self, route_id: str, name: str) -> None:
        name = clean_shop_name(name)
        if not name:
            return
        self._names[route_id] = [n for n in self._names.get(route_id, []) if n != name]
        self._hidden.setdefault(route_id, set()).add(name)
        logger.info("shop_name_hidden", route_id=route_id, shop_name=name)

    def details(self, name: str) -> Optional[dict]:
        found = self._details.get(name)
        return dict(found) if found else None

    def store_details(self, name: str, address: Optional[str], phone: Optional[str]) -> None:
        if not address and not phone:
            return
        entry = self._details.setdefault(name, {})
        if address:
            entry["address"] = address
        if phone:
            entry["phone"] = phone


def suggest_shop_names(
    candidates: list[str],
    hidden: set[str],
    query: str,
    limit: Optional[int] = None
) -> list[str]:
    """
    Prefix-match shop names for the billing form.

    Names are de-duplicated, hidden ones dropped and the rest sorted
    case-insensitively. An empty query suggests nothing.
    """
    limit = limit or settings.shop_suggestion_limit
    prefix = normalize_shop_name(query)
    if not prefix:
        return []

    unique: dict[str, str] = {}
    for candidate in candidates:
        name = clean_shop_name(candidate)
        if not name or name in hidden:
            continue
        unique.setdefault(name, name)

    ordered = sorted(unique, key=lambda n: (normalize_shop_name(n), n))
    return [n for n in ordered if normalize_shop_name(n).startswith(prefix)][:limit]
