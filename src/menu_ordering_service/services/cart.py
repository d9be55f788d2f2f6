"""In-memory cart for one browsing session.

A cart is never persisted; only the order it turns into is. Lines restored
from client-held snapshots may carry malformed prices or quantities: those
lines are kept but contribute nothing to totals and counts.
"""

import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from menu_ordering_service.models.menu_models import MAX_PRICE, MenuItem, quantize_price
from menu_ordering_service.observability import metrics

logger = logging.getLogger(__name__)

# Largest quantity a restored line may carry
MAX_LINE_QUANTITY = 999


def _as_decimal(value: Any) -> Decimal | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        parsed = value
    elif isinstance(value, int | float):
        try:
            parsed = Decimal(str(value))
        except InvalidOperation:
            return None
    else:
        return None
    if not parsed.is_finite() or not 0 <= parsed <= MAX_PRICE:
        return None
    return parsed


def _as_quantity(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int) or value > MAX_LINE_QUANTITY:
        return None
    return value


@dataclass
class CartLine:
    """Snapshot of a menu item plus the requested quantity.

    ``price`` and ``quantity`` are None when a restored snapshot held a value
    that is not a number.
    """

    item_id: str
    name: str
    price: Decimal | None
    quantity: int | None
    category: str = ""

    @property
    def is_well_formed(self) -> bool:
        return self.price is not None and self.quantity is not None and self.quantity >= 1

    @property
    def amount(self) -> Decimal:
        """Price times quantity, zero for malformed lines."""
        if self.price is None or self.quantity is None:
            return Decimal("0")
        return self.price * self.quantity

    @classmethod
    def from_item(cls, item: MenuItem) -> "CartLine":
        return cls(
            item_id=item.id,
            name=item.name,
            price=item.price,
            quantity=1,
            category=item.category,
        )


class Cart:
    """Cart state machine: at most one line per item, quantities >= 1."""

    def __init__(self) -> None:
        self._lines: list[CartLine] = []

    @property
    def lines(self) -> list[CartLine]:
        """Lines in the order they were first added."""
        return list(self._lines)

    @property
    def is_empty(self) -> bool:
        return not self._lines

    def __len__(self) -> int:
        return len(self._lines)

    def _find(self, item_id: str) -> CartLine | None:
        for line in self._lines:
            if line.item_id == item_id:
                return line
        return None

    def add(self, item: MenuItem | Mapping[str, Any]) -> bool:
        """Add one unit of an item.

        Args:
            item: Menu item (or a raw item mapping) to add

        Returns:
            bool: False if the item has no identifier and nothing was added
        """
        item_id = item.get("id") if isinstance(item, Mapping) else item.id
        if not item_id:
            logger.warning("Ignoring cart add for an item without an identifier")
            return False

        line = self._find(str(item_id))
        if line is not None:
            line.quantity = (line.quantity or 0) + 1
        elif isinstance(item, MenuItem):
            self._lines.append(CartLine.from_item(item))
        else:
            self._lines.append(
                CartLine(
                    item_id=str(item_id),
                    name=str(item.get("name") or ""),
                    price=_as_decimal(item.get("price")),
                    quantity=1,
                    category=str(item.get("category") or ""),
                )
            )

        metrics.record_cart_change("add")
        return True

    def remove(self, item_id: str) -> None:
        """Remove one unit of an item; the line goes away when it reaches zero."""
        line = self._find(item_id)
        if line is None:
            return

        if (line.quantity or 0) > 1:
            line.quantity = (line.quantity or 1) - 1
        else:
            self._lines.remove(line)

        metrics.record_cart_change("remove")

    def quantity_of(self, item_id: str) -> int:
        line = self._find(item_id)
        if line is None or line.quantity is None:
            return 0
        return line.quantity

    def total(self) -> Decimal:
        """Sum of price times quantity over well-formed lines."""
        return quantize_price(sum((line.amount for line in self._lines), Decimal("0")))

    def count(self) -> int:
        """Total number of units in the cart."""
        return sum(line.quantity for line in self._lines if line.quantity is not None)

    def clear(self) -> None:
        self._lines.clear()

    def lines_in_menu_order(self, grouping: Mapping[str, list[MenuItem]]) -> list[CartLine]:
        """Order lines the way the menu displays their items.

        Args:
            grouping: Category grouping from the catalog (category -> items)

        Returns:
            list: Lines in menu order; lines for items no longer on the menu last
        """
        position: dict[str, int] = {}
        for items in grouping.values():
            for item in items:
                position.setdefault(item.id, len(position))

        on_menu = [line for line in self._lines if line.item_id in position]
        off_menu = [line for line in self._lines if line.item_id not in position]
        return sorted(on_menu, key=lambda line: position[line.item_id]) + off_menu

    @classmethod
    def from_snapshot(
        cls, raw_lines: list[Any], menu: Mapping[str, MenuItem] | None = None
    ) -> "Cart":
        """Rebuild a cart from raw line dicts held by the client.

        Each line is read field by field: a missing or non-numeric price or
        quantity is kept as None rather than rejecting the whole cart. Entries
        without an item id, and repeated ids, are dropped.

        Args:
            raw_lines: Line dicts as the client stored them
            menu: Current menu items by id; name, price and category of lines
                for these items are taken from the menu instead of the client
        """
        cart = cls()
        for raw in raw_lines:
            if not isinstance(raw, Mapping):
                logger.warning("Dropping cart snapshot entry that is not an object")
                continue
            item_id = raw.get("itemId", raw.get("id"))
            if not item_id or cart._find(str(item_id)) is not None:
                logger.warning(f"Dropping cart snapshot entry with id {item_id!r}")
                continue
            quantity = _as_quantity(raw.get("quantity"))
            if quantity is not None and quantity < 1:
                continue
            item = menu.get(str(item_id)) if menu is not None else None
            if item is not None:
                line = CartLine.from_item(item)
                line.quantity = quantity
            else:
                line = CartLine(
                    item_id=str(item_id),
                    name=str(raw.get("name") or ""),
                    price=_as_decimal(raw.get("price")),
                    quantity=quantity,
                    category=str(raw.get("category") or ""),
                )
            cart._lines.append(line)
        return cart


@dataclass
class _Session:
    restaurant_id: str
    cart: Cart
    last_used: float


class CartSessionRegistry:
    """Holds one cart per browsing session, in process memory only.

    A session is bound to the restaurant it was opened for; asking for the
    same session id under another restaurant starts a fresh cart. Sessions
    untouched for ``idle_seconds`` are dropped, and when ``max_sessions`` carts
    are held the least recently used one makes room for a new session.
    """

    def __init__(
        self,
        max_sessions: int = 10_000,
        idle_seconds: float = 2 * 60 * 60,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """Initialize the registry.

        Args:
            max_sessions: Most carts held at once
            idle_seconds: Inactivity after which a session's cart is dropped
            clock: Monotonic seconds source; defaults to ``time.monotonic``
        """
        if max_sessions < 1:
            raise ValueError("max_sessions must be at least 1")

        self.max_sessions = max_sessions
        self.idle_seconds = idle_seconds
        self.clock = clock or time.monotonic
        self._sessions: OrderedDict[str, _Session] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, session_id: str, restaurant_id: str) -> Cart | None:
        """Return the session's cart without opening a new session."""
        with self._lock:
            now = self.clock()
            self._expire(now)
            session = self._sessions.get(session_id)
            if session is None or session.restaurant_id != restaurant_id:
                return None
            self._touch(session_id, session, now)
            return session.cart

    def get_or_create(self, session_id: str, restaurant_id: str) -> Cart:
        with self._lock:
            now = self.clock()
            self._expire(now)
            session = self._sessions.get(session_id)
            if session is None or session.restaurant_id != restaurant_id:
                session = _Session(restaurant_id=restaurant_id, cart=Cart(), last_used=now)
                self._sessions[session_id] = session
            self._touch(session_id, session, now)

            while len(self._sessions) > self.max_sessions:
                evicted, _ = self._sessions.popitem(last=False)
                logger.warning(f"Cart session limit reached, dropped session {evicted}")
            return session.cart

    def discard(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _touch(self, session_id: str, session: _Session, now: float) -> None:
        session.last_used = now
        self._sessions.move_to_end(session_id)

    def _expire(self, now: float) -> None:
        # Oldest first: stop at the first session still in use
        while self._sessions:
            session_id, session = next(iter(self._sessions.items()))
            if now - session.last_used < self.idle_seconds:
                break
            del self._sessions[session_id]
            logger.info(f"Dropped cart session {session_id} after inactivity")
