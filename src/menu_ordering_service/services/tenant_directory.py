"""Tenant directory: restaurant setup and public slug resolution."""

import logging
import re
from datetime import UTC, datetime

from menu_ordering_service.errors import (
    AlreadyRegisteredError,
    NotFoundError,
    SlugConflictError,
    ValidationError,
)
from menu_ordering_service.models.restaurant_models import PaymentMethod, Restaurant
from menu_ordering_service.observability.decorators import traced
from menu_ordering_service.repositories.ordering_repositories import RestaurantRepository

logger = logging.getLogger(__name__)

_NON_SLUG_CHARS = re.compile(r"[^a-z0-9]")
_DASH_RUNS = re.compile(r"-+")


def slugify(name: str, suffix: str) -> str:
    """Build a public slug from a restaurant name and a uniqueness suffix.

    Example:
        >>> slugify("Joe's Pizza & Pasta", "1752703500000")
        'joe-s-pizza-pasta-1752703500000'
    """
    base = _DASH_RUNS.sub("-", _NON_SLUG_CHARS.sub("-", name.lower())).strip("-")
    return f"{base}-{suffix}"


def _millis(now: datetime) -> str:
    return str(int(now.timestamp() * 1000))


class TenantDirectory:
    """Resolves public slugs to restaurants and registers new restaurants.

    Lookups try the primary record first, then the slug index, then a full
    scan of restaurant records for data written before the index existed.
    """

    def __init__(
        self,
        restaurant_repository: RestaurantRepository,
        public_base_url: str = "http://localhost:8001",
        include_inactive: bool = False,
    ) -> None:
        """Initialize the directory.

        Args:
            restaurant_repository: Repository for restaurant records
            public_base_url: Base URL of the public ordering pages
            include_inactive: Whether inactive restaurants still resolve
        """
        self.restaurant_repository = restaurant_repository
        self.public_base_url = public_base_url.rstrip("/")
        self.include_inactive = include_inactive

    @traced("resolve_slug", service_name="menu-ordering-svc")
    def resolve(self, slug: str) -> Restaurant:
        """Find the restaurant with exactly this slug.

        Args:
            slug: Public slug from the ordering link (case-sensitive)

        Returns:
            Restaurant: The matching, active restaurant

        Raises:
            NotFoundError: If no restaurant matches, or it is inactive
        """
        restaurant = self._find(slug)
        if restaurant is None:
            raise NotFoundError(f"No restaurant with slug {slug!r}")

        if not restaurant.is_active and not self.include_inactive:
            logger.info(f"Restaurant {restaurant.id} is inactive, not serving slug {slug}")
            raise NotFoundError(f"No restaurant with slug {slug!r}")

        return restaurant

    def _find(self, slug: str) -> Restaurant | None:
        primary = self.restaurant_repository.get_primary()
        if primary is not None and primary.slug == slug:
            return primary

        indexed_key = self.restaurant_repository.lookup_slug(slug)
        if indexed_key is not None:
            restaurant = self.restaurant_repository.get_by_key(indexed_key)
            if restaurant is not None and restaurant.slug == slug:
                return restaurant
            logger.warning(f"Slug index entry for {slug} points at a stale record {indexed_key}")

        for key in self.restaurant_repository.record_keys():
            restaurant = self.restaurant_repository.get_by_key(key)
            if restaurant is not None and restaurant.slug == slug:
                return restaurant

        return None

    @traced("register_restaurant", service_name="menu-ordering-svc")
    def register(
        self,
        user_id: str,
        name: str,
        payment_methods: list[PaymentMethod],
        description: str = "",
        address: str = "",
        phone: str = "",
        email: str = "",
    ) -> Restaurant:
        """Create a restaurant for a user and publish its slug.

        Args:
            user_id: Identifier of the owning user
            name: Restaurant name
            payment_methods: Accepted payment methods (at least one)
            description: Descriptive text
            address: Street address
            phone: Contact phone
            email: Contact email

        Returns:
            Restaurant: The persisted restaurant

        Raises:
            ValidationError: If the name is blank or no payment method is selected
            AlreadyRegisteredError: If the user already owns a restaurant
            SlugConflictError: If the generated slug is already taken
        """
        missing = []
        if not name or not name.strip():
            missing.append("name")
        if not payment_methods:
            missing.append("paymentMethods")
        if missing:
            raise ValidationError(missing)

        existing = self._owned_by(user_id)
        if existing is not None:
            raise AlreadyRegisteredError(
                f"User {user_id} already owns restaurant {existing.id} ({existing.slug})"
            )

        now = datetime.now(UTC)
        suffix = _millis(now)
        restaurant = Restaurant(
            id=f"rest_{suffix}",
            user_id=user_id,
            name=name,
            slug=slugify(name, suffix),
            description=description,
            address=address,
            phone=phone,
            email=email,
            payment_methods=payment_methods,
            is_active=True,
            created_at=now,
        )

        record_key = self.restaurant_repository.record_key(user_id)
        if not self.restaurant_repository.claim_slug(restaurant.slug, record_key):
            raise SlugConflictError(f"Slug {restaurant.slug!r} is already taken")

        self.restaurant_repository.save(restaurant)
        logger.info(f"Registered restaurant {restaurant.id} with slug {restaurant.slug}")
        return restaurant

    def get_for_user(self, user_id: str) -> Restaurant:
        """Load the restaurant owned by a user.

        Raises:
            NotFoundError: If the user has no restaurant
        """
        restaurant = self._owned_by(user_id)
        if restaurant is None:
            raise NotFoundError(f"User {user_id} has no restaurant")
        return restaurant

    def _owned_by(self, user_id: str) -> Restaurant | None:
        restaurant = self.restaurant_repository.get_by_user(user_id)
        if restaurant is None:
            restaurant = self.restaurant_repository.get_primary()
        if restaurant is None or restaurant.user_id != user_id:
            return None
        return restaurant

    def set_active(self, user_id: str, active: bool) -> Restaurant:
        """Turn the owner's public ordering page on or off."""
        restaurant = self.get_for_user(user_id)
        updated = restaurant.model_copy(update={"is_active": active})
        primary = self.restaurant_repository.get_primary()
        self.restaurant_repository.save(
            updated, mirror_primary=primary is not None and primary.id == updated.id
        )
        logger.info(f"Restaurant {restaurant.id} active flag set to {active}")
        return updated

    def public_url(self, restaurant: Restaurant) -> str:
        """Link customers open (usually via a printed QR code)."""
        return f"{self.public_base_url}/r/{restaurant.slug}"
