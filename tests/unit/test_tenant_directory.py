"""Unit tests for TenantDirectory."""

import json
from unittest.mock import MagicMock, patch

import pytest

from menu_ordering_service.errors import (
    AlreadyRegisteredError,
    NotFoundError,
    SlugConflictError,
    ValidationError,
)
from menu_ordering_service.models.restaurant_models import PaymentMethod, Restaurant
from menu_ordering_service.repositories.kv_store import InMemoryKeyValueStore
from menu_ordering_service.repositories.ordering_repositories import (
    PRIMARY_RESTAURANT_KEY,
    RestaurantRepository,
)
from menu_ordering_service.services.tenant_directory import TenantDirectory, slugify


@pytest.mark.unit
class TestSlugify:
    """Tests for slugify."""

    def test_collapses_punctuation_and_appends_suffix(self) -> None:
        assert slugify("Joe's Pizza & Pasta", "1752703500000") == "joe-s-pizza-pasta-1752703500000"

    def test_strips_leading_and_trailing_separators(self) -> None:
        assert slugify("  !Cafe!  ", "1") == "cafe-1"


@pytest.mark.unit
class TestTenantDirectory:
    """Test suite for TenantDirectory."""

    @pytest.fixture
    def repository(self, store: InMemoryKeyValueStore) -> RestaurantRepository:
        return RestaurantRepository(store)

    @pytest.fixture
    def directory(self, repository: RestaurantRepository) -> TenantDirectory:
        return TenantDirectory(repository, public_base_url="https://order.example.com/")

    def test_register_persists_and_indexes(
        self, directory: TenantDirectory, repository: RestaurantRepository
    ) -> None:
        restaurant = directory.register(
            user_id="user_1", name="Joe's Pizza", payment_methods=[PaymentMethod.COUNTER]
        )

        assert restaurant.id.startswith("rest_")
        assert restaurant.slug.startswith("joe-s-pizza-")
        assert restaurant.slug.endswith(restaurant.id.removeprefix("rest_"))
        assert restaurant.is_active is True
        assert repository.get_by_user("user_1") == restaurant
        assert repository.get_primary() == restaurant
        assert repository.lookup_slug(restaurant.slug) == "restaurant_user_1"

    def test_register_reports_missing_fields(self, directory: TenantDirectory) -> None:
        with pytest.raises(ValidationError) as exc_info:
            directory.register(user_id="user_1", name="  ", payment_methods=[])

        assert exc_info.value.fields == ["name", "paymentMethods"]

    def test_register_rejects_taken_slug(
        self, directory: TenantDirectory, repository: RestaurantRepository
    ) -> None:
        with patch(
            "menu_ordering_service.services.tenant_directory._millis", return_value="1000"
        ):
            directory.register(user_id="user_1", name="Cafe", payment_methods=[PaymentMethod.CASH])

            with pytest.raises(SlugConflictError):
                directory.register(
                    user_id="user_2", name="Cafe", payment_methods=[PaymentMethod.CASH]
                )

        assert repository.get_by_user("user_2") is None

    def test_register_twice_keeps_the_first_restaurant(
        self, directory: TenantDirectory, repository: RestaurantRepository
    ) -> None:
        first = directory.register(
            user_id="user_1", name="Joe's", payment_methods=[PaymentMethod.CASH]
        )

        with pytest.raises(AlreadyRegisteredError):
            directory.register(
                user_id="user_1", name="Joe's Again", payment_methods=[PaymentMethod.CASH]
            )

        assert directory.get_for_user("user_1") == first
        assert repository.get_primary() == first
        assert directory.resolve(first.slug) == first

    def test_resolve_finds_registered_restaurant(self, directory: TenantDirectory) -> None:
        registered = directory.register(
            user_id="user_1", name="Joe's Pizza", payment_methods=[PaymentMethod.CASH]
        )

        assert directory.resolve(registered.slug) == registered

    def test_resolve_is_idempotent(self, directory: TenantDirectory) -> None:
        registered = directory.register(
            user_id="user_1", name="Joe's Pizza", payment_methods=[PaymentMethod.CASH]
        )

        assert directory.resolve(registered.slug) == directory.resolve(registered.slug)

    def test_resolve_is_case_sensitive(self, directory: TenantDirectory) -> None:
        registered = directory.register(
            user_id="user_1", name="Joe's Pizza", payment_methods=[PaymentMethod.CASH]
        )

        with pytest.raises(NotFoundError):
            directory.resolve(registered.slug.upper())

    def test_resolve_unknown_slug(self, directory: TenantDirectory) -> None:
        with pytest.raises(NotFoundError):
            directory.resolve("nope")

    def test_resolve_finds_unindexed_record_by_scan(
        self,
        directory: TenantDirectory,
        store: InMemoryKeyValueStore,
        restaurant: Restaurant,
    ) -> None:
        # Written before the slug index existed, and not in the primary slot
        store.set("restaurant_user_1", json.dumps(restaurant.to_store_item()))

        assert directory.resolve(restaurant.slug) == restaurant

    def test_resolve_finds_primary_record(
        self,
        directory: TenantDirectory,
        store: InMemoryKeyValueStore,
        restaurant: Restaurant,
    ) -> None:
        store.set(PRIMARY_RESTAURANT_KEY, json.dumps(restaurant.to_store_item()))

        assert directory.resolve(restaurant.slug) == restaurant

    def test_resolve_skips_inactive_restaurant(
        self, directory: TenantDirectory, repository: RestaurantRepository, restaurant: Restaurant
    ) -> None:
        repository.save(restaurant.model_copy(update={"is_active": False}))

        with pytest.raises(NotFoundError):
            directory.resolve(restaurant.slug)

    def test_resolve_can_include_inactive(
        self, repository: RestaurantRepository, restaurant: Restaurant
    ) -> None:
        directory = TenantDirectory(repository, include_inactive=True)
        repository.save(restaurant.model_copy(update={"is_active": False}))

        assert directory.resolve(restaurant.slug).is_active is False

    def test_resolve_does_not_scan_when_primary_matches(self, restaurant: Restaurant) -> None:
        repository = MagicMock(spec=RestaurantRepository)
        repository.get_primary.return_value = restaurant
        directory = TenantDirectory(repository)

        assert directory.resolve(restaurant.slug) == restaurant
        repository.record_keys.assert_not_called()

    def test_get_for_user(self, directory: TenantDirectory) -> None:
        registered = directory.register(
            user_id="user_1", name="Joe's Pizza", payment_methods=[PaymentMethod.CASH]
        )

        assert directory.get_for_user("user_1") == registered

    def test_get_for_user_without_restaurant(self, directory: TenantDirectory) -> None:
        directory.register(user_id="user_1", name="Joe's", payment_methods=[PaymentMethod.CASH])

        with pytest.raises(NotFoundError):
            directory.get_for_user("user_2")

    def test_set_active_round_trip(
        self, directory: TenantDirectory, repository: RestaurantRepository
    ) -> None:
        registered = directory.register(
            user_id="user_1", name="Joe's Pizza", payment_methods=[PaymentMethod.CASH]
        )

        closed = directory.set_active("user_1", False)

        assert closed.is_active is False
        assert repository.get_by_user("user_1").is_active is False  # type: ignore[union-attr]
        assert repository.get_primary().is_active is False  # type: ignore[union-attr]
        with pytest.raises(NotFoundError):
            directory.resolve(registered.slug)

        directory.set_active("user_1", True)
        assert directory.resolve(registered.slug).is_active is True

    def test_set_active_does_not_take_over_primary_slot(
        self, directory: TenantDirectory, repository: RestaurantRepository, restaurant: Restaurant
    ) -> None:
        repository.save(restaurant)
        other = restaurant.model_copy(
            update={"id": "rest_2", "user_id": "user_2", "slug": "other-2"}
        )
        repository.save(other, mirror_primary=False)

        directory.set_active("user_2", False)

        assert repository.get_primary() == restaurant

    def test_public_url(self, directory: TenantDirectory, restaurant: Restaurant) -> None:
        assert (
            directory.public_url(restaurant)
            == "https://order.example.com/r/joe-s-pizza-1752703500000"
        )
