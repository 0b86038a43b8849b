"""CartApplicationService: staging area with prices copied at add time."""

import pytest

from src.cm_cart.application.service import CartApplicationService
from src.cm_common.errors import (
    CartItemNotFoundError,
    NotAuthorizedError,
    ProductNotFoundError,
    ProductUnavailableError,
)
from tests.unit.fakes import (
    FakeCartRepository,
    FakeFeeScheduleRepository,
    FakeProductReader,
    FakeSession,
    add_product,
    make_user,
)

BUYER = make_user("buyer")
OTHER = make_user("other")


def _service() -> CartApplicationService:
    return CartApplicationService(
        FakeCartRepository(), FakeProductReader(), FakeFeeScheduleRepository()
    )


class TestAddItem:
    @pytest.mark.asyncio
    async def test_price_is_copied_from_listing(self) -> None:
        db = FakeSession()
        add_product(db, "p1", "s1", 4000)
        item = await _service().add_item(db, BUYER, "p1", 2)
        assert (item.product_id, item.quantity, item.price) == ("p1", 2, 4000)

    @pytest.mark.asyncio
    async def test_adding_again_replaces_quantity(self) -> None:
        db = FakeSession()
        add_product(db, "p1", "s1", 4000)
        service = _service()
        first = await service.add_item(db, BUYER, "p1", 1)
        second = await service.add_item(db, BUYER, "p1", 3)
        assert first.id == second.id
        assert second.quantity == 3
        assert len(db.state.cart_items) == 1

    @pytest.mark.asyncio
    async def test_missing_or_deleted_listing(self) -> None:
        db = FakeSession()
        add_product(db, "gone", "s1", 4000, deleted=True)
        service = _service()
        with pytest.raises(ProductNotFoundError):
            await service.add_item(db, BUYER, "nope", 1)
        with pytest.raises(ProductNotFoundError):
            await service.add_item(db, BUYER, "gone", 1)

    @pytest.mark.asyncio
    async def test_listing_without_platform_purchase(self) -> None:
        db = FakeSession()
        add_product(db, "offline", "s1", 4000, enabled=False)
        add_product(db, "on_request", "s1", None)
        db.seed()
        service = _service()
        with pytest.raises(ProductUnavailableError):
            await service.add_item(db, BUYER, "offline", 1)
        with pytest.raises(ProductUnavailableError):
            await service.add_item(db, BUYER, "on_request", 1)

    @pytest.mark.asyncio
    async def test_own_listing(self) -> None:
        db = FakeSession()
        add_product(db, "p1", "buyer", 4000)
        with pytest.raises(NotAuthorizedError):
            await _service().add_item(db, BUYER, "p1", 1)


class TestGetCart:
    @pytest.mark.asyncio
    async def test_empty(self) -> None:
        cart = await _service().get_cart(FakeSession(), BUYER)
        assert cart.cart_id is None
        assert cart.groups == []
        assert cart.grand_total == 0

    @pytest.mark.asyncio
    async def test_grouped_preview_with_fees(self) -> None:
        db = FakeSession()
        add_product(db, "p1", "s1", 4000)
        add_product(db, "p2", "s2", 1500)
        service = _service()
        await service.add_item(db, BUYER, "p1", 1)
        await service.add_item(db, BUYER, "p2", 2)

        cart = await service.get_cart(db, BUYER)

        assert [(g.seller_id, g.subtotal, g.platform_fee, g.total) for g in cart.groups] == [
            ("s1", 4000, 200, 4200),
            ("s2", 3000, 150, 3150),
        ]
        assert cart.item_count == 3
        assert cart.grand_total == 7350
        assert cart.grand_total_display == "₦73.50"
        assert cart.unavailable_product_ids == []

    @pytest.mark.asyncio
    async def test_unavailable_items_are_flagged_not_charged(self) -> None:
        db = FakeSession()
        add_product(db, "p1", "s1", 4000)
        add_product(db, "p2", "s1", 1000)
        service = _service()
        await service.add_item(db, BUYER, "p1", 1)
        await service.add_item(db, BUYER, "p2", 1)
        db.state.products["p2"].platform_purchase_enabled = False

        cart = await service.get_cart(db, BUYER)

        assert cart.unavailable_product_ids == ["p2"]
        (group,) = cart.groups
        assert group.subtotal == 4000
        assert [i.available for i in group.items] == [True, False]


class TestModify:
    @pytest.mark.asyncio
    async def test_update_and_remove(self) -> None:
        db = FakeSession()
        add_product(db, "p1", "s1", 4000)
        service = _service()
        item = await service.add_item(db, BUYER, "p1", 1)

        updated = await service.update_item(db, BUYER, item.id, 5)
        assert updated.quantity == 5

        await service.remove_item(db, BUYER, item.id)
        assert db.state.cart_items == {}
        with pytest.raises(CartItemNotFoundError):
            await service.remove_item(db, BUYER, item.id)

    @pytest.mark.asyncio
    async def test_cannot_touch_another_users_item(self) -> None:
        db = FakeSession()
        add_product(db, "p1", "s1", 4000)
        service = _service()
        item = await service.add_item(db, BUYER, "p1", 1)
        with pytest.raises(NotAuthorizedError):
            await service.update_item(db, OTHER, item.id, 2)
        assert db.state.cart_items[item.id].quantity == 1

    @pytest.mark.asyncio
    async def test_clear(self) -> None:
        db = FakeSession()
        add_product(db, "p1", "s1", 4000)
        add_product(db, "p2", "s2", 1000)
        service = _service()
        await service.add_item(db, BUYER, "p1", 1)
        await service.add_item(db, BUYER, "p2", 1)
        assert await service.clear(db, BUYER) == 2
        assert await service.clear(db, OTHER) == 0
