from decimal import Decimal

import pytest
from sqlalchemy import update

from helpers import stock_of
from storefront.data.models import CartItemModel, CartModel, InventoryModel, OrderItemModel, OrderModel
from storefront.domain.errors import (
    EmptyCart,
    InvalidTransition,
    NotFound,
    OrderRejected,
    TransactionFailed,
)
from storefront.domain.order_status import OrderStatus
from storefront.domain.schemas import ProductUpdate
from storefront.repos.cart_repo import CartRepo
from storefront.repos.inventory_repo import InventoryRepo
from storefront.services.order_service import OrderService
from storefront.services.product_service import ProductService


@pytest.fixture
def service(db, cache):
    return OrderService(db, cache)


def cart_lines(db, user_id):
    db.expire_all()
    cart = CartRepo(db).get_cart_with_products(user_id)
    return sorted((i.product_id, i.quantity) for i in cart.items) if cart else []


def test_rejects_whole_order_when_one_item_is_out_of_stock(db, service, customer, make_product, add_to_cart):
    p = make_product("P", price="9.99", stock=5)
    q = make_product("Q", price="4.50", stock=0)
    p_id, q_id = p.id, q.id
    add_to_cart(customer, p, 2)
    add_to_cart(customer, q, 1)

    with pytest.raises(OrderRejected) as exc:
        service.place_order(customer.id)

    assert exc.value.unavailable_items == [
        {
            "product_id": q_id,
            "product_name": "Q",
            "reason": "insufficient-stock",
            "available": 0,
            "requested": 1,
        }
    ]
    assert stock_of(db, p_id) == 5
    assert cart_lines(db, customer.id) == sorted([(p_id, 2), (q_id, 1)])
    assert db.query(OrderModel).count() == 0
    assert db.query(OrderItemModel).count() == 0


def test_inactive_product_is_reported_as_not_available(db, service, customer, make_product, add_to_cart):
    p = make_product("Retired", stock=10, is_active=False)
    add_to_cart(customer, p, 1)

    with pytest.raises(OrderRejected) as exc:
        service.place_order(customer.id)

    [item] = exc.value.unavailable_items
    assert item["reason"] == "not-available"
    assert item["available"] == 10


def test_place_and_cancel_order_round_trip(db, service, customer, make_product, add_to_cart):
    p = make_product("P", price="9.99", stock=5)
    p_id = p.id
    add_to_cart(customer, p, 2)

    order = service.place_order(customer.id, shipping_address="1 Main Street, Springfield", notes="leave at door")

    assert order["status"] == OrderStatus.PENDING.value
    assert order["total_amount"] == Decimal("19.98")
    assert order["shipping_address"] == "1 Main Street, Springfield"
    assert [(i["product_id"], i["quantity"], i["price"]) for i in order["items"]] == [
        (p_id, 2, Decimal("9.99"))
    ]
    assert stock_of(db, p_id) == 3

    # koszyk zostaje, ale jest pusty
    assert db.query(CartModel).filter(CartModel.user_id == customer.id).count() == 1
    assert cart_lines(db, customer.id) == []

    cancelled = service.cancel_order(customer.id, order["id"])

    assert cancelled["status"] == OrderStatus.CANCELLED.value
    assert stock_of(db, p_id) == 5


def test_total_uses_fixed_point_arithmetic(db, service, customer, make_product, add_to_cart):
    a = make_product("A", price="0.10", stock=10)
    b = make_product("B", price="0.20", stock=10)
    add_to_cart(customer, a, 3)
    add_to_cart(customer, b, 1)

    order = service.place_order(customer.id)

    assert order["total_amount"] == Decimal("0.50")


def test_missing_or_empty_cart_is_rejected(db, service, customer, make_product, add_to_cart):
    with pytest.raises(EmptyCart):
        service.place_order(customer.id)

    p = make_product("P", stock=5)
    add_to_cart(customer, p, 1)
    CartRepo(db).clear_items(CartRepo(db).get_cart_by_user(customer.id).id)
    db.commit()

    with pytest.raises(EmptyCart):
        service.place_order(customer.id)


def test_second_order_cannot_oversell(db, service, customer, other_customer, make_product, add_to_cart):
    p = make_product("P", stock=5)
    p_id = p.id
    add_to_cart(customer, p, 3)
    add_to_cart(other_customer, p, 3)

    service.place_order(customer.id)

    with pytest.raises(OrderRejected) as exc:
        service.place_order(other_customer.id)

    assert exc.value.unavailable_items[0]["available"] == 2
    assert stock_of(db, p_id) == 2


def test_lost_inventory_race_rolls_back_everything(db, service, customer, make_product, add_to_cart, monkeypatch):
    p = make_product("P", stock=5)
    p_id = p.id
    add_to_cart(customer, p, 2)

    load_cart = service.cart_repo.get_cart_with_products

    def load_then_competing_checkout(user_id):
        cart = load_cart(user_id)
        # inny checkout wykupuje towar miedzy odczytem a zapisem
        db.execute(
            update(InventoryModel)
            .where(InventoryModel.product_id == p_id)
            .values(quantity=1)
            .execution_options(synchronize_session=False)
        )
        return cart

    monkeypatch.setattr(service.cart_repo, "get_cart_with_products", load_then_competing_checkout)

    with pytest.raises(TransactionFailed):
        service.place_order(customer.id)

    assert db.query(OrderModel).count() == 0
    assert cart_lines(db, customer.id) == [(p_id, 2)]


def test_conditional_decrement_never_goes_negative(db, make_product):
    p = make_product("P", stock=2)
    repo = InventoryRepo(db)

    assert repo.decrement(p.id, 3) is False
    assert repo.decrement(p.id, 2) is True
    assert repo.decrement(p.id, 1) is False
    db.commit()

    assert stock_of(db, p.id) == 0


def test_order_keeps_captured_price(db, cache, service, customer, make_product, add_to_cart):
    p = make_product("P", price="9.99", stock=5)
    p_id = p.id
    add_to_cart(customer, p, 2)
    order = service.place_order(customer.id)

    ProductService(db, cache).update_product(p_id, ProductUpdate(price=Decimal("25.00")))

    reloaded = service.get_order(customer.id, order["id"])
    assert reloaded["items"][0]["price"] == Decimal("9.99")
    assert reloaded["total_amount"] == Decimal("19.98")


def test_cancel_requires_owner_and_pending_status(db, service, customer, other_customer, make_product, add_to_cart):
    p = make_product("P", stock=5)
    p_id = p.id
    add_to_cart(customer, p, 2)
    order = service.place_order(customer.id)

    with pytest.raises(NotFound):
        service.cancel_order(other_customer.id, order["id"])

    service.cancel_order(customer.id, order["id"])

    # drugi cancel nie oddaje towaru drugi raz
    with pytest.raises(InvalidTransition):
        service.cancel_order(customer.id, order["id"])
    assert stock_of(db, p_id) == 5


def test_customer_cannot_cancel_confirmed_order(db, service, customer, make_product, add_to_cart):
    p = make_product("P", stock=5)
    add_to_cart(customer, p, 1)
    order = service.place_order(customer.id)
    service.admin_update_status(order["id"], OrderStatus.CONFIRMED)

    with pytest.raises(InvalidTransition):
        service.cancel_order(customer.id, order["id"])


@pytest.mark.parametrize(
    "path",
    [[], [OrderStatus.CONFIRMED], [OrderStatus.CONFIRMED, OrderStatus.SHIPPED]],
    ids=["pending", "confirmed", "shipped"],
)
def test_admin_cancel_restores_stock(db, service, customer, make_product, add_to_cart, path):
    p = make_product("P", stock=5)
    p_id = p.id
    add_to_cart(customer, p, 4)
    order = service.place_order(customer.id)

    for status in path:
        service.admin_update_status(order["id"], status)

    assert stock_of(db, p_id) == 1

    result = service.admin_update_status(order["id"], OrderStatus.CANCELLED)

    assert result["status"] == OrderStatus.CANCELLED.value
    assert stock_of(db, p_id) == 5


def test_admin_transitions_only_move_forward(db, service, customer, make_product, add_to_cart):
    p = make_product("P", stock=5)
    p_id = p.id
    add_to_cart(customer, p, 1)
    order = service.place_order(customer.id)

    assert service.admin_update_status(order["id"], OrderStatus.SHIPPED)["status"] == "SHIPPED"

    with pytest.raises(InvalidTransition):
        service.admin_update_status(order["id"], OrderStatus.CONFIRMED)
    with pytest.raises(InvalidTransition):
        service.admin_update_status(order["id"], OrderStatus.SHIPPED)

    service.admin_update_status(order["id"], OrderStatus.DELIVERED)

    with pytest.raises(InvalidTransition):
        service.admin_update_status(order["id"], OrderStatus.CANCELLED)
    assert stock_of(db, p_id) == 4


def test_admin_update_unknown_order(service):
    with pytest.raises(NotFound):
        service.admin_update_status(999, OrderStatus.CONFIRMED)


def test_place_order_invalidates_stock_and_order_caches(db, cache, redis_client, service, customer, make_product, add_to_cart):
    p = make_product("P", stock=5)
    p_id = p.id
    products = ProductService(db, cache)
    products.get_product(p_id)
    products.get_inventory(p_id)
    service.list_user_orders(customer.id)
    service.order_stats()
    redis_client.set("category:1:products:1:10", "{}")
    redis_client.set("categories:all", "[]")

    add_to_cart(customer, p, 2)
    service.place_order(customer.id)

    assert redis_client.get(f"product:{p_id}") is None
    assert redis_client.get(f"inventory:{p_id}") is None
    assert redis_client.get(f"orders:{customer.id}:1:10:all") is None
    assert redis_client.get("stats:orders") is None
    assert redis_client.get("category:1:products:1:10") is None
    # metadane kategorii nie zaleza od stanu magazynu
    assert redis_client.get("categories:all") == "[]"

    assert products.get_inventory(p_id)["quantity"] == 3


def test_rejected_order_leaves_cache_untouched(db, cache, redis_client, service, customer, make_product, add_to_cart):
    p = make_product("P", stock=1)
    ProductService(db, cache).get_product(p.id)
    add_to_cart(customer, p, 2)

    with pytest.raises(OrderRejected):
        service.place_order(customer.id)

    assert redis_client.get(f"product:{p.id}") is not None


def test_user_order_list_and_stats(db, service, customer, other_customer, make_product, add_to_cart):
    p = make_product("P", price="10.00", stock=10)
    add_to_cart(customer, p, 1)
    first = service.place_order(customer.id)
    add_to_cart(customer, p, 2)
    service.place_order(customer.id)
    add_to_cart(other_customer, p, 3)
    service.place_order(other_customer.id)
    service.admin_update_status(first["id"], OrderStatus.CONFIRMED)

    mine = service.list_user_orders(customer.id)
    assert mine["pagination"]["total_count"] == 2
    assert {o["user_id"] for o in mine["orders"]} == {customer.id}

    pending = service.list_user_orders(customer.id, status=OrderStatus.PENDING)
    assert [o["total_amount"] for o in pending["orders"]] == [Decimal("20.00")]

    stats = service.order_stats()
    assert stats["total_orders"] == 3
    assert stats["total_revenue"] == Decimal("10.00")
    breakdown = {row["status"]: row["count"] for row in stats["status_breakdown"]}
    assert breakdown == {"CONFIRMED": 1, "PENDING": 2}


# ------------------------------------------------------------ interleaved sessions

def test_concurrent_cancels_restore_stock_once(db, other_db, cache, service, customer, make_product, add_to_cart, monkeypatch):
    p = make_product("P", stock=5)
    p_id = p.id
    add_to_cart(customer, p, 2)
    order = service.place_order(customer.id)
    assert stock_of(db, p_id) == 3

    load_order = service.repo.get_order

    def load_then_admin_cancels(order_id, user_id=None):
        found = load_order(order_id, user_id=user_id)
        OrderService(other_db, cache).admin_update_status(order_id, OrderStatus.CANCELLED)
        return found

    monkeypatch.setattr(service.repo, "get_order", load_then_admin_cancels)

    with pytest.raises(InvalidTransition):
        service.cancel_order(customer.id, order["id"])

    assert stock_of(db, p_id) == 5


def test_admin_confirm_loses_to_concurrent_cancel(db, other_db, cache, service, customer, make_product, add_to_cart, monkeypatch):
    p = make_product("P", stock=5)
    p_id = p.id
    customer_id = customer.id
    add_to_cart(customer, p, 2)
    order = service.place_order(customer_id)

    load_order = service.repo.get_order

    def load_then_customer_cancels(order_id, user_id=None):
        found = load_order(order_id, user_id=user_id)
        OrderService(other_db, cache).cancel_order(customer_id, order_id)
        return found

    monkeypatch.setattr(service.repo, "get_order", load_then_customer_cancels)

    with pytest.raises(InvalidTransition):
        service.admin_update_status(order["id"], OrderStatus.CONFIRMED)

    monkeypatch.undo()
    assert service.get_order(customer_id, order["id"])["status"] == OrderStatus.CANCELLED.value
    assert stock_of(db, p_id) == 5


def test_concurrent_checkouts_cannot_oversell(db, other_db, cache, service, customer, other_customer, make_product, add_to_cart, monkeypatch):
    p = make_product("P", stock=5)
    p_id = p.id
    customer_id, rival_id = customer.id, other_customer.id
    add_to_cart(customer, p, 3)
    add_to_cart(other_customer, p, 3)

    rival = OrderService(other_db, cache)
    load_cart = service.cart_repo.get_cart_with_products

    def load_then_rival_checks_out(user_id):
        cart = load_cart(user_id)
        rival.place_order(rival_id)
        return cart

    monkeypatch.setattr(service.cart_repo, "get_cart_with_products", load_then_rival_checks_out)

    with pytest.raises(TransactionFailed):
        service.place_order(customer_id)

    db.expire_all()
    assert db.query(OrderModel).count() == 1
    assert db.query(OrderModel).one().user_id == rival_id
    assert stock_of(db, p_id) == 2
    assert cart_lines(db, customer_id) == [(p_id, 3)]


def test_quantity_added_during_checkout_aborts_order(db, other_db, service, customer, make_product, add_to_cart, monkeypatch):
    p = make_product("P", stock=10)
    p_id = p.id
    cart_id = add_to_cart(customer, p, 2).id

    load_cart = service.cart_repo.get_cart_with_products

    def load_then_add_more(user_id):
        cart = load_cart(user_id)
        other = CartRepo(other_db)
        assert other.increment_item_quantity(cart_id, p_id, 3, 10) == 1
        other.commit()
        return cart

    monkeypatch.setattr(service.cart_repo, "get_cart_with_products", load_then_add_more)

    with pytest.raises(TransactionFailed):
        service.place_order(customer.id)

    assert db.query(OrderModel).count() == 0
    assert stock_of(db, p_id) == 10
    assert cart_lines(db, customer.id) == [(p_id, 5)]


def test_line_added_during_checkout_stays_in_cart(db, other_db, service, customer, make_product, add_to_cart, monkeypatch):
    p = make_product("P", stock=5)
    q = make_product("Q", stock=5)
    p_id, q_id = p.id, q.id
    cart_id = add_to_cart(customer, p, 2).id

    load_cart = service.cart_repo.get_cart_with_products

    def load_then_add_line(user_id):
        cart = load_cart(user_id)
        other = CartRepo(other_db)
        other.add_cart_item(CartItemModel(cart_id=cart_id, product_id=q_id, quantity=1))
        other.commit()
        return cart

    monkeypatch.setattr(service.cart_repo, "get_cart_with_products", load_then_add_line)

    order = service.place_order(customer.id)

    assert [i["product_id"] for i in order["items"]] == [p_id]
    assert stock_of(db, q_id) == 5
    assert cart_lines(db, customer.id) == [(q_id, 1)]


def test_cached_order_views_keep_their_types(service, customer, make_product, add_to_cart):
    add_to_cart(customer, make_product("P", price="2.50", stock=5), 2)
    service.place_order(customer.id)

    fresh = service.list_user_orders(customer.id)
    cached = service.list_user_orders(customer.id)

    assert cached == fresh
    assert isinstance(cached["orders"][0]["total_amount"], Decimal)
    assert service.order_stats()["total_revenue"] == service.order_stats()["total_revenue"] == Decimal("0.00")
