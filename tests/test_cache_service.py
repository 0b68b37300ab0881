from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
import redis

from storefront.domain.schemas import InventoryOut, ProductQuery
from storefront.services.cache_service import CacheService


@pytest.fixture
def broken_cache():
    client = MagicMock()
    error = redis.ConnectionError("connection refused")
    client.get.side_effect = error
    client.set.side_effect = error
    client.delete.side_effect = error
    client.scan_iter.side_effect = error
    return CacheService(client=client, retry_attempts=2), client


def seed(redis_client, *keys):
    for key in keys:
        redis_client.set(key, "{}")


def test_set_and_get_json_with_ttl(cache, redis_client):
    cache.set("product:1", {"id": 1, "price": Decimal("9.99")}, ttl=60)

    assert cache.get("product:1") == {"id": 1, "price": "9.99"}
    assert 0 < redis_client.ttl("product:1") <= 60


def test_get_missing_key_returns_none(cache):
    assert cache.get("product:404") is None


@pytest.mark.parametrize("ttl", [0, -5])
def test_set_rejects_non_positive_ttl(cache, redis_client, ttl):
    with pytest.raises(ValueError):
        cache.set("product:1", {"id": 1}, ttl=ttl)

    assert redis_client.exists("product:1") == 0


def test_undecodable_entry_is_dropped(cache, redis_client):
    redis_client.set("product:1", "{not json")

    assert cache.get("product:1") is None
    assert redis_client.exists("product:1") == 0


def test_remember_loads_once(cache):
    loader = MagicMock(return_value={"id": 7})

    first = cache.remember("product:7", 60, loader)
    second = cache.remember("product:7", 60, loader)

    assert first == second == {"id": 7}
    loader.assert_called_once()


def test_remember_with_schema_returns_same_types_on_hit_and_miss(cache):
    stamp = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    loader = MagicMock(return_value={"product_id": 3, "quantity": 4, "updated_at": stamp})

    miss = cache.remember("inventory:3", 60, loader, InventoryOut)
    hit = cache.remember("inventory:3", 60, loader, InventoryOut)

    assert miss == hit == {"product_id": 3, "quantity": 4, "updated_at": stamp}
    loader.assert_called_once()


def test_remember_does_not_cache_loader_errors(cache, redis_client):
    def failing():
        raise LookupError("missing")

    with pytest.raises(LookupError):
        cache.remember("product:9", 60, failing)

    assert redis_client.exists("product:9") == 0


def test_product_list_key_is_stable_for_equivalent_queries():
    a = ProductQuery(search="  Mouse ", min_price=Decimal("10"))
    b = ProductQuery(search="mouse", min_price=Decimal("10.00"))

    assert CacheService.products_list_key(a) == CacheService.products_list_key(b)
    assert CacheService.products_list_key(a) == "products:1:10:all:mouse:10:max:true:created_at:desc"


def test_product_list_key_depends_on_every_filter():
    base = ProductQuery()
    variants = [
        ProductQuery(page=2),
        ProductQuery(limit=20),
        ProductQuery(category_id=3),
        ProductQuery(search="desk"),
        ProductQuery(min_price=Decimal("1")),
        ProductQuery(max_price=Decimal("99")),
        ProductQuery(is_active=False),
        ProductQuery(sort_by="price"),
        ProductQuery(sort_order="asc"),
    ]

    keys = {CacheService.products_list_key(q) for q in variants}

    assert CacheService.products_list_key(base) not in keys
    assert len(keys) == len(variants)


def test_key_builders():
    assert CacheService.product_key(5) == "product:5"
    assert CacheService.inventory_key(5) == "inventory:5"
    assert CacheService.category_key(2) == "category:2"
    assert CacheService.category_products_key(2, 1, 10) == "category:2:products:1:10"
    assert CacheService.search_key(" Desk ", 1, 10) == "search:desk:1:10"
    assert CacheService.user_orders_key(3, 1, 10, None) == "orders:3:1:10:all"
    assert CacheService.user_orders_key(3, 1, 10, "PENDING") == "orders:3:1:10:PENDING"


def test_delete_pattern_counts_deleted_keys(cache, redis_client):
    seed(redis_client, "search:a:1:10", "search:b:1:10", "product:1")

    assert cache.delete_pattern("search:*") == 2
    assert cache.delete_pattern("search:*") == 0
    assert redis_client.exists("product:1") == 1


def test_invalidate_product(cache, redis_client):
    seed(
        redis_client,
        "product:1", "inventory:1", "product:2", "inventory:2",
        "products:1:10:all:none:min:max:true:created_at:desc",
        "search:desk:1:10", "category:4:products:1:10",
        "category:4", "categories:all",
    )

    cache.invalidate_product(1)

    remaining = set(redis_client.keys("*"))
    assert remaining == {"product:2", "inventory:2", "category:4", "categories:all"}


def test_invalidate_stock(cache, redis_client):
    seed(redis_client, "product:1", "inventory:1", "product:2", "inventory:2", "product:3", "search:x:1:10")

    cache.invalidate_stock([1, 2, 2])

    assert set(redis_client.keys("*")) == {"product:3"}


def test_invalidate_categories(cache, redis_client):
    seed(redis_client, "categories:all", "category:1", "category:1:products:1:10", "product:1")

    cache.invalidate_categories()

    assert set(redis_client.keys("*")) == {"product:1"}


def test_invalidate_all_product_caches(cache, redis_client):
    seed(
        redis_client,
        "product:1", "product:2", "inventory:1", "products:1:10:x",
        "search:q:1:10", "category:1:products:1:10",
        "category:1", "orders:1:1:10:all",
    )

    cache.invalidate_all_product_caches()

    assert set(redis_client.keys("*")) == {"category:1", "orders:1:1:10:all"}


def test_invalidate_user_orders_is_scoped_to_user(cache, redis_client):
    seed(redis_client, "orders:1:1:10:all", "orders:1:2:10:PENDING", "orders:11:1:10:all", "stats:orders")

    cache.invalidate_user_orders(1)

    assert set(redis_client.keys("*")) == {"orders:11:1:10:all", "stats:orders"}

    cache.invalidate_order_stats()
    assert redis_client.exists("stats:orders") == 0


def test_redis_errors_are_swallowed(broken_cache):
    cache, _ = broken_cache

    assert cache.get("product:1") is None
    cache.set("product:1", {"id": 1}, ttl=60)
    cache.delete("product:1")
    assert cache.delete_pattern("product:*") == 0
    cache.invalidate_all_product_caches()


def test_redis_calls_are_retried(broken_cache):
    cache, client = broken_cache

    cache.get("product:1")

    assert client.get.call_count == 2


def test_remember_falls_back_to_loader_when_redis_is_down(broken_cache):
    cache, _ = broken_cache
    loader = MagicMock(return_value={"id": 1})

    assert cache.remember("product:1", 60, loader) == {"id": 1}
    assert cache.remember("product:1", 60, loader) == {"id": 1}
    assert loader.call_count == 2
