# storefront/services/cache_service.py
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Iterable

import redis
from pydantic import TypeAdapter
from redis.exceptions import RedisError

from storefront.utils import settings
from storefront.utils.logging import get_logger
from storefront.utils.retry import redis_retry

logger = get_logger(__name__)


class CacheJSONEncoder(json.JSONEncoder):
    def default(self, obj):
        # Decimal jako string, zeby nie gubic precyzji cen
        if isinstance(obj, Decimal):
            return str(obj)
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        return super().default(obj)


def _part(value: Any, default: str) -> str:
    if value is None:
        return default
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, Decimal):
        # 10 i 10.00 to ten sam filtr
        return format(value.normalize(), "f")
    return str(value)


class CacheService:
    """
    Read-through cache nad Redisem.

    - get / set / delete / delete_pattern, kazdy blad Redisa jest logowany i polykany
      (cache nigdy nie psuje requestu, najwyzej wygasa po TTL)
    - klucze: prefix typu encji + parametry zapytania
    - invalidate_* wolane dopiero po commit transakcji
    """

    def __init__(
        self,
        client: redis.Redis | None = None,
        url: str | None = None,
        retry_attempts: int | None = None,
    ):
        self.redis = client if client is not None else redis.Redis.from_url(
            url or settings.REDIS_URL,
            decode_responses=True,
        )
        self._retry = redis_retry(retry_attempts or settings.CACHE_RETRY_ATTEMPTS)

    # ------------------------------------------------------------ primitives

    def get(self, key: str) -> Any | None:
        try:
            raw = self._retry(self.redis.get)(key)
        except RedisError as e:
            logger.warning(f"Cache get error for {key}: {e}")
            return None

        if raw is None:
            return None

        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"Dropping undecodable cache entry {key}")
            self.delete(key)
            return None

    def set(self, key: str, value: Any, ttl: int) -> None:
        if ttl <= 0:
            raise ValueError("Cache TTL must be a positive number of seconds")

        payload = json.dumps(value, cls=CacheJSONEncoder)
        try:
            #SET key value EX ttl, kazdy wpis wygasa sam
            self._retry(self.redis.set)(name=key, value=payload, ex=ttl)
        except RedisError as e:
            logger.warning(f"Cache set error for {key}: {e}")

    def delete(self, key: str) -> None:
        try:
            self._retry(self.redis.delete)(key)
        except RedisError as e:
            logger.warning(f"Cache delete error for {key}: {e}")

    def delete_pattern(self, pattern: str) -> int:
        # SCAN zamiast KEYS, nie blokuje Redisa przy duzej liczbie kluczy
        def _delete() -> int:
            keys = list(self.redis.scan_iter(match=pattern, count=500))
            if not keys:
                return 0
            return self.redis.delete(*keys)

        try:
            deleted = self._retry(_delete)()
        except RedisError as e:
            logger.warning(f"Cache delete pattern error for {pattern}: {e}")
            return 0

        logger.debug(f"Invalidated {deleted} keys matching {pattern}")
        return deleted

    def remember(self, key: str, ttl: int, loader: Callable[[], Any], schema: Any = None) -> Any:
        """
        Read-through: wartosc z cache albo z loadera (i zapis do cache).

        Z podanym schema (model pydantic albo typ typu List[Model]) trafienie
        i chybienie zwracaja te same typy (Decimal, datetime), a nie surowy JSON.
        """
        adapter = TypeAdapter(schema) if schema is not None else None

        cached = self.get(key)
        if cached is not None:
            return adapter.dump_python(adapter.validate_python(cached)) if adapter else cached

        value = loader()
        if adapter:
            value = adapter.dump_python(adapter.validate_python(value))
        self.set(key, value, ttl)
        return value

    # ------------------------------------------------------------ keys

    @staticmethod
    def build_key(prefix: str, *params: Any) -> str:
        return ":".join([prefix, *(str(p) for p in params)])

    @classmethod
    def product_key(cls, product_id: int) -> str:
        return cls.build_key("product", product_id)

    @classmethod
    def products_list_key(cls, query) -> str:
        return cls.build_key(
            "products",
            query.page,
            query.limit,
            _part(query.category_id, "all"),
            _part(query.search.lower() if query.search else None, "none"),
            _part(query.min_price, "min"),
            _part(query.max_price, "max"),
            _part(query.is_active, "true"),
            query.sort_by,
            query.sort_order,
        )

    @classmethod
    def category_key(cls, category_id: int) -> str:
        return cls.build_key("category", category_id)

    @classmethod
    def category_products_key(cls, category_id: int, page: int, limit: int) -> str:
        return cls.build_key("category", category_id, "products", page, limit)

    @classmethod
    def search_key(cls, query: str, page: int, limit: int) -> str:
        return cls.build_key("search", query.strip().lower(), page, limit)

    @classmethod
    def inventory_key(cls, product_id: int) -> str:
        return cls.build_key("inventory", product_id)

    @classmethod
    def user_orders_key(cls, user_id: int, page: int, limit: int, status: str | None) -> str:
        return cls.build_key("orders", user_id, page, limit, _part(status, "all"))

    CATEGORIES_KEY = "categories:all"
    ORDER_STATS_KEY = "stats:orders"

    # ------------------------------------------------------------ invalidation

    def invalidate_product(self, product_id: int) -> None:
        self.delete(self.product_key(product_id))
        self.delete(self.inventory_key(product_id))
        self._invalidate_product_projections()

    def invalidate_stock(self, product_ids: Iterable[int]) -> None:
        # stan magazynu jest w widoku produktu i na listach
        for product_id in set(product_ids):
            self.delete(self.inventory_key(product_id))
            self.delete(self.product_key(product_id))
        self._invalidate_product_projections()

    def invalidate_categories(self) -> None:
        self.delete(self.CATEGORIES_KEY)
        # category:{id} oraz category:{id}:products:*
        self.delete_pattern("category:*")

    def invalidate_all_product_caches(self) -> None:
        self.delete_pattern("product:*")
        self.delete_pattern("inventory:*")
        self._invalidate_product_projections()

    def invalidate_user_orders(self, user_id: int) -> None:
        self.delete_pattern(f"orders:{user_id}:*")

    def invalidate_order_stats(self) -> None:
        self.delete(self.ORDER_STATS_KEY)

    def _invalidate_product_projections(self) -> None:
        self.delete_pattern("products:*")
        self.delete_pattern("category:*:products:*")
        self.delete_pattern("search:*")
