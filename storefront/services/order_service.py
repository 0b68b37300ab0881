# storefront/services/order_service.py
from decimal import Decimal
from typing import Any, Dict, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel
from storefront.data.models.order_item import OrderItemModel
from storefront.data.unit_of_work import UnitOfWork
from storefront.domain.errors import (
    EmptyCart,
    InvalidTransition,
    NotFound,
    OrderRejected,
    TransactionFailed,
)
from storefront.domain.order_status import OrderStatus, REVENUE_STATUSES, can_transition
from storefront.domain.schemas import OrderListOut, OrderStatsOut
from storefront.repos.cart_repo import CartRepo
from storefront.repos.inventory_repo import InventoryRepo
from storefront.repos.order_repo import OrderRepo
from storefront.services.cache_service import CacheService
from storefront.services.projections import money, order_to_dict, pagination
from storefront.utils import settings
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class OrderService:
    """
    Zamowienia: zamiana koszyka na zamowienie, anulowanie, zmiany statusu.

    Stan magazynu zawsze czytany z bazy, nigdy z cache.
    Cache jest czyszczony dopiero po commit.
    """

    def __init__(self, db: Session, cache: CacheService):
        self.db = db
        self.cache = cache
        self.repo = OrderRepo(db)
        self.cart_repo = CartRepo(db)
        self.inventory_repo = InventoryRepo(db)

    # commands

    def place_order(
        self,
        user_id: int,
        shipping_address: str | None = None,
        notes: str | None = None,
    ) -> Dict[str, Any]:
        """
        Use Case: Tworzenie zamówienia z koszyka.

        1. Czyta koszyk z produktami i stanem magazynu (jeden odczyt)
        2. Odrzuca cale zamowienie jesli choc jedna pozycja jest niedostepna
        3. W jednej transakcji: warunkowy decrement magazynu, zamowienie + pozycje,
           czyszczenie koszyka
        4. Po commit czysci cache
        """
        with UnitOfWork(self.db) as uow:
            cart = self.cart_repo.get_cart_with_products(user_id)

            if not cart or not cart.items:
                raise EmptyCart()

            fulfillable, unavailable = self._partition(cart.items)

            if unavailable:
                logger.info(
                    f"Order rejected for user {user_id}: "
                    f"{len(unavailable)} unavailable item(s)"
                )
                raise OrderRejected(unavailable)

            if not fulfillable:
                raise EmptyCart("No valid items to order")

            lines = [
                {
                    "product_id": item.product_id,
                    "quantity": item.quantity,
                    "price": money(item.product.price),
                }
                for item in fulfillable
            ]
            total = money(sum((line["price"] * line["quantity"] for line in lines), Decimal("0.00")))
            # pozycje koszyka dokladnie w takim stanie, w jakim zostaly przeczytane
            snapshot = [(item.id, item.quantity) for item in fulfillable]

            try:
                for line in lines:
                    if not self.inventory_repo.decrement(line["product_id"], line["quantity"]):
                        logger.warning(
                            f"Lost inventory race on product {line['product_id']} "
                            f"for user {user_id}"
                        )
                        raise TransactionFailed(
                            "Stock changed while placing the order, please retry"
                        )

                order = OrderModel(
                    user_id=user_id,
                    status=OrderStatus.PENDING.value,
                    total_amount=total,
                    shipping_address=shipping_address,
                    notes=notes,
                    items=[OrderItemModel(**line) for line in lines],
                )
                self.repo.create_order(order)
                for item_id, quantity in snapshot:
                    if not self.cart_repo.delete_ordered_item(item_id, quantity):
                        logger.warning(f"Cart item {item_id} changed while placing the order for user {user_id}")
                        raise TransactionFailed(
                            "Cart changed while placing the order, please retry"
                        )

                uow.commit()
            except SQLAlchemyError as e:
                logger.error(f"Order transaction failed for user {user_id}: {e}")
                raise TransactionFailed() from e

        logger.info(f"Order {order.id} created for user {user_id}, total {total}")

        self.cache.invalidate_stock(line["product_id"] for line in lines)
        self._invalidate_order_views(user_id)

        return self._load(order.id)

    def cancel_order(self, user_id: int, order_id: int) -> Dict[str, Any]:
        with UnitOfWork(self.db) as uow:
            order = self.repo.get_order(order_id, user_id=user_id)

            if not order:
                raise NotFound("Order not found")

            if order.status != OrderStatus.PENDING.value:
                raise InvalidTransition("Can only cancel pending orders")

            product_ids = self._cancel(order, uow)

        logger.info(f"Order {order_id} cancelled by user {user_id}")

        self.cache.invalidate_stock(product_ids)
        self._invalidate_order_views(user_id)

        return self._load(order_id)

    def admin_update_status(self, order_id: int, new_status: OrderStatus) -> Dict[str, Any]:
        new_status = OrderStatus(new_status)

        with UnitOfWork(self.db) as uow:
            order = self.repo.get_order(order_id)

            if not order:
                raise NotFound("Order not found")

            current = OrderStatus(order.status)
            if not can_transition(current, new_status):
                raise InvalidTransition(
                    f"Cannot change order status from {current.value} to {new_status.value}"
                )

            user_id = order.user_id
            product_ids: List[int] = []

            if new_status == OrderStatus.CANCELLED:
                product_ids = self._cancel(order, uow)
            else:
                try:
                    if not self.repo.update_status(order_id, current.value, new_status.value):
                        raise InvalidTransition(
                            f"Order {order_id} status changed concurrently, please retry"
                        )
                    uow.commit()
                except SQLAlchemyError as e:
                    logger.error(f"Status update failed for order {order_id}: {e}")
                    raise TransactionFailed() from e

        logger.info(f"Order {order_id} status {current.value} -> {new_status.value}")

        if product_ids:
            self.cache.invalidate_stock(product_ids)
        self._invalidate_order_views(user_id)

        return self._load(order_id)

    # queries

    def get_order(self, user_id: int, order_id: int) -> Dict[str, Any]:
        # zawsze z bazy, wlasnosc zamowienia sprawdzana w zapytaniu
        order = self.repo.get_order(order_id, user_id=user_id)
        if not order:
            raise NotFound("Order not found")
        return order_to_dict(order)

    def list_user_orders(
        self,
        user_id: int,
        page: int = 1,
        limit: int = 10,
        status: OrderStatus | None = None,
    ) -> Dict[str, Any]:
        status_value = status.value if status else None
        key = CacheService.user_orders_key(user_id, page, limit, status_value)

        def load():
            orders, total = self.repo.list_orders(
                page=page, limit=limit, status=status_value, user_id=user_id
            )
            return {
                "orders": [order_to_dict(o) for o in orders],
                "pagination": pagination(page, limit, total),
            }

        return self.cache.remember(key, settings.CACHE_TTL_USER_ORDERS, load, OrderListOut)

    def list_all_orders(
        self,
        page: int = 1,
        limit: int = 10,
        status: OrderStatus | None = None,
        user_id: int | None = None,
    ) -> Dict[str, Any]:
        orders, total = self.repo.list_orders(
            page=page,
            limit=limit,
            status=status.value if status else None,
            user_id=user_id,
        )
        return {
            "orders": [order_to_dict(o) for o in orders],
            "pagination": pagination(page, limit, total),
        }

    def order_stats(self) -> Dict[str, Any]:
        def load():
            breakdown = [
                {"status": status, "count": count, "total_amount": money(amount)}
                for status, count, amount in self.repo.status_breakdown()
            ]
            return {
                "status_breakdown": breakdown,
                "total_orders": self.repo.count_orders(),
                "total_revenue": money(
                    self.repo.revenue([s.value for s in REVENUE_STATUSES])
                ),
            }

        return self.cache.remember(
            CacheService.ORDER_STATS_KEY, settings.CACHE_TTL_ORDER_STATS, load, OrderStatsOut
        )

    # helpers

    @staticmethod
    def _partition(items):
        fulfillable = []
        unavailable = []

        for item in items:
            product = item.product
            available = product.inventory.quantity if product.inventory else 0

            if not product.is_active:
                unavailable.append({
                    "product_id": product.id,
                    "product_name": product.name,
                    "reason": "not-available",
                    "available": available,
                    "requested": item.quantity,
                })
                continue

            if available < item.quantity:
                unavailable.append({
                    "product_id": product.id,
                    "product_name": product.name,
                    "reason": "insufficient-stock",
                    "available": available,
                    "requested": item.quantity,
                })
                continue

            fulfillable.append(item)

        return fulfillable, unavailable

    def _cancel(self, order: OrderModel, uow: UnitOfWork) -> List[int]:
        """Status CANCELLED + zwrot towaru na magazyn, w jednej transakcji."""
        order_id = order.id
        expected = order.status
        items = [(item.product_id, item.quantity) for item in order.items]

        try:
            # najpierw warunkowa zmiana statusu, towar wraca tylko raz
            if not self.repo.update_status(order_id, expected, OrderStatus.CANCELLED.value):
                raise InvalidTransition(
                    f"Order {order_id} status changed concurrently, please retry"
                )
            for product_id, quantity in items:
                if not self.inventory_repo.increment(product_id, quantity):
                    raise TransactionFailed(
                        f"Inventory record missing for product {product_id}"
                    )
            uow.commit()
        except SQLAlchemyError as e:
            logger.error(f"Cancellation failed for order {order_id}: {e}")
            raise TransactionFailed() from e

        return [product_id for product_id, _ in items]

    def _invalidate_order_views(self, user_id: int) -> None:
        self.cache.invalidate_user_orders(user_id)
        self.cache.invalidate_order_stats()

    def _load(self, order_id: int) -> Dict[str, Any]:
        order = self.repo.get_order(order_id)
        return order_to_dict(order)
