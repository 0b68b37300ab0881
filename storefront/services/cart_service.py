# storefront/services/cart_service.py
from decimal import Decimal
from typing import Dict, Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.domain.errors import InvalidOperation, NotFound
from storefront.repos.cart_repo import CartRepo
from storefront.repos.product_repo import ProductRepo
from storefront.services.projections import money
from storefront.utils.settings import MAX_CART_ITEM_QUANTITY
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class CartService:
    """
    Koszyk uzytkownika (jeden na usera, tworzony przy pierwszym dodaniu).
    commands (add, update, remove, clear) modyfikuja stan
    query (get, summary) tylko odczyt, zawsze z bazy
    """

    def __init__(self, db: Session):
        self.repo = CartRepo(db)
        self.product_repo = ProductRepo(db)

    #query - odczyt
    def get_cart(self, user_id: int) -> Dict[str, Any]:
        cart = self.repo.get_cart_with_products(user_id)

        if not cart:
            return {
                "cart_id": None,
                "items": [],
                "total_items": 0,
                "total_amount": Decimal("0.00"),
                "unavailable_items": [],
            }

        items = []
        unavailable = []
        for item in cart.items:
            product = item.product
            available = product.inventory.quantity if product.inventory else 0
            items.append({
                "id": item.id,
                "product_id": product.id,
                "product_name": product.name,
                "price": money(product.price),
                "quantity": item.quantity,
                "is_active": product.is_active,
                "available": available,
            })
            if not product.is_active or available < item.quantity:
                unavailable.append(item.id)

        #dict przeksztalcany w jsona
        return {
            "cart_id": cart.id,
            "items": items,
            "total_items": sum(i["quantity"] for i in items),
            "total_amount": money(sum((i["price"] * i["quantity"] for i in items), Decimal("0.00"))),
            "unavailable_items": unavailable,
        }

    def get_summary(self, user_id: int) -> Dict[str, Any]:
        cart = self.repo.get_cart_with_products(user_id)
        items = cart.items if cart else []

        active = [i for i in items if i.product.is_active]
        return {
            "total_items": sum(i.quantity for i in active),
            "total_amount": money(sum((i.product.price * i.quantity for i in active), Decimal("0.00"))),
            "available_items": len(active),
            "unavailable_items": len(items) - len(active),
        }

    #commands
    def add_item(self, user_id: int, product_id: int, quantity: int) -> Dict[str, Any]:
        # Walidacje
        if quantity <= 0:
            raise InvalidOperation("Quantity must be greater than 0")

        product = self.product_repo.get_product(product_id)

        if not product:
            raise NotFound("Product not found")

        if not product.is_active:
            raise InvalidOperation("Product is not available")

        stock = product.inventory.quantity if product.inventory else 0
        if stock < quantity:
            raise InvalidOperation(f"Only {stock} items available in stock")

        cart_id = self._get_or_create_cart(user_id).id
        limit = min(stock, MAX_CART_ITEM_QUANTITY)

        existing_item = self.repo.get_cart_item(cart_id, product_id)

        if existing_item is None:
            try:
                logger.info(f"Adding product {product_id} to cart {cart_id}")
                self.repo.add_cart_item(
                    CartItemModel(cart_id=cart_id, product_id=product_id, quantity=quantity)
                )
                self.repo.commit()
                return self.get_cart(user_id)
            except IntegrityError:
                # ktos rownolegle dodal ten sam produkt, merge ponizej
                self.repo.rollback()

        # merge z istniejaca pozycja atomowo w bazie, nie read-then-write
        rowcount = self.repo.increment_item_quantity(cart_id, product_id, quantity, limit)

        if rowcount == 0:
            self.repo.rollback()
            item = self.repo.get_cart_item(cart_id, product_id)
            current = item.quantity if item else 0
            raise InvalidOperation(
                f"Cannot add {quantity} more items. Only {max(limit - current, 0)} more available"
            )

        self.repo.commit()
        logger.info(f"Increased quantity of product {product_id} in cart {cart_id} by {quantity}")

        return self.get_cart(user_id)

    def update_item(self, user_id: int, item_id: int, quantity: int) -> Dict[str, Any]:
        if quantity <= 0:
            raise InvalidOperation("Quantity must be greater than 0")

        item = self.repo.get_user_cart_item(user_id, item_id)

        if not item:
            raise NotFound("Cart item not found")

        stock = item.product.inventory.quantity if item.product.inventory else 0
        if stock < quantity:
            raise InvalidOperation(f"Only {stock} items available in stock")

        item.quantity = quantity
        self.repo.commit()

        return self.get_cart(user_id)

    def remove_item(self, user_id: int, item_id: int) -> Dict[str, Any]:
        item = self.repo.get_user_cart_item(user_id, item_id)

        if not item:
            raise NotFound("Cart item not found")

        logger.info(f"Removing cart item {item_id} for user {user_id}")

        self.repo.delete_cart_item(item)
        self.repo.commit()

        return self.get_cart(user_id)

    def clear(self, user_id: int) -> Dict[str, Any]:
        cart = self.repo.get_cart_by_user(user_id)

        if not cart:
            raise NotFound("Cart not found")

        # koszyk zostaje, usuwamy tylko pozycje
        self.repo.clear_items(cart.id)
        self.repo.commit()

        return self.get_cart(user_id)

    def _get_or_create_cart(self, user_id: int) -> CartModel:
        cart = self.repo.get_cart_by_user(user_id)
        if cart:
            return cart

        try:
            cart = self.repo.create_cart(CartModel(user_id=user_id))
            self.repo.commit()
            logger.info(f"Created cart {cart.id} for user {user_id}")
            return cart
        except IntegrityError:
            self.repo.rollback()
            return self.repo.get_cart_by_user(user_id)
