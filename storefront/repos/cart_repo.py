# storefront/repos/cart_repo.py
from sqlalchemy import select, update, delete
from sqlalchemy.orm import Session, joinedload, selectinload

from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.data.models.product import ProductModel


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_cart_by_user(self, user_id: int) -> CartModel | None:
        return self.db.execute(
            select(CartModel).where(CartModel.user_id == user_id)
        ).scalar_one_or_none()

    def get_cart_with_products(self, user_id: int) -> CartModel | None:
        """
        Koszyk + pozycje + produkty + stan magazynu jednym zapytaniem,
        wszystkie pozycje czytane w tym samym momencie.
        """
        stmt = (
            select(CartModel)
            .where(CartModel.user_id == user_id)
            .options(
                joinedload(CartModel.items)
                .joinedload(CartItemModel.product)
                .joinedload(ProductModel.inventory)
            )
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).unique().scalar_one_or_none()

    def create_cart(self, cart: CartModel) -> CartModel:
        self.db.add(cart)
        self.db.flush()
        return cart

    def get_cart_item(self, cart_id: int, product_id: int) -> CartItemModel | None:
        return self.db.execute(
            select(CartItemModel).where(
                CartItemModel.cart_id == cart_id,
                CartItemModel.product_id == product_id,
            )
        ).scalar_one_or_none()

    def get_user_cart_item(self, user_id: int, item_id: int) -> CartItemModel | None:
        # pozycja tylko jesli nalezy do koszyka tego uzytkownika
        return self.db.execute(
            select(CartItemModel)
            .join(CartModel, CartItemModel.cart_id == CartModel.id)
            .where(CartItemModel.id == item_id, CartModel.user_id == user_id)
            .options(selectinload(CartItemModel.product).selectinload(ProductModel.inventory))
        ).scalar_one_or_none()

    def add_cart_item(self, item: CartItemModel) -> CartItemModel:
        self.db.add(item)
        self.db.flush()
        return item

    def increment_item_quantity(self, cart_id: int, product_id: int, quantity: int, max_quantity: int) -> int:
        # atomowy merge: UPDATE ... SET quantity = quantity + :q WHERE ... AND quantity + :q <= :max
        result = self.db.execute(
            update(CartItemModel)
            .where(
                CartItemModel.cart_id == cart_id,
                CartItemModel.product_id == product_id,
                CartItemModel.quantity + quantity <= max_quantity,
            )
            .values(quantity=CartItemModel.quantity + quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def delete_cart_item(self, item: CartItemModel) -> None:
        self.db.delete(item)

    def clear_items(self, cart_id: int) -> int:
        result = self.db.execute(
            delete(CartItemModel)
            .where(CartItemModel.cart_id == cart_id)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    def delete_ordered_item(self, item_id: int, quantity: int) -> bool:
        # usuwa pozycje tylko jesli nie zmienila sie od odczytu koszyka
        result = self.db.execute(
            delete(CartItemModel)
            .where(CartItemModel.id == item_id, CartItemModel.quantity == quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def delete_items_for_product(self, product_id: int) -> int:
        result = self.db.execute(
            delete(CartItemModel)
            .where(CartItemModel.product_id == product_id)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
