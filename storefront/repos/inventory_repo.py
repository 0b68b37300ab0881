# storefront/repos/inventory_repo.py
from sqlalchemy import update
from sqlalchemy.orm import Session

from storefront.data.models.inventory import InventoryModel


class InventoryRepo:
    """
    Zmiany stanu magazynu tylko przez warunkowe UPDATE po stronie bazy,
    nigdy read-then-write w aplikacji.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_by_product(self, product_id: int) -> InventoryModel | None:
        return self.db.query(InventoryModel).filter(InventoryModel.product_id == product_id).one_or_none()

    def decrement(self, product_id: int, quantity: int) -> bool:
        # UPDATE inventory SET quantity = quantity - 2 WHERE product_id = 1 AND quantity >= 2
        # 0 rows affected = ktos inny wykupil towar w miedzyczasie
        result = self.db.execute(
            update(InventoryModel)
            .where(
                InventoryModel.product_id == product_id,
                InventoryModel.quantity >= quantity,
            )
            .values(quantity=InventoryModel.quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def increment(self, product_id: int, quantity: int) -> bool:
        result = self.db.execute(
            update(InventoryModel)
            .where(InventoryModel.product_id == product_id)
            .values(quantity=InventoryModel.quantity + quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def set_quantity(self, product_id: int, quantity: int) -> bool:
        result = self.db.execute(
            update(InventoryModel)
            .where(InventoryModel.product_id == product_id)
            .values(quantity=quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
