# storefront/repos/product_repo.py
from decimal import Decimal

from sqlalchemy import select, func, or_
from sqlalchemy.orm import Session, joinedload

from storefront.data.models.category import CategoryModel
from storefront.data.models.order_item import OrderItemModel
from storefront.data.models.product import ProductModel

_SORT_COLUMNS = {
    "name": ProductModel.name,
    "price": ProductModel.price,
    "created_at": ProductModel.created_at,
}


class ProductRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: int) -> ProductModel | None:
        return self.db.execute(
            select(ProductModel)
            .where(ProductModel.id == product_id)
            .options(joinedload(ProductModel.category), joinedload(ProductModel.inventory))
        ).scalar_one_or_none()

    def add(self, product: ProductModel) -> ProductModel:
        self.db.add(product)
        self.db.flush()
        return product

    def delete(self, product: ProductModel) -> None:
        self.db.delete(product)

    def is_ordered(self, product_id: int) -> bool:
        return self.db.execute(
            select(OrderItemModel.id).where(OrderItemModel.product_id == product_id).limit(1)
        ).first() is not None

    def find(
        self,
        *,
        page: int,
        limit: int,
        is_active: bool | None = True,
        category_id: int | None = None,
        search: str | None = None,
        search_category_name: bool = False,
        min_price: Decimal | None = None,
        max_price: Decimal | None = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> tuple[list[ProductModel], int]:
        """Strona produktow + calkowita liczba wynikow dla tych samych filtrow."""
        conditions = []

        if is_active is not None:
            conditions.append(ProductModel.is_active.is_(is_active))
        if category_id is not None:
            conditions.append(ProductModel.category_id == category_id)
        if search:
            pattern = f"%{search.lower()}%"
            matches = [
                func.lower(ProductModel.name).like(pattern),
                func.lower(func.coalesce(ProductModel.description, "")).like(pattern),
            ]
            if search_category_name:
                matches.append(func.lower(CategoryModel.name).like(pattern))
            conditions.append(or_(*matches))
        if min_price is not None:
            conditions.append(ProductModel.price >= min_price)
        if max_price is not None:
            conditions.append(ProductModel.price <= max_price)

        column = _SORT_COLUMNS[sort_by]
        order = column.asc() if sort_order == "asc" else column.desc()

        stmt = (
            select(ProductModel)
            .join(CategoryModel, ProductModel.category_id == CategoryModel.id)
            .where(*conditions)
            .options(joinedload(ProductModel.category), joinedload(ProductModel.inventory))
            .order_by(order, ProductModel.id.asc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        count_stmt = (
            select(func.count(ProductModel.id))
            .join(CategoryModel, ProductModel.category_id == CategoryModel.id)
            .where(*conditions)
        )

        products = list(self.db.execute(stmt).unique().scalars().all())
        total = self.db.execute(count_stmt).scalar_one()
        return products, total

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
