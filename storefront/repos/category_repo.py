# storefront/repos/category_repo.py
from sqlalchemy import select, func
from sqlalchemy.orm import Session

from storefront.data.models.category import CategoryModel
from storefront.data.models.product import ProductModel


class CategoryRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_category(self, category_id: int) -> CategoryModel | None:
        return self.db.get(CategoryModel, category_id)

    def get_by_name(self, name: str, exclude_id: int | None = None) -> CategoryModel | None:
        stmt = select(CategoryModel).where(func.lower(CategoryModel.name) == name.lower())
        if exclude_id is not None:
            stmt = stmt.where(CategoryModel.id != exclude_id)
        return self.db.execute(stmt).scalars().first()

    def list_with_counts(self) -> list[tuple[CategoryModel, int]]:
        # liczba aktywnych produktow w kategorii
        active_count = (
            select(func.count(ProductModel.id))
            .where(ProductModel.category_id == CategoryModel.id, ProductModel.is_active.is_(True))
            .correlate(CategoryModel)
            .scalar_subquery()
        )
        rows = self.db.execute(
            select(CategoryModel, active_count).order_by(CategoryModel.name.asc())
        ).all()
        return [(category, count) for category, count in rows]

    def count_active_products(self, category_id: int) -> int:
        return self.db.execute(
            select(func.count(ProductModel.id)).where(
                ProductModel.category_id == category_id,
                ProductModel.is_active.is_(True),
            )
        ).scalar_one()

    def count_products(self, category_id: int) -> int:
        return self.db.execute(
            select(func.count(ProductModel.id)).where(ProductModel.category_id == category_id)
        ).scalar_one()

    def add(self, category: CategoryModel) -> CategoryModel:
        self.db.add(category)
        self.db.flush()
        return category

    def delete(self, category: CategoryModel) -> None:
        self.db.delete(category)

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
