# storefront/services/category_service.py
from typing import Any, Dict, List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.data.models.category import CategoryModel
from storefront.domain.errors import Conflict, InvalidOperation, NotFound
from storefront.domain.schemas import CategoryCreate, CategoryOut, CategoryUpdate
from storefront.repos.category_repo import CategoryRepo
from storefront.services.cache_service import CacheService
from storefront.utils import settings
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def category_to_dict(category: CategoryModel, product_count: int) -> Dict[str, Any]:
    return {
        "id": category.id,
        "name": category.name,
        "description": category.description,
        "image_url": category.image_url,
        "product_count": product_count,
        "created_at": category.created_at,
    }


class CategoryService:
    def __init__(self, db: Session, cache: CacheService):
        self.repo = CategoryRepo(db)
        self.cache = cache

    def list_categories(self) -> List[Dict[str, Any]]:
        def load():
            return [
                category_to_dict(category, count)
                for category, count in self.repo.list_with_counts()
            ]

        return self.cache.remember(
            CacheService.CATEGORIES_KEY, settings.CACHE_TTL_CATEGORY, load, List[CategoryOut]
        )

    def get_category(self, category_id: int) -> Dict[str, Any]:
        def load():
            category = self.repo.get_category(category_id)
            if not category:
                raise NotFound("Category not found")
            return category_to_dict(category, self.repo.count_active_products(category_id))

        return self.cache.remember(
            CacheService.category_key(category_id), settings.CACHE_TTL_CATEGORY, load, CategoryOut
        )

    def create_category(self, payload: CategoryCreate) -> Dict[str, Any]:
        name = payload.name.strip().upper()

        if self.repo.get_by_name(name):
            raise Conflict("This category is already in the database")

        category = CategoryModel(
            name=name,
            description=payload.description,
            image_url=payload.image_url,
        )
        try:
            self.repo.add(category)
            self.repo.commit()
        except IntegrityError as e:
            # rownolegle utworzenie kategorii o tej samej nazwie
            self.repo.rollback()
            raise Conflict("This category is already in the database") from e

        logger.info(f"Category {category.id} ({name}) created")

        self._invalidate()
        return category_to_dict(category, 0)

    def update_category(self, category_id: int, patch: CategoryUpdate) -> Dict[str, Any]:
        category = self.repo.get_category(category_id)
        if not category:
            raise NotFound("Category not found")

        changes = patch.model_dump(exclude_unset=True)
        if "name" in changes:
            changes["name"] = changes["name"].strip().upper()
            if self.repo.get_by_name(changes["name"], exclude_id=category_id):
                raise Conflict("This category name is already in use")

        for field, value in changes.items():
            setattr(category, field, value)

        try:
            self.repo.commit()
        except IntegrityError as e:
            self.repo.rollback()
            raise Conflict("This category name is already in use") from e

        logger.info(f"Category {category_id} updated: {sorted(changes)}")

        self._invalidate()
        return category_to_dict(category, self.repo.count_active_products(category_id))

    def delete_category(self, category_id: int) -> None:
        category = self.repo.get_category(category_id)
        if not category:
            raise NotFound("Category not found")

        if self.repo.count_products(category_id) > 0:
            raise InvalidOperation("Cannot delete category with existing products")

        self.repo.delete(category)
        self.repo.commit()

        logger.info(f"Category {category_id} deleted")

        self._invalidate()

    def _invalidate(self) -> None:
        # nazwa kategorii jest w kazdym widoku produktu
        self.cache.invalidate_categories()
        self.cache.invalidate_all_product_caches()
