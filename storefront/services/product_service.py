# storefront/services/product_service.py
from typing import Any, Dict

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.data.models.inventory import InventoryModel
from storefront.data.models.product import ProductModel
from storefront.data.unit_of_work import UnitOfWork
from storefront.domain.errors import InvalidOperation, NotFound, TransactionFailed
from storefront.domain.schemas import (
    CategoryProductsOut,
    InventoryOut,
    ProductCreate,
    ProductListOut,
    ProductOut,
    ProductQuery,
    ProductUpdate,
    SearchOut,
)
from storefront.repos.cart_repo import CartRepo
from storefront.repos.category_repo import CategoryRepo
from storefront.repos.inventory_repo import InventoryRepo
from storefront.repos.product_repo import ProductRepo
from storefront.services.cache_service import CacheService
from storefront.services.projections import pagination, product_to_dict
from storefront.utils import settings
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class ProductService:
    """
    Katalog produktow + stan magazynu.

    query: odczyt przez cache (read-through)
    commands: zapis do bazy, po commit invalidacja wszystkich widokow produktu
    """

    def __init__(self, db: Session, cache: CacheService):
        self.db = db
        self.cache = cache
        self.repo = ProductRepo(db)
        self.category_repo = CategoryRepo(db)
        self.inventory_repo = InventoryRepo(db)
        self.cart_repo = CartRepo(db)

    #query
    def get_product(self, product_id: int) -> Dict[str, Any]:
        def load():
            product = self.repo.get_product(product_id)
            if not product:
                raise NotFound("Product not found")
            return product_to_dict(product)

        return self.cache.remember(
            CacheService.product_key(product_id), settings.CACHE_TTL_PRODUCT, load, ProductOut
        )

    def list_products(self, query: ProductQuery) -> Dict[str, Any]:
        def load():
            products, total = self.repo.find(
                page=query.page,
                limit=query.limit,
                is_active=query.is_active,
                category_id=query.category_id,
                search=query.search,
                min_price=query.min_price,
                max_price=query.max_price,
                sort_by=query.sort_by,
                sort_order=query.sort_order,
            )
            return {
                "products": [product_to_dict(p) for p in products],
                "pagination": pagination(query.page, query.limit, total),
            }

        return self.cache.remember(
            CacheService.products_list_key(query), settings.CACHE_TTL_PRODUCT_LIST, load, ProductListOut
        )

    def list_by_category(self, category_id: int, page: int = 1, limit: int = 10) -> Dict[str, Any]:
        def load():
            category = self.category_repo.get_category(category_id)
            if not category:
                raise NotFound("Category not found")

            products, total = self.repo.find(
                page=page, limit=limit, is_active=True, category_id=category_id
            )
            return {
                "category": category.name,
                "products": [product_to_dict(p) for p in products],
                "pagination": pagination(page, limit, total),
            }

        return self.cache.remember(
            CacheService.category_products_key(category_id, page, limit),
            settings.CACHE_TTL_CATEGORY_PRODUCTS,
            load,
            CategoryProductsOut,
        )

    def search(self, q: str, page: int = 1, limit: int = 10) -> Dict[str, Any]:
        term = (q or "").strip()
        if len(term) < 2:
            raise InvalidOperation("Search query must be at least 2 characters")

        def load():
            products, total = self.repo.find(
                page=page,
                limit=limit,
                is_active=True,
                search=term,
                search_category_name=True,
            )
            return {
                "query": term.lower(),
                "products": [product_to_dict(p) for p in products],
                "pagination": pagination(page, limit, total),
            }

        return self.cache.remember(
            CacheService.search_key(term, page, limit), settings.CACHE_TTL_SEARCH, load, SearchOut
        )

    def get_inventory(self, product_id: int) -> Dict[str, Any]:
        def load():
            inventory = self.inventory_repo.get_by_product(product_id)
            if not inventory:
                raise NotFound("Product not found")
            return {
                "product_id": inventory.product_id,
                "quantity": inventory.quantity,
                "updated_at": inventory.updated_at,
            }

        return self.cache.remember(
            CacheService.inventory_key(product_id), settings.CACHE_TTL_INVENTORY, load, InventoryOut
        )

    #commands
    def create_product(self, payload: ProductCreate) -> Dict[str, Any]:
        if not self.category_repo.get_category(payload.category_id):
            raise NotFound("Category not found")

        # produkt i stan magazynu razem albo wcale
        with UnitOfWork(self.db) as uow:
            try:
                product = ProductModel(
                    name=payload.name,
                    description=payload.description,
                    price=payload.price,
                    image_url=payload.image_url,
                    category_id=payload.category_id,
                    is_active=payload.is_active,
                    inventory=InventoryModel(quantity=payload.initial_quantity),
                )
                self.repo.add(product)
                uow.commit()
            except SQLAlchemyError as e:
                logger.error(f"Failed to create product {payload.name}: {e}")
                raise TransactionFailed() from e

        logger.info(f"Product {product.id} created with {payload.initial_quantity} units in stock")

        self.cache.invalidate_product(product.id)
        self.cache.invalidate_categories()

        return product_to_dict(self.repo.get_product(product.id))

    def update_product(self, product_id: int, patch: ProductUpdate) -> Dict[str, Any]:
        product = self.repo.get_product(product_id)
        if not product:
            raise NotFound("Product not found")

        changes = patch.changes()

        if "category_id" in changes and not self.category_repo.get_category(changes["category_id"]):
            raise NotFound("Category not found")

        # patch pole po polu, jeden zapis
        for field, value in changes.items():
            setattr(product, field, value)

        try:
            self.repo.commit()
        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.error(f"Failed to update product {product_id}: {e}")
            raise TransactionFailed() from e

        logger.info(f"Product {product_id} updated: {sorted(changes)}")

        self.cache.invalidate_product(product_id)
        if {"category_id", "is_active"} & changes.keys():
            self.cache.invalidate_categories()

        return product_to_dict(self.repo.get_product(product_id))

    def delete_product(self, product_id: int) -> None:
        product = self.repo.get_product(product_id)
        if not product:
            raise NotFound("Product not found")

        if self.repo.is_ordered(product_id):
            raise InvalidOperation("Cannot delete a product that has been ordered, deactivate it instead")

        with UnitOfWork(self.db) as uow:
            try:
                self.cart_repo.delete_items_for_product(product_id)
                self.repo.delete(product)
                uow.commit()
            except SQLAlchemyError as e:
                logger.error(f"Failed to delete product {product_id}: {e}")
                raise TransactionFailed() from e

        logger.info(f"Product {product_id} deleted")

        self.cache.invalidate_product(product_id)
        self.cache.invalidate_categories()

    def set_inventory(self, product_id: int, quantity: int) -> Dict[str, Any]:
        if quantity < 0:
            raise InvalidOperation("Quantity cannot be negative")

        if not self.repo.get_product(product_id):
            raise NotFound("Product not found")

        try:
            self.inventory_repo.set_quantity(product_id, quantity)
            self.repo.commit()
        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.error(f"Failed to update inventory for product {product_id}: {e}")
            raise TransactionFailed() from e

        logger.info(f"Inventory for product {product_id} set to {quantity}")

        self.cache.invalidate_stock([product_id])

        inventory = self.inventory_repo.get_by_product(product_id)
        return {
            "product_id": inventory.product_id,
            "quantity": inventory.quantity,
            "updated_at": inventory.updated_at,
        }
