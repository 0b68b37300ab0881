# storefront/api/routers/products.py
from decimal import Decimal
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import ValidationError
from sqlalchemy.orm import Session

from storefront.api.deps import get_cache, require_admin
from storefront.data.database import get_db
from storefront.domain.schemas import (
    CategoryProductsOut,
    InventoryIn,
    InventoryOut,
    MessageOut,
    ProductCreate,
    ProductListOut,
    ProductOut,
    ProductQuery,
    ProductUpdate,
    SearchOut,
)
from storefront.services.cache_service import CacheService
from storefront.services.product_service import ProductService

router = APIRouter(prefix="/products", tags=["products"])


def get_service(db: Session, cache: CacheService):
    return ProductService(db, cache)


def product_query(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    category_id: int | None = Query(None),
    search: str | None = Query(None, max_length=100),
    min_price: Decimal | None = Query(None, gt=0),
    max_price: Decimal | None = Query(None, gt=0),
    is_active: bool = Query(True),
    sort_by: Literal["name", "price", "created_at"] = Query("created_at"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
) -> ProductQuery:
    try:
        return ProductQuery(
            page=page,
            limit=limit,
            category_id=category_id,
            search=search,
            min_price=min_price,
            max_price=max_price,
            is_active=is_active,
            sort_by=sort_by,
            sort_order=sort_order,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.errors()[0]["msg"])


@router.get("", response_model=ProductListOut)
def list_products(
    query: ProductQuery = Depends(product_query),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    return get_service(db, cache).list_products(query)


@router.get("/search", response_model=SearchOut)
def search_products(
    q: str = Query(..., max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    return get_service(db, cache).search(q, page, limit)


@router.get("/category/{category_id}", response_model=CategoryProductsOut)
def list_products_by_category(
    category_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    return get_service(db, cache).list_by_category(category_id, page, limit)


@router.get("/{product_id}", response_model=ProductOut)
def get_product(
    product_id: int,
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    return get_service(db, cache).get_product(product_id)


@router.get("/{product_id}/inventory", response_model=InventoryOut)
def get_inventory(
    product_id: int,
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    return get_service(db, cache).get_inventory(product_id)


@router.post("", response_model=ProductOut, status_code=201, dependencies=[Depends(require_admin)])
def create_product(
    payload: ProductCreate,
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    return get_service(db, cache).create_product(payload)


@router.put("/{product_id}", response_model=ProductOut, dependencies=[Depends(require_admin)])
def update_product(
    product_id: int,
    payload: ProductUpdate,
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    return get_service(db, cache).update_product(product_id, payload)


@router.delete("/{product_id}", response_model=MessageOut, dependencies=[Depends(require_admin)])
def delete_product(
    product_id: int,
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    get_service(db, cache).delete_product(product_id)
    return {"message": "Product deleted successfully"}


@router.patch("/{product_id}/inventory", response_model=InventoryOut, dependencies=[Depends(require_admin)])
def update_inventory(
    product_id: int,
    payload: InventoryIn,
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    return get_service(db, cache).set_inventory(product_id, payload.quantity)
