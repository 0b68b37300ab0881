# storefront/api/routers/categories.py
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import get_cache, require_admin
from storefront.data.database import get_db
from storefront.domain.schemas import CategoryCreate, CategoryOut, CategoryUpdate, MessageOut
from storefront.services.cache_service import CacheService
from storefront.services.category_service import CategoryService

# wszystkie operacje na kategoriach tylko dla admina
router = APIRouter(
    prefix="/categories",
    tags=["categories"],
    dependencies=[Depends(require_admin)],
)


def get_service(db: Session, cache: CacheService):
    return CategoryService(db, cache)


@router.get("", response_model=List[CategoryOut])
def list_categories(db: Session = Depends(get_db), cache: CacheService = Depends(get_cache)):
    return get_service(db, cache).list_categories()


@router.post("", response_model=CategoryOut, status_code=201)
def create_category(
    payload: CategoryCreate,
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    return get_service(db, cache).create_category(payload)


@router.get("/{category_id}", response_model=CategoryOut)
def get_category(
    category_id: int,
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    return get_service(db, cache).get_category(category_id)


@router.put("/{category_id}", response_model=CategoryOut)
def update_category(
    category_id: int,
    payload: CategoryUpdate,
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    return get_service(db, cache).update_category(category_id, payload)


@router.delete("/{category_id}", response_model=MessageOut)
def delete_category(
    category_id: int,
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    get_service(db, cache).delete_category(category_id)
    return {"message": "Category has been deleted"}
