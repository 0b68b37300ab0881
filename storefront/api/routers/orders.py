# storefront/api/routers/orders.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.api.deps import get_cache, get_current_user, require_admin
from storefront.data.database import get_db
from storefront.data.models.user import UserModel
from storefront.domain.order_status import OrderStatus
from storefront.domain.schemas import (
    OrderCreate,
    OrderListOut,
    OrderOut,
    OrderStatsOut,
    OrderStatusUpdate,
)
from storefront.services.cache_service import CacheService
from storefront.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


def get_service(db: Session, cache: CacheService):
    return OrderService(db, cache)


@router.post("", response_model=OrderOut, status_code=201)
def create_order(
    payload: OrderCreate,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """
    Tworzy zamówienie z koszyka zalogowanego użytkownika.
    400 gdy koszyk pusty albo część pozycji jest niedostępna.
    """
    svc = get_service(db, cache)
    return svc.place_order(
        user.id,
        shipping_address=payload.shipping_address,
        notes=payload.notes,
    )


@router.get("/my-orders", response_model=OrderListOut)
def get_my_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: OrderStatus | None = Query(None),
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    return get_service(db, cache).list_user_orders(user.id, page, limit, status)


@router.get("/admin/all", response_model=OrderListOut)
def get_all_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: OrderStatus | None = Query(None),
    user_id: int | None = Query(None),
    _: UserModel = Depends(require_admin),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    return get_service(db, cache).list_all_orders(page, limit, status, user_id)


@router.get("/admin/stats", response_model=OrderStatsOut)
def get_order_stats(
    _: UserModel = Depends(require_admin),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    return get_service(db, cache).order_stats()


@router.patch("/admin/{order_id}/status", response_model=OrderOut)
def update_order_status(
    order_id: int,
    payload: OrderStatusUpdate,
    _: UserModel = Depends(require_admin),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    return get_service(db, cache).admin_update_status(order_id, payload.status)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """
    Pobiera szczegóły zamówienia (tylko własne zamówienia).
    """
    return get_service(db, cache).get_order(user.id, order_id)


@router.delete("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(
    order_id: int,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    return get_service(db, cache).cancel_order(user.id, order_id)
