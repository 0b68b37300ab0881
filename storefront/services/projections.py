# storefront/services/projections.py
"""Ksztaltowanie odpowiedzi: modele ORM -> dict (te same dicty trafiaja do cache)."""
from decimal import Decimal, ROUND_HALF_UP
from math import ceil
from typing import Any, Dict

from storefront.data.models.order import OrderModel
from storefront.data.models.product import ProductModel

CENT = Decimal("0.01")


def money(value) -> Decimal:
    # zawsze Decimal, nigdy float
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def pagination(page: int, limit: int, total: int) -> Dict[str, Any]:
    total_pages = ceil(total / limit) if limit else 0
    return {
        "current_page": page,
        "total_pages": total_pages,
        "total_count": total,
        "limit": limit,
        "has_next": page < total_pages,
        "has_prev": page > 1,
    }


def product_to_dict(product: ProductModel) -> Dict[str, Any]:
    return {
        "id": product.id,
        "name": product.name,
        "description": product.description,
        "price": money(product.price),
        "image_url": product.image_url,
        "is_active": product.is_active,
        "category_id": product.category_id,
        "category_name": product.category.name if product.category else None,
        "quantity": product.inventory.quantity if product.inventory else 0,
        "created_at": product.created_at,
        "updated_at": product.updated_at,
    }


def order_to_dict(order: OrderModel) -> Dict[str, Any]:
    return {
        "id": order.id,
        "user_id": order.user_id,
        "status": order.status,
        "total_amount": money(order.total_amount),
        "shipping_address": order.shipping_address,
        "notes": order.notes,
        "items": [
            {
                "id": item.id,
                "product_id": item.product_id,
                "product_name": item.product.name if item.product else None,
                "quantity": item.quantity,
                "price": money(item.price),
            }
            for item in order.items
        ],
        "created_at": order.created_at,
        "updated_at": order.updated_at,
    }
