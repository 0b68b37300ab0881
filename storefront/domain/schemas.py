# storefront/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict, model_validator
from typing import List, Literal, Optional
from decimal import Decimal
from datetime import datetime

from storefront.domain.order_status import OrderStatus
from storefront.utils.settings import MAX_CART_ITEM_QUANTITY


class MessageOut(BaseModel):
    message: str


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_count: int
    limit: int
    has_next: bool = False
    has_prev: bool = False


# ---------------------------------------------------------------- users

class UserCreate(BaseModel):
    """Schema dla tworzenia użytkownika."""

    name: str = Field(..., min_length=1, max_length=100, description="Imię użytkownika")
    email: str = Field(..., min_length=3, max_length=255)
    role: Literal["CUSTOMER", "ADMIN"] = "CUSTOMER"


class UserRead(BaseModel):
    """Schema dla użytkownika (response)."""

    id: int
    name: str
    email: str
    role: str

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------- catalogue

class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = None
    image_url: Optional[str] = None


class CategoryUpdate(BaseModel):
    """Patch: tylko pola przeslane w body sa zmieniane."""

    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = None
    image_url: Optional[str] = None

    @model_validator(mode="after")
    def _name_not_null(self):
        if "name" in self.model_fields_set and self.name is None:
            raise ValueError("name cannot be null")
        return self


class CategoryOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    product_count: int = 0
    created_at: datetime


class ProductCreate(BaseModel):
    """Schema dla tworzenia produktu razem ze stanem magazynowym."""

    name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    image_url: Optional[str] = None
    category_id: int = Field(..., gt=0)
    is_active: bool = True
    initial_quantity: int = Field(0, ge=0, description="Początkowy stan magazynu")


_NON_NULLABLE_PRODUCT_FIELDS = ("name", "price", "category_id", "is_active")


class ProductUpdate(BaseModel):
    """
    Patch produktu: pole nieobecne = bez zmian, pole obecne = nowa wartosc.
    description / image_url mozna wyczyscic przez null.
    """

    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    price: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    image_url: Optional[str] = None
    category_id: Optional[int] = Field(None, gt=0)
    is_active: Optional[bool] = None

    @model_validator(mode="after")
    def _required_fields_not_null(self):
        for field in _NON_NULLABLE_PRODUCT_FIELDS:
            if field in self.model_fields_set and getattr(self, field) is None:
                raise ValueError(f"{field} cannot be null")
        return self

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class ProductQuery(BaseModel):
    """
    Filtry listy produktow. Wszystkie pola maja wartosci domyslne,
    wiec dwa logicznie identyczne zapytania daja ten sam klucz cache.
    """

    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)
    category_id: Optional[int] = None
    search: Optional[str] = Field(None, max_length=100)
    min_price: Optional[Decimal] = Field(None, gt=0)
    max_price: Optional[Decimal] = Field(None, gt=0)
    is_active: bool = True
    sort_by: Literal["name", "price", "created_at"] = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"

    @model_validator(mode="after")
    def _price_range(self):
        if self.search is not None:
            self.search = self.search.strip() or None
        if self.min_price is not None and self.max_price is not None and self.min_price >= self.max_price:
            raise ValueError("Minimum price must be less than maximum price")
        return self


class ProductOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    price: Decimal
    image_url: Optional[str] = None
    is_active: bool
    category_id: int
    category_name: Optional[str] = None
    quantity: int = 0
    created_at: datetime
    updated_at: datetime


class ProductListOut(BaseModel):
    products: List[ProductOut]
    pagination: Pagination


class CategoryProductsOut(BaseModel):
    category: str
    products: List[ProductOut]
    pagination: Pagination


class SearchOut(BaseModel):
    query: str
    products: List[ProductOut]
    pagination: Pagination


class InventoryIn(BaseModel):
    quantity: int = Field(..., ge=0, description="Nowy stan magazynu (nie może być ujemny)")


class InventoryOut(BaseModel):
    product_id: int
    quantity: int
    updated_at: datetime


# ---------------------------------------------------------------- cart

class ItemIn(BaseModel):
    """Schema dla dodawania produktu do koszyka."""

    product_id: int = Field(..., gt=0, description="ID produktu (musi być > 0)")
    quantity: int = Field(1, ge=1, le=MAX_CART_ITEM_QUANTITY, description="Ilość produktu")


class ItemUpdateIn(BaseModel):
    quantity: int = Field(..., ge=1, le=MAX_CART_ITEM_QUANTITY)


class CartItemOut(BaseModel):
    """Schema dla produktu w koszyku (response)."""

    id: int
    product_id: int
    product_name: str
    price: Decimal
    quantity: int
    is_active: bool
    available: int


class CartOut(BaseModel):
    """Schema dla koszyka (response)."""

    cart_id: int | None = None
    items: List[CartItemOut]
    total_items: int
    total_amount: Decimal
    unavailable_items: List[int] = Field(default_factory=list, description="ID pozycji niedostępnych")


class CartSummaryOut(BaseModel):
    total_items: int
    total_amount: Decimal
    available_items: int
    unavailable_items: int


# ---------------------------------------------------------------- orders

class OrderCreate(BaseModel):
    """Schema dla tworzenia zamówienia z koszyka."""

    shipping_address: Optional[str] = Field(None, min_length=10, max_length=500)
    notes: Optional[str] = Field(None, max_length=500)


class OrderItemOut(BaseModel):
    id: int
    product_id: int
    product_name: Optional[str] = None
    quantity: int
    price: Decimal


class OrderOut(BaseModel):
    """Schema dla zamówienia (response)."""

    id: int
    user_id: int
    status: OrderStatus
    total_amount: Decimal
    shipping_address: Optional[str] = None
    notes: Optional[str] = None
    items: List[OrderItemOut]
    created_at: datetime
    updated_at: datetime


class OrderListOut(BaseModel):
    orders: List[OrderOut]
    pagination: Pagination


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class StatusBreakdown(BaseModel):
    status: OrderStatus
    count: int
    total_amount: Decimal


class OrderStatsOut(BaseModel):
    status_breakdown: List[StatusBreakdown]
    total_orders: int
    total_revenue: Decimal
