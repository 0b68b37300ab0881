import os

# przed importem storefront, zeby engine aplikacji nie wskazywal na postgresa
os.environ["DATABASE_URL"] = "sqlite://"

from decimal import Decimal

import fakeredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.data.database import Base, get_db, init_db
from storefront.data.models import (
    CartItemModel,
    CartModel,
    CategoryModel,
    InventoryModel,
    ProductModel,
    UserModel,
)
from storefront.main import create_app
from storefront.services.cache_service import CacheService


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def other_db(session_factory):
    # druga, niezalezna sesja: rownolegly request
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def cache(redis_client):
    return CacheService(client=redis_client, retry_attempts=1)


@pytest.fixture
def client(session_factory, cache):
    app = create_app(cache=cache, init_schema=False)

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


# ------------------------------------------------------------ seed helpers

def _make_user(db, name, role="CUSTOMER"):
    user = UserModel(name=name, email=f"{name.lower()}@example.com", role=role)
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def customer(db):
    return _make_user(db, "Alice")


@pytest.fixture
def other_customer(db):
    return _make_user(db, "Bob")


@pytest.fixture
def admin(db):
    return _make_user(db, "Admin", role="ADMIN")


@pytest.fixture
def category(db):
    category = CategoryModel(name="ELECTRONICS", description="Gadgets")
    db.add(category)
    db.commit()
    return category


@pytest.fixture
def make_product(db, category):
    def _make(name="Keyboard", price="9.99", stock=5, is_active=True):
        product = ProductModel(
            name=name,
            description=f"{name} description",
            price=Decimal(price),
            is_active=is_active,
            category_id=category.id,
            inventory=InventoryModel(quantity=stock),
        )
        db.add(product)
        db.commit()
        return product

    return _make


@pytest.fixture
def add_to_cart(db):
    def _add(user, product, quantity):
        cart = db.query(CartModel).filter(CartModel.user_id == user.id).one_or_none()
        if cart is None:
            cart = CartModel(user_id=user.id)
            db.add(cart)
            db.flush()
        db.add(CartItemModel(cart_id=cart.id, product_id=product.id, quantity=quantity))
        db.commit()
        return cart

    return _add
