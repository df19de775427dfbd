from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from storefront.core.security import create_access_token, hash_password
from storefront.models.cart import CartItem
from storefront.models.product import Product
from storefront.models.user import User, UserRole
from storefront.services.cart_service import CartService


def _create_user(db: Session, *, email: str) -> User:
    user = User(
        email=email,
        full_name="Cart User",
        password_hash=hash_password("StrongPass1"),
        role=UserRole.CUSTOMER,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def _auth_headers(user: User) -> dict:
    token = create_access_token({"sub": str(user.id), "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


def _create_product(db: Session, *, name: str, price: str = "25.00", stock: int = 5) -> Product:
    product = Product(name=name, price=price, stock=stock)
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


def test_cart_requires_authentication(client: TestClient):
    assert client.get("/api/cart").status_code == 401
    assert client.post("/api/cart", json={"product_id": 1}).status_code == 401


def test_add_item_then_merge_same_product(client: TestClient, db_session: Session):
    user = _create_user(db_session, email="cart-merge@example.com")
    product = _create_product(db_session, name="Notebook", stock=5)
    headers = _auth_headers(user)

    first = client.post("/api/cart", headers=headers, json={"product_id": product.id, "quantity": 2})
    assert first.status_code == 201
    assert first.json()["data"]["cart_item"]["quantity"] == 2

    second = client.post("/api/cart", headers=headers, json={"product_id": product.id, "quantity": 3})
    assert second.status_code == 200
    assert second.json()["message"] == "Cart updated successfully"
    assert second.json()["data"]["cart_item"]["quantity"] == 5

    rows = db_session.query(CartItem).filter(CartItem.user_id == user.id).all()
    assert len(rows) == 1
    assert rows[0].quantity == 5


def test_merge_checks_combined_quantity_against_stock(client: TestClient, db_session: Session):
    user = _create_user(db_session, email="cart-combined@example.com")
    product = _create_product(db_session, name="Pen", stock=4)
    headers = _auth_headers(user)

    assert client.post("/api/cart", headers=headers, json={"product_id": product.id, "quantity": 3}).status_code == 201

    response = client.post("/api/cart", headers=headers, json={"product_id": product.id, "quantity": 2})
    assert response.status_code == 400
    assert response.json()["message"] == "Insufficient stock. Only 4 items available"

    db_session.expire_all()
    item = db_session.query(CartItem).filter(CartItem.user_id == user.id).one()
    assert item.quantity == 3


def test_add_item_rejects_unknown_product_and_bad_quantity(client: TestClient, db_session: Session):
    user = _create_user(db_session, email="cart-invalid@example.com")
    headers = _auth_headers(user)

    missing = client.post("/api/cart", headers=headers, json={"product_id": 9999})
    assert missing.status_code == 404
    assert missing.json()["message"] == "Product not found"

    product = _create_product(db_session, name="Eraser")
    zero = client.post("/api/cart", headers=headers, json={"product_id": product.id, "quantity": 0})
    assert zero.status_code == 400
    assert zero.json()["message"] == "Validation failed"


def test_get_cart_totals_captured_prices(client: TestClient, db_session: Session):
    user = _create_user(db_session, email="cart-total@example.com")
    headers = _auth_headers(user)
    book = _create_product(db_session, name="Book", price="19.99", stock=10)
    bag = _create_product(db_session, name="Bag", price="5.50", stock=10)

    client.post("/api/cart", headers=headers, json={"product_id": book.id, "quantity": 3})
    client.post("/api/cart", headers=headers, json={"product_id": bag.id, "quantity": 1})

    response = client.get("/api/cart", headers=headers)
    assert response.status_code == 200
    cart = response.json()["data"]
    assert cart["item_count"] == 2
    assert cart["total"] == 65.47
    assert {item["product"]["name"] for item in cart["items"]} == {"Book", "Bag"}


def test_update_remove_and_clear(client: TestClient, db_session: Session):
    user = _create_user(db_session, email="cart-edit@example.com")
    other = _create_user(db_session, email="cart-other@example.com")
    headers = _auth_headers(user)
    lamp = _create_product(db_session, name="Lamp", stock=3)
    rug = _create_product(db_session, name="Rug", stock=3)

    added = client.post("/api/cart", headers=headers, json={"product_id": lamp.id})
    item_id = added.json()["data"]["cart_item"]["id"]
    client.post("/api/cart", headers=headers, json={"product_id": rug.id})

    updated = client.put(f"/api/cart/{item_id}", headers=headers, json={"quantity": 3})
    assert updated.status_code == 200
    assert updated.json()["data"]["cart_item"]["quantity"] == 3

    over = client.put(f"/api/cart/{item_id}", headers=headers, json={"quantity": 4})
    assert over.status_code == 400

    foreign = client.delete(f"/api/cart/{item_id}", headers=_auth_headers(other))
    assert foreign.status_code == 404

    removed = client.delete(f"/api/cart/{item_id}", headers=headers)
    assert removed.status_code == 200
    assert client.get("/api/cart", headers=headers).json()["data"]["item_count"] == 1

    cleared = client.delete("/api/cart", headers=headers)
    assert cleared.status_code == 200
    assert db_session.query(CartItem).filter(CartItem.user_id == user.id).count() == 0


def test_concurrent_insert_of_same_product_merges_instead_of_failing(db_session: Session, monkeypatch):
    user = _create_user(db_session, email="cart-race@example.com")
    product = _create_product(db_session, name="Stapler", stock=5)
    db_session.add(CartItem(user_id=user.id, product_id=product.id, quantity=2, price_at_added=product.price))
    db_session.commit()

    original_find_item = CartService._find_item
    lookups = []

    def miss_first_lookup(db, user_id, product_id):
        # First lookup runs before the competing request's row is visible.
        lookups.append(product_id)
        if len(lookups) == 1:
            return None
        return original_find_item(db, user_id, product_id)

    monkeypatch.setattr(CartService, "_find_item", staticmethod(miss_first_lookup))

    item, created = CartService.add_item(db_session, user.id, product.id, quantity=1)

    assert created is False
    assert item.quantity == 3
    assert len(lookups) == 2
    rows = db_session.query(CartItem).filter(CartItem.user_id == user.id).all()
    assert len(rows) == 1
    assert rows[0].quantity == 3
