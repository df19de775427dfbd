from decimal import Decimal

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from storefront.core.security import create_access_token, hash_password
from storefront.models.cart import CartItem
from storefront.models.order import Order, OrderItem
from storefront.models.product import Product
from storefront.models.user import User, UserRole


def _create_user(db: Session, *, email: str, role: UserRole = UserRole.CUSTOMER) -> User:
    user = User(
        email=email,
        full_name="Order User",
        password_hash=hash_password("StrongPass1"),
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def _auth_headers(user: User) -> dict:
    token = create_access_token({"sub": str(user.id), "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


def _create_product(db: Session, *, name: str, price: str = "50.00", stock: int = 10) -> Product:
    product = Product(name=name, price=price, stock=stock)
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


def _add_to_cart(db: Session, user: User, product: Product, quantity: int) -> CartItem:
    item = CartItem(
        user_id=user.id,
        product_id=product.id,
        quantity=quantity,
        price_at_added=product.price,
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


def test_create_order_from_cart(client: TestClient, db_session: Session):
    user = _create_user(db_session, email="buyer@example.com")
    product = _create_product(db_session, name="Desk Lamp", price="50.00", stock=10)
    _add_to_cart(db_session, user, product, 2)

    response = client.post("/api/orders", headers=_auth_headers(user))
    assert response.status_code == 201
    payload = response.json()
    assert payload["message"] == "Order placed successfully"

    order = payload["data"]["order"]
    assert order["status"] == "pending"
    assert order["total_amount"] == 100.0
    assert order["user_id"] == user.id
    assert len(order["items"]) == 1
    assert order["items"][0]["quantity"] == 2
    assert order["items"][0]["price_at_order"] == 50.0
    assert order["items"][0]["product"]["name"] == "Desk Lamp"

    db_session.expire_all()
    assert db_session.get(Product, product.id).stock == 8
    assert db_session.query(CartItem).filter(CartItem.user_id == user.id).count() == 0


def test_order_uses_price_captured_in_cart(client: TestClient, db_session: Session):
    user = _create_user(db_session, email="price-lock@example.com")
    product = _create_product(db_session, name="Chair", price="40.00")
    _add_to_cart(db_session, user, product, 1)

    product.price = Decimal("99.00")
    db_session.commit()

    response = client.post("/api/orders", headers=_auth_headers(user))
    assert response.status_code == 201
    assert response.json()["data"]["order"]["total_amount"] == 40.0


def test_empty_cart_is_rejected(client: TestClient, db_session: Session):
    user = _create_user(db_session, email="empty@example.com")

    response = client.post("/api/orders", headers=_auth_headers(user))
    assert response.status_code == 400
    assert response.json()["message"] == "Cart is empty. Add items to cart before placing an order"
    assert db_session.query(Order).count() == 0


def test_insufficient_stock_changes_nothing(client: TestClient, db_session: Session):
    user = _create_user(db_session, email="greedy@example.com")
    plenty = _create_product(db_session, name="Plenty", stock=10)
    scarce = _create_product(db_session, name="Scarce", stock=1)
    _add_to_cart(db_session, user, plenty, 2)
    _add_to_cart(db_session, user, scarce, 3)

    response = client.post("/api/orders", headers=_auth_headers(user))
    assert response.status_code == 400
    assert response.json()["message"] == "Insufficient stock for Scarce. Only 1 items available"

    db_session.expire_all()
    assert db_session.get(Product, plenty.id).stock == 10
    assert db_session.get(Product, scarce.id).stock == 1
    assert db_session.query(CartItem).filter(CartItem.user_id == user.id).count() == 2
    assert db_session.query(Order).count() == 0
    assert db_session.query(OrderItem).count() == 0


def test_deleted_product_in_cart_is_rejected(client: TestClient, db_session: Session):
    """A cart row left pointing at a removed product.

    `cart_items.product_id` cascades on delete where foreign keys are enforced,
    so the row is orphaned here with a bulk delete that SQLite lets through.
    The checkout guard still has to refuse such a row.
    """
    user = _create_user(db_session, email="ghost@example.com")
    kept = _create_product(db_session, name="Kept", stock=5)
    ghost = _create_product(db_session, name="Ghost", stock=5)
    _add_to_cart(db_session, user, kept, 1)
    _add_to_cart(db_session, user, ghost, 1)
    ghost_id = ghost.id

    db_session.query(Product).filter(Product.id == ghost_id).delete(synchronize_session=False)
    db_session.commit()

    response = client.post("/api/orders", headers=_auth_headers(user))
    assert response.status_code == 400
    assert response.json()["message"] == f"Product with ID {ghost_id} no longer exists"

    db_session.expire_all()
    assert db_session.get(Product, kept.id).stock == 5
    assert db_session.query(CartItem).filter(CartItem.user_id == user.id).count() == 2
    assert db_session.query(Order).count() == 0


def test_order_requires_authentication(client: TestClient):
    assert client.post("/api/orders").status_code == 401
    assert client.get("/api/orders/my-orders").status_code == 401


def test_my_orders_lists_only_own_orders_newest_first(client: TestClient, db_session: Session):
    user = _create_user(db_session, email="history@example.com")
    other = _create_user(db_session, email="someone-else@example.com")
    product = _create_product(db_session, name="Cup", price="3.00", stock=20)

    for quantity in (1, 2, 3):
        _add_to_cart(db_session, user, product, quantity)
        assert client.post("/api/orders", headers=_auth_headers(user)).status_code == 201
    _add_to_cart(db_session, other, product, 1)
    assert client.post("/api/orders", headers=_auth_headers(other)).status_code == 201

    response = client.get("/api/orders/my-orders", headers=_auth_headers(user), params={"limit": 2})
    assert response.status_code == 200
    payload = response.json()
    assert payload["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}
    assert [order["total_amount"] for order in payload["data"]["orders"]] == [9.0, 6.0]

    second_page = client.get(
        "/api/orders/my-orders",
        headers=_auth_headers(user),
        params={"page": 2, "limit": 2},
    )
    assert [order["total_amount"] for order in second_page.json()["data"]["orders"]] == [3.0]


def test_order_detail_hides_other_users_orders(client: TestClient, db_session: Session):
    owner = _create_user(db_session, email="owner@example.com")
    stranger = _create_user(db_session, email="stranger@example.com")
    admin = _create_user(db_session, email="orders-admin@example.com", role=UserRole.ADMIN)
    product = _create_product(db_session, name="Vase")
    _add_to_cart(db_session, owner, product, 1)
    order_id = client.post("/api/orders", headers=_auth_headers(owner)).json()["data"]["order"]["id"]

    assert client.get(f"/api/orders/{order_id}", headers=_auth_headers(owner)).status_code == 200

    hidden = client.get(f"/api/orders/{order_id}", headers=_auth_headers(stranger))
    assert hidden.status_code == 404
    assert hidden.json()["message"] == "Order not found"

    assert client.get(f"/api/orders/{order_id}", headers=_auth_headers(admin)).status_code == 200
    assert client.get("/api/orders/424242", headers=_auth_headers(owner)).status_code == 404


def test_order_history_survives_product_deletion(client: TestClient, db_session: Session):
    user = _create_user(db_session, email="archive@example.com")
    admin = _create_user(db_session, email="archive-admin@example.com", role=UserRole.ADMIN)
    product = _create_product(db_session, name="Discontinued", price="12.50")
    _add_to_cart(db_session, user, product, 2)
    order_id = client.post("/api/orders", headers=_auth_headers(user)).json()["data"]["order"]["id"]

    assert client.delete(f"/api/products/{product.id}", headers=_auth_headers(admin)).status_code == 200

    response = client.get(f"/api/orders/{order_id}", headers=_auth_headers(user))
    assert response.status_code == 200
    order = response.json()["data"]["order"]
    assert order["total_amount"] == 25.0
    assert order["items"][0]["price_at_order"] == 12.5
    assert order["items"][0]["product"] is None


def test_admin_lists_all_orders_with_status_filter(client: TestClient, db_session: Session):
    admin = _create_user(db_session, email="list-admin@example.com", role=UserRole.ADMIN)
    customer = _create_user(db_session, email="list-customer@example.com")
    product = _create_product(db_session, name="Plate", stock=10)

    for _ in range(2):
        _add_to_cart(db_session, customer, product, 1)
        client.post("/api/orders", headers=_auth_headers(customer))

    first_order = db_session.query(Order).order_by(Order.id).first()
    client.put(
        f"/api/orders/{first_order.id}/status",
        headers=_auth_headers(admin),
        json={"status": "processing"},
    )

    everything = client.get("/api/orders", headers=_auth_headers(admin))
    assert everything.status_code == 200
    assert everything.json()["pagination"]["total"] == 2
    assert everything.json()["data"]["orders"][0]["user"]["email"] == "list-customer@example.com"

    processing = client.get("/api/orders", headers=_auth_headers(admin), params={"status": "processing"})
    orders = processing.json()["data"]["orders"]
    assert [order["id"] for order in orders] == [first_order.id]

    forbidden = client.get("/api/orders", headers=_auth_headers(customer))
    assert forbidden.status_code == 403
