from conftest import API, TestingSessionLocal
import routes.products as product_routes
from models.product import Product
from models.stock import StockMovement


def test_create_product(client, user_headers, product_payload):
    resp = client.post(f"{API}/products", json=product_payload(quantity=25), headers=user_headers)
    assert resp.status_code == 201
    body = resp.json()
    assert body["message"] == "Product created successfully"
    product = body["data"]
    assert product["sku"] == "WID-001"
    assert product["price"] == 9.99
    assert product["quantity"] == 25
    assert product["stock_status"] == "in_stock"
    assert product["is_active"] is True
    assert product["category"]["id"] == product["category_id"]
    assert product["supplier"]["id"] == product["supplier_id"]


def test_create_product_books_opening_stock(client, make_product, db):
    product = make_product(quantity=40)
    movements = db.query(StockMovement).filter(StockMovement.product_id == product["id"]).all()
    assert len(movements) == 1
    assert movements[0].type == "in"
    assert movements[0].quantity == 40
    assert movements[0].reason == "Initial stock"


def test_create_product_without_stock_has_no_movement(client, make_product, db):
    product = make_product(quantity=0)
    assert db.query(StockMovement).filter(StockMovement.product_id == product["id"]).count() == 0


def test_duplicate_sku_is_rejected(client, admin_headers, make_product, product_payload, db):
    original = make_product(name="Original", price="5.00")
    resp = client.post(f"{API}/products", json=product_payload(name="Impostor"), headers=admin_headers)
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "SKU_EXISTS"

    stored = db.get(Product, original["id"])
    assert stored.name == "Original"
    assert db.query(Product).count() == 1


def test_create_product_unknown_category(client, admin_headers, product_payload):
    resp = client.post(f"{API}/products", json=product_payload(category_id=999), headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "CATEGORY_NOT_FOUND"


def test_create_product_unknown_supplier(client, admin_headers, product_payload):
    resp = client.post(f"{API}/products", json=product_payload(supplier_id=999), headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "SUPPLIER_NOT_FOUND"


def test_create_product_validation(client, admin_headers, product_payload):
    resp = client.post(
        f"{API}/products",
        json=product_payload(price="0", quantity=-1, sku="X"),
        headers=admin_headers,
    )
    assert resp.status_code == 400
    body = resp.json()
    assert body["error"]["code"] == "VALIDATION_ERROR"
    fields = {d["field"] for d in body["error"]["details"]}
    assert {"price", "quantity", "sku"} <= fields


def test_create_product_requires_auth(client, product_payload):
    resp = client.post(f"{API}/products", json=product_payload())
    assert resp.status_code == 401


def test_get_product(client, user_headers, make_product):
    product = make_product()
    resp = client.get(f"{API}/products/{product['id']}", headers=user_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["name"] == "Widget"


def test_get_missing_product(client, user_headers):
    resp = client.get(f"{API}/products/12345", headers=user_headers)
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "PRODUCT_NOT_FOUND"


def test_list_products_paginates(client, user_headers, make_product):
    for i in range(3):
        make_product(sku=f"SKU-{i:03d}", name=f"Item {i}")

    resp = client.get(f"{API}/products", params={"page": 1, "limit": 2}, headers=user_headers)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert len(data["items"]) == 2
    assert data["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}
    # Newest first
    assert data["items"][0]["sku"] == "SKU-002"

    resp = client.get(f"{API}/products", params={"page": 2, "limit": 2}, headers=user_headers)
    assert [p["sku"] for p in resp.json()["data"]["items"]] == ["SKU-000"]


def test_list_products_filters(client, user_headers, make_product):
    make_product(sku="CHEAP-1", name="Cheap bolt", price="1.50", quantity=0)
    make_product(sku="MID-1", name="Mid nut", price="20.00", quantity=5)
    make_product(sku="DEAR-1", name="Dear gear", price="300.00", quantity=50)

    def skus(**params):
        resp = client.get(f"{API}/products", params=params, headers=user_headers)
        assert resp.status_code == 200
        return {p["sku"] for p in resp.json()["data"]["items"]}

    assert skus(search="bolt") == {"CHEAP-1"}
    assert skus(search="mid-") == {"MID-1"}
    assert skus(min_price=10) == {"MID-1", "DEAR-1"}
    assert skus(max_price=20) == {"CHEAP-1", "MID-1"}
    assert skus(in_stock="true") == {"MID-1", "DEAR-1"}
    assert skus(in_stock="false") == {"CHEAP-1"}


def test_list_products_sorting(client, user_headers, make_product):
    make_product(sku="B-1", name="Bravo", price="2.00")
    make_product(sku="A-1", name="Alpha", price="3.00")
    make_product(sku="C-1", name="Charlie", price="1.00")

    resp = client.get(f"{API}/products", params={"sort_by": "name", "order": "asc"}, headers=user_headers)
    assert [p["name"] for p in resp.json()["data"]["items"]] == ["Alpha", "Bravo", "Charlie"]

    resp = client.get(f"{API}/products", params={"sort_by": "price", "order": "desc"}, headers=user_headers)
    assert [p["sku"] for p in resp.json()["data"]["items"]] == ["A-1", "B-1", "C-1"]


def test_list_products_filters_by_category(client, user_headers, make_product, make_category):
    make_product(sku="IN-CAT")
    other = make_category("Other")
    make_product(sku="OTHER-CAT", category_id=other["id"])

    resp = client.get(f"{API}/products", params={"category": other["id"]}, headers=user_headers)
    assert [p["sku"] for p in resp.json()["data"]["items"]] == ["OTHER-CAT"]


def test_update_product(client, user_headers, make_product, product_payload):
    product = make_product(quantity=10)
    resp = client.put(
        f"{API}/products/{product['id']}",
        json=product_payload(name="Widget Pro", price="12.50", quantity=10),
        headers=user_headers,
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["name"] == "Widget Pro"
    assert data["price"] == 12.5


def test_update_product_quantity_is_logged_as_movement(client, admin_headers, make_product, product_payload, db):
    product = make_product(quantity=10)
    resp = client.put(
        f"{API}/products/{product['id']}",
        json=product_payload(quantity=4),
        headers=admin_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["quantity"] == 4
    assert resp.json()["data"]["stock_status"] == "low_stock"

    adjustment = (
        db.query(StockMovement)
        .filter(StockMovement.product_id == product["id"], StockMovement.reason == "Manual adjustment")
        .one()
    )
    assert adjustment.type == "out"
    assert adjustment.quantity == 6


def test_update_product_sku_conflict(client, admin_headers, make_product, product_payload):
    make_product(sku="TAKEN-1")
    product = make_product(sku="MINE-1")
    resp = client.put(f"{API}/products/{product['id']}", json=product_payload(sku="TAKEN-1"), headers=admin_headers)
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "SKU_EXISTS"


def test_delete_product_is_soft_and_admin_only(client, admin_headers, user_headers, make_product, db):
    product = make_product()

    resp = client.delete(f"{API}/products/{product['id']}", headers=user_headers)
    assert resp.status_code == 403

    resp = client.delete(f"{API}/products/{product['id']}", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["data"] == {"id": product["id"], "name": "Widget"}

    stored = db.get(Product, product["id"])
    assert stored is not None and stored.is_active is False

    resp = client.get(f"{API}/products/{product['id']}", headers=admin_headers)
    assert resp.status_code == 404
    resp = client.get(f"{API}/products", headers=admin_headers)
    assert resp.json()["data"]["pagination"]["total"] == 0


def test_search_treats_wildcards_literally(client, user_headers, make_product):
    make_product(sku="A_1", name="Underscore part")
    make_product(sku="AB1", name="Plain part")

    def skus(search):
        resp = client.get(f"{API}/products", params={"search": search}, headers=user_headers)
        assert resp.status_code == 200
        return {p["sku"] for p in resp.json()["data"]["items"]}

    assert skus("_") == {"A_1"}
    assert skus("a_1") == {"A_1"}
    assert skus("%") == set()
    assert skus("\\") == set()


def test_update_product_adjusts_from_quantity_committed_before_the_lock(
    client, admin_headers, admin, make_product, product_payload, db, monkeypatch
):
    product = make_product(quantity=10)
    real_lock = product_routes.lock_product

    def lock_after_restock(session, product_id, active_only=True):
        # Another request books a receipt of 5 just before this one takes the lock
        other = TestingSessionLocal()
        try:
            other.add(StockMovement(product_id=product_id, user_id=admin.id, quantity=5, type="in", reason="restock"))
            other.get(Product, product_id).quantity = 15
            other.commit()
        finally:
            other.close()
        return real_lock(session, product_id, active_only)

    monkeypatch.setattr(product_routes, "lock_product", lock_after_restock)
    resp = client.put(f"{API}/products/{product['id']}", json=product_payload(quantity=4), headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["quantity"] == 4

    adjustment = (
        db.query(StockMovement)
        .filter(StockMovement.product_id == product["id"], StockMovement.reason == "Manual adjustment")
        .one()
    )
    assert adjustment.type == "out"
    assert adjustment.quantity == 11

    movements = db.query(StockMovement).filter(StockMovement.product_id == product["id"]).all()
    assert sum(m.quantity if m.type == "in" else -m.quantity for m in movements) == 4
