def test_create_billing_without_order(client, billing_payload):
    resp = client.post("/api/billing", json=billing_payload)

    assert resp.status_code == 201
    body = resp.json()
    assert body["message"] == "Billing added successfully"
    assert "order" not in body
    assert body["billing"]["email"] == "ada@engine.org"
    assert body["billing"]["shipToDifferentAddress"] is False


def test_create_billing_with_order(client, billing_payload, create_product):
    product = create_product(images=["tea.png"])
    billing_payload.update({
        "orderNotes": "ring twice",
        "orderItems": [{"productId": product["id"], "quantity": 3, "unitPrice": 4.0}],
        "shippingCost": 2.0,
        "discountAmount": 1.0,
        "paymentMethod": "online",
    })

    resp = client.post("/api/billing", json=billing_payload)

    assert resp.status_code == 201
    body = resp.json()
    assert body["message"] == "Billing and order created successfully"
    order = body["order"]
    assert order["billing_id"] == body["billing"]["id"]
    assert order["total_amount"] == 13.0
    assert order["status"] == "pending"
    assert order["payment_method"] == "online"
    assert order["notes"] == "ring twice"
    assert order["order_items"][0]["images"] == ["tea.png"]


def test_unknown_product_leaves_no_billing_behind(client, billing_payload, create_product):
    product = create_product()
    billing_payload["orderItems"] = [
        {"productId": product["id"], "quantity": 1, "unitPrice": 1.0},
        {"productId": 555, "quantity": 1, "unitPrice": 1.0},
    ]

    resp = client.post("/api/billing", json=billing_payload)

    assert resp.status_code == 404
    assert resp.json()["message"] == "Product with ID 555 not found"
    assert client.get("/api/billing").json()["billing"] == []
    assert client.get("/api/orders").json()["pagination"]["items"] == 0


def test_billing_validation(client, billing_payload):
    billing_payload.update({"phone": "call me", "email": "nope", "firstName": ""})

    resp = client.post("/api/billing", json=billing_payload)

    assert resp.status_code == 400
    assert set(resp.json()["errors"]) >= {"phone", "email", "firstName"}


def test_billing_crud(client, create_billing, billing_payload):
    billing = create_billing()
    billing_id = billing["id"]

    fetched = client.get(f"/api/billing/{billing_id}").json()["billing"]
    assert fetched["firstName"] == "Ada"

    billing_payload["city"] = "Cambridge"
    updated = client.put(f"/api/billing/{billing_id}", json=billing_payload)
    assert updated.status_code == 200
    assert updated.json()["billing"]["city"] == "Cambridge"

    assert [b["id"] for b in client.get("/api/billing").json()["billing"]] == [billing_id]

    assert client.delete(f"/api/billing/{billing_id}").status_code == 200
    assert client.get(f"/api/billing/{billing_id}").status_code == 404
    assert client.put(f"/api/billing/{billing_id}", json=billing_payload).status_code == 404


def test_products(client, create_product):
    product = create_product(name="Kettle", sku="KET-9", sales_price=45.5, image="kettle.png")

    resp = client.get(f"/api/products/{product['id']}")

    assert resp.status_code == 200
    assert resp.json()["product"]["salesPrice"] == 45.5
    assert resp.json()["product"]["image"] == "kettle.png"
    assert client.get("/api/products/9999").status_code == 404


def test_deleting_billing_detaches_its_orders(client, create_billing, create_product, create_order):
    product = create_product()
    ada = create_billing()
    order = create_order([{"productId": product["id"], "quantity": 1, "unitPrice": 5.0}], billing_id=ada["id"])

    assert client.delete(f"/api/billing/{ada['id']}").status_code == 200

    fetched = client.get(f"/api/orders/{order['id']}").json()["order"]
    assert fetched["billing_id"] is None
    assert fetched["customers"] is None

    grace = create_billing(firstName="Grace", lastName="Hopper", email="grace@navy.mil")

    resp = client.get(f"/api/orders/billing/{grace['id']}")
    assert resp.status_code == 200
    assert resp.json()["orders"] == []
    fetched = client.get(f"/api/orders/{order['id']}").json()["order"]
    assert fetched["billing_id"] is None
    assert fetched["customers"] is None
