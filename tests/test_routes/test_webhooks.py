# tests/test_routes/test_webhooks.py
from catalog_sync.core.security import SQUARE_SIGNATURE_HEADER
from tests.mocks import make_item, make_product, sign, webhook_body


def post_signed(client, body, signature=None):
    return client.post(
        "/webhooks/square",
        content=body,
        headers={SQUARE_SIGNATURE_HEADER: signature if signature is not None else sign(body),
                 "Content-Type": "application/json"},
    )


def inventory_body(variation_id, quantity="9"):
    return webhook_body("inventory.count.updated", {
        "type": "inventory",
        "id": "count-1",
        "object": {"inventory_counts": [{
            "catalog_object_id": variation_id,
            "quantity": quantity,
            "location_id": "LOC_1",
            "state": "IN_STOCK",
        }]},
    }, event_id="evt-inv")


def test_missing_signature_is_401(test_client):
    response = test_client.post("/webhooks/square", content=webhook_body("catalog.version.updated"))
    assert response.status_code == 401
    assert response.json()["detail"] == "No signature provided"


def test_bad_signature_is_401(test_client, product_store):
    body = inventory_body("VAR_A")
    response = post_signed(test_client, body, signature=sign(body, key="wrong"))

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid signature"
    assert product_store.writes == []


def test_get_is_405(test_client):
    assert test_client.get("/webhooks/square").status_code == 405


def test_inventory_update_applies_quantity(test_client, product_store):
    product_store.products[1] = make_product(1, item_id="A", quantity=5)

    response = post_signed(test_client, inventory_body("VAR_A", "9"))

    assert response.status_code == 200
    assert response.json()["received"] is True
    assert response.json()["event_id"] == "evt-inv"
    assert response.json()["action"] == "updated"
    assert product_store.products[1].quantity == 9


def test_unknown_variation_is_200_skipped(test_client, product_store):
    response = post_signed(test_client, inventory_body("VAR_999"))

    assert response.status_code == 200
    assert response.json()["action"] == "skipped"
    assert product_store.writes == []


def test_catalog_update_without_id_rescans(test_client, product_store, square_client):
    product_store.products[1] = make_product(1, item_id="A", price_cents=2500)
    square_client.items = {"A": make_item("A", price_cents=3000), "C": make_item("C")}

    response = post_signed(test_client, webhook_body("catalog.version.updated", {
        "object": {"catalog_version": {"updated_at": "2026-10-16T12:00:00Z"}},
    }))

    assert response.status_code == 200
    assert response.json()["action"] == "synced"
    assert product_store.products[1].price_cents == 3000
    assert len(product_store.products) == 2


def test_unhandled_event_type_is_200(test_client):
    response = post_signed(test_client, webhook_body("payment.created"))

    assert response.status_code == 200
    assert response.json()["action"] == "skipped"


def test_square_outage_is_still_200(test_client, square_client):
    square_client.should_fail = True

    response = post_signed(test_client, webhook_body("catalog.version.updated"))

    assert response.status_code == 200
    assert response.json()["action"] == "failed"


def test_invalid_json_is_200_skipped(test_client):
    response = post_signed(test_client, b"not json")

    assert response.status_code == 200
    assert response.json()["action"] == "skipped"


def test_non_string_event_type_is_200_skipped(test_client, product_store):
    body = b'{"type": {"x": 1}, "event_id": "e1"}'

    response = post_signed(test_client, body)

    assert response.status_code == 200
    assert response.json()["action"] == "skipped"
    assert product_store.writes == []


def test_unexpected_error_is_500(test_client, product_store, mocker):
    mocker.patch.object(product_store, "find_by_external_variation_id", side_effect=RuntimeError("db down"))

    response = post_signed(test_client, inventory_body("VAR_A"))

    assert response.status_code == 500
