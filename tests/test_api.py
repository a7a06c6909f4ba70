import json

import pytest
import requests
from fastapi.testclient import TestClient

from price_calculator.api.main import create_app
from price_calculator.errors import RateLimited
from price_calculator.services.store import RestTableStore


@pytest.fixture
def client(settings, store):
    app = create_app(settings, store)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def product(client):
    response = client.post("/products", json={"name": "Sofa Minimalis", "category": "Sofa",
                                              "base_price": 100000, "unit": "unit"})
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def customer(client):
    created = client.post("/customers", json={"name": "Toko Jaya"}).json()
    tier = client.post(f"/customers/{created['id']}/tiers", json={"tier_name": "Gold", "discount_percentage": 5})
    assert tier.status_code == 201
    return client.get(f"/customers/{created['id']}").json()


def _calc_body(product, **overrides):
    body = {
        "product_id": product["id"],
        "region_id": "b1",
        "discounts": [{"id": 1, "label": "Diskon 1", "kind": "percentage", "value": 10}],
        "margin": {"payment_type": "cash", "margin_kind": "percentage", "value": 10},
    }
    body.update(overrides)
    return body


def test_root_and_status(client):
    assert client.get("/").json()["status"] == "online"
    status = client.get("/system/status").json()
    assert status["engine_active"] is True
    assert status["store_backend"] == "local"
    assert status["assistant_configured"] is False


def test_regions_seeded_on_startup(client):
    regions = client.get("/regions").json()
    assert len(regions["A"]) == 4
    assert len(regions["B"]) == 10


class UnreachableSession:
    def __init__(self):
        self.headers = {}

    def request(self, method, url, **kwargs):
        raise requests.exceptions.ConnectionError("Connection refused")


def test_startup_survives_unreachable_store(settings):
    store = RestTableStore("http://127.0.0.1:9", "key", session=UnreachableSession())
    with TestClient(create_app(settings, store)) as down_client:
        assert down_client.get("/").json()["status"] == "online"
        assert down_client.get("/regions").status_code == 503


def test_calculate(client, product):
    result = client.post("/calculate", json=_calc_body(product)).json()
    assert result["region_price"] == 105000
    assert result["net_price"] == 94500
    assert result["margin_amount"] == 9450
    assert result["final_price"] == 103950
    assert result["total_discount"] == 10500


def test_calculate_without_selection_returns_null(client):
    response = client.post("/calculate", json={})
    assert response.status_code == 200
    assert response.json() is None


def test_calculate_with_customer_tier(client, product, customer):
    tier_id = customer["pricing_tiers"][0]["id"]
    body = _calc_body(product, customer_id=customer["id"], tier_id=tier_id,
                      discounts=[{"id": 1, "label": "Diskon 1", "kind": "nominal", "value": 5000}],
                      margin={"value": 0})
    result = client.post("/calculate", json=body).json()
    assert result["discounts"][0] == {"label": "Toko Jaya - Gold", "amount": 5250, "source": "tier"}
    assert result["net_price"] == 94750


def test_calculate_rejects_foreign_tier_and_fifth_discount(client, product):
    response = client.post("/calculate", json=_calc_body(product, tier_id="someone-else"))
    assert response.status_code == 422
    assert "tier_id" in response.json()["errors"]

    discounts = [{"id": i, "label": f"Diskon {i}", "value": 1} for i in range(1, 6)]
    assert client.post("/calculate", json=_calc_body(product, discounts=discounts)).status_code == 422


def test_unknown_product_is_404(client):
    response = client.post("/calculate", json={"product_id": "missing", "region_id": "a1"})
    assert response.status_code == 404


def test_validation_errors_are_field_level(client):
    response = client.post("/customers", json={"name": "", "email": "bukan-email"})
    assert response.status_code == 422
    assert set(response.json()["errors"]) == {"name", "email"}


def test_history_save_edit_duplicate_delete(client, product, customer):
    tier_id = customer["pricing_tiers"][0]["id"]
    body = _calc_body(product, customer_id=customer["id"], tier_id=tier_id, notes="Pameran")
    saved = client.post("/history", json=body)
    assert saved.status_code == 201
    record = saved.json()
    assert record["margin_type"] == "Cash"

    listed = client.get("/history").json()
    assert [r["id"] for r in listed] == [record["id"]]
    assert listed[0]["customer_name"] == "Toko Jaya"
    assert list(client.get("/history/by-product").json()) == ["Sofa Minimalis"]

    edited = client.patch(f"/history/{record['id']}", json={"final_price": 120000,
                                                            "margin_amount": record["margin_amount"]})
    assert edited.json()["net_price"] == 120000 - record["margin_amount"]
    assert edited.json()["notes"] == "Pameran"

    rejected = client.patch(f"/history/{record['id']}", json={"final_price": 100, "margin_amount": 500})
    assert rejected.status_code == 422

    duplicated = client.post(f"/history/{record['id']}/duplicate").json()
    assert duplicated["product_id"] == product["id"]
    assert duplicated["region_id"] == "b1"
    assert duplicated["tier_id"] == tier_id
    assert duplicated["margin"]["margin_kind"] == "nominal"
    assert [d["label"] for d in duplicated["discounts"]] == ["Diskon 1"]

    assert client.delete(f"/history/{record['id']}").json() == {"deleted": True}
    assert client.delete(f"/history/{record['id']}").status_code == 404


def test_exports(client, product):
    xlsx = client.post("/export/calculation.xlsx", json=_calc_body(product))
    assert xlsx.status_code == 200
    assert "Laporan_Harga_Sofa_Minimalis_" in xlsx.headers["content-disposition"]
    assert xlsx.content[:2] == b"PK"

    pdf = client.post("/export/calculation.pdf", json=_calc_body(product))
    assert pdf.content.startswith(b"%PDF")

    client.post("/history", json=_calc_body(product))
    assert client.get("/export/history.xlsx").content[:2] == b"PK"
    assert client.get("/export/history.pdf").content.startswith(b"%PDF")

    assert client.post("/export/calculation.pdf", json={}).status_code == 422


def test_backup_round_trip_and_malformed_upload(client, product, settings):
    exported = client.get("/backup/export")
    doc = json.loads(exported.content)
    assert doc["version"] == "2.0"
    assert [p["name"] for p in doc["products"]] == ["Sofa Minimalis"]

    client.delete(f"/products/{product['id']}")
    restored = client.post("/backup/import", content=exported.content)
    assert restored.json()["imported"]["products"] == 1
    assert client.get(f"/products/{product['id']}").status_code == 200

    bad = client.post("/backup/import", content=b'{"version": "2.0"}')
    assert bad.status_code == 400

    assert client.post("/backup/snapshot").status_code == 200
    assert settings.local_backup_path.exists()
    assert client.post("/backup/sync").json()["synced"]["product_regions"] == 14
    assert client.get("/backup/status").json()["has_local_backup"] is True


class FakeAssistant:
    def __init__(self, deltas=(), error=None):
        self.deltas = list(deltas)
        self.error = error

    def stream_chat(self, messages, products=(), customers=(), cancel=None):
        if self.error:
            raise self.error
        yield from self.deltas


def test_assistant_chat(client):
    messages = {"messages": [{"role": "user", "content": "Berapa harga sofa?"}]}
    assert client.post("/assistant/chat", json=messages).status_code == 503

    client.app.state.services.assistant = FakeAssistant(["Sekitar ", "Rp 3 juta"])
    response = client.post("/assistant/chat", json=messages)
    assert response.status_code == 200
    assert response.text == "Sekitar Rp 3 juta"

    client.app.state.services.assistant = FakeAssistant(error=RateLimited())
    assert client.post("/assistant/chat", json=messages).status_code == 429
