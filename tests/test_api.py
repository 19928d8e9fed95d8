import json
import uuid

import pytest
from fastapi.testclient import TestClient

from app.core.storage_utils import get_blob_store
from app.database import get_session
from app.main import app
from app.models.product import ProductImage

API = "/api/v1"


@pytest.fixture
def client(session, blob_store):
    app.dependency_overrides[get_session] = lambda: session
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    yield TestClient(app)
    app.dependency_overrides.clear()


def create_hoodie(client) -> dict:
    response = client.post(f"{API}/products", json={"name": "Beast Mode Hoodie", "price": 3299})
    assert response.status_code == 201
    return response.json()


def save_variants(client, product_id, colors, sizes):
    return client.put(
        f"{API}/products/{product_id}/variants",
        json={"colors": colors, "sizes": [{"label": s} for s in sizes]},
    )


def test_health(client):
    assert client.get("/").json() == {"status": "ok", "service": "storefront-catalog"}


def test_variant_editing_flow(client):
    product = create_hoodie(client)
    assert product["slug"] == "beast-mode-hoodie"

    preview = client.post(
        f"{API}/products/{product['id']}/variants/preview",
        json={"colors": ["Jet Black", "Pearl White"], "sizes": ["S", "M", "L"]},
    )
    assert preview.status_code == 200
    assert preview.json()["message"] == "2 colors × 3 sizes = 6 variants will be generated"

    response = save_variants(
        client,
        product["id"],
        [{"key": "a", "name": "Jet Black", "hex_value": "#111111"}, {"key": "b", "name": "Pearl White"}],
        ["S", "M", "L"],
    )
    assert response.status_code == 200
    body = response.json()
    assert len(body["created_skus"]) == 6
    assert set(body["color_ids_by_key"]) == {"a", "b"}
    assert len(body["variants"]) == 6

    listed = client.get(f"{API}/products/{product['id']}/variants").json()
    assert listed[0]["sku"] == "BEAST-MODE-HOODIE-JB-S"
    assert listed[0]["status"] == "ok"


def test_initials_conflict_maps_to_409(client):
    product = create_hoodie(client)

    response = save_variants(
        client,
        product["id"],
        [{"name": "Navy Blue"}, {"name": "Neon Blue"}],
        ["S"],
    )

    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "ReconciliationConflict"
    assert body["detail"]["suggestions"] == {"Neon Blue": "Neon Blue 2"}


def test_unknown_size_maps_to_400(client):
    product = create_hoodie(client)

    response = save_variants(client, product["id"], [{"name": "Jet Black"}], ["XS"])

    assert response.status_code == 400
    assert response.json()["error"] == "ValidationError"


def test_missing_product_maps_to_404(client):
    response = client.get(f"{API}/products/00000000-0000-0000-0000-000000000000")

    assert response.status_code == 404
    assert response.json()["detail"]["message"] == "Product not found"


def test_stock_adjustment_flow(client):
    product = create_hoodie(client)
    save_variants(client, product["id"], [{"name": "Jet Black"}], ["S"])
    variant_id = client.get(f"{API}/products/{product['id']}/variants").json()[0]["id"]

    response = client.post(
        f"{API}/inventory/variants/{variant_id}/adjust", json={"new_quantity": 2, "reason": " "}
    )
    assert response.status_code == 200
    entry = response.json()
    assert (entry["previous_quantity"], entry["new_quantity"], entry["delta"]) == (10, 2, -8)
    assert entry["reason"] == "Manual reduction — admin adjustment"

    logs = client.get(f"{API}/inventory/variants/{variant_id}/logs").json()
    assert len(logs) == 1

    summary = client.get(f"{API}/inventory/low-stock").json()
    assert summary == {"low_stock_count": 1, "out_of_stock_count": 0}

    low = client.get(f"{API}/inventory", params={"status": "low"}).json()
    assert [item["variant_id"] for item in low] == [variant_id]


def test_negative_quantity_rejected(client):
    product = create_hoodie(client)
    save_variants(client, product["id"], [{"name": "Jet Black"}], ["S"])
    variant_id = client.get(f"{API}/products/{product['id']}/variants").json()[0]["id"]

    response = client.post(f"{API}/inventory/variants/{variant_id}/adjust", json={"new_quantity": -1})

    assert response.status_code == 422


def test_image_save_flow(client, blob_store):
    product = create_hoodie(client)
    body = save_variants(client, product["id"], [{"key": "a", "name": "Jet Black"}], ["S"]).json()
    color_id = body["color_ids_by_key"]["a"]

    manifest = {
        "colors": [
            {
                "color_id": color_id,
                "slots": [None, {"upload_index": 0}, {"image_url": "https://cdn.test/old.png"}],
            }
        ]
    }
    response = client.put(
        f"{API}/products/{product['id']}/images",
        data={"manifest": json.dumps(manifest)},
        files=[("files", ("front.png", b"png-front", "image/png"))],
    )

    assert response.status_code == 200
    images = response.json()["images"]
    assert [img["sort_order"] for img in images] == [0, 1]
    assert images[0]["is_primary"] is True
    assert images[1]["image_url"] == "https://cdn.test/old.png"
    assert response.json()["warnings"] == []
    assert list(blob_store.uploads.values()) == [b"png-front"]


def test_image_manifest_errors(client):
    product = create_hoodie(client)
    body = save_variants(client, product["id"], [{"key": "a", "name": "Jet Black"}], ["S"]).json()
    color_id = body["color_ids_by_key"]["a"]

    malformed = client.put(f"{API}/products/{product['id']}/images", data={"manifest": "{not json"})
    assert malformed.status_code == 422

    dangling = client.put(
        f"{API}/products/{product['id']}/images",
        data={"manifest": json.dumps({"colors": [{"color_id": color_id, "slots": [{"upload_index": 3}]}]})},
    )
    assert dangling.status_code == 400


def test_legacy_images_migrate_through_slot_manifest(client, session, blob_store):
    """Sending back the slot state moves colorless images under the first color"""
    product = create_hoodie(client)
    body = save_variants(
        client, product["id"], [{"key": "a", "name": "Jet Black"}, {"key": "b", "name": "Pearl White"}], ["S"]
    ).json()
    black_id, white_id = body["color_ids_by_key"]["a"], body["color_ids_by_key"]["b"]
    session.add(ProductImage(product_id=uuid.UUID(product["id"]), image_url="https://cdn.test/legacy.png"))
    session.commit()

    manifest = client.get(f"{API}/products/{product['id']}/images/slots").json()
    assert [entry["color_id"] for entry in manifest["colors"]] == [black_id, white_id]
    assert manifest["colors"][0]["slots"][0] == {"image_url": "https://cdn.test/legacy.png", "upload_index": None}

    response = client.put(f"{API}/products/{product['id']}/images", data={"manifest": json.dumps(manifest)})

    assert response.status_code == 200
    [image] = response.json()["images"]
    assert image["color_id"] == black_id
    assert image["is_primary"] is True
    assert image["image_url"] == "https://cdn.test/legacy.png"
    assert blob_store.deleted == []
