"""购物车路由测试"""
import pytest

GUEST = {"X-Session-Id": "s-1"}
USER = {"X-User-Id": "42"}


class TestCartRouter:
    """购物车路由测试类"""

    @pytest.fixture
    def variant(self, make_variant):
        return make_variant(stock=5, price="3.20")

    def test_requires_identity(self, client):
        response = client.get("/api/v1/cart")
        assert response.status_code == 401
        assert response.json()["success"] is False

    def test_add_and_get(self, client, variant, stock_of):
        response = client.post(
            "/api/v1/cart/items", json={"variant_id": variant.id, "quantity": 2}, headers=GUEST
        )

        assert response.status_code == 200
        data = response.json()
        assert data["item_count"] == 2
        assert data["items"][0]["sku"] == variant.sku
        assert stock_of(variant.id) == (3, 2)

        cart = client.get("/api/v1/cart", headers=GUEST).json()
        assert cart["items"][0]["quantity"] == 2

    def test_add_insufficient_stock(self, client, variant):
        response = client.post(
            "/api/v1/cart/items", json={"variant_id": variant.id, "quantity": 6}, headers=GUEST
        )

        assert response.status_code == 409
        data = response.json()
        assert data["code"] == "insufficient_stock"
        assert data["details"]["available"] == 5

    def test_add_invalid_quantity(self, client, variant):
        response = client.post(
            "/api/v1/cart/items", json={"variant_id": variant.id, "quantity": 0}, headers=GUEST
        )
        assert response.status_code == 422

    def test_update_and_remove(self, client, variant, stock_of):
        client.post("/api/v1/cart/items", json={"variant_id": variant.id}, headers=USER)

        response = client.patch(f"/api/v1/cart/items/{variant.id}", json={"quantity": 4}, headers=USER)
        assert response.status_code == 200
        assert response.json()["items"][0]["quantity"] == 4
        assert stock_of(variant.id) == (1, 4)

        response = client.delete(f"/api/v1/cart/items/{variant.id}", headers=USER)
        assert response.status_code == 200
        assert response.json()["items"] == []
        assert stock_of(variant.id) == (5, 0)

    def test_update_missing_item(self, client, variant):
        response = client.patch(f"/api/v1/cart/items/{variant.id}", json={"quantity": 1}, headers=USER)
        assert response.status_code == 404

    def test_clear(self, client, variant, stock_of):
        client.post("/api/v1/cart/items", json={"variant_id": variant.id, "quantity": 3}, headers=USER)

        response = client.delete("/api/v1/cart", headers=USER)

        assert response.status_code == 200
        assert response.json()["items"] == []
        assert stock_of(variant.id) == (5, 0)

    def test_merge_requires_login(self, client):
        response = client.post("/api/v1/cart/merge", json={"guest_session_id": "s-1"}, headers=GUEST)
        assert response.status_code == 401

    def test_merge(self, client, variant):
        client.post("/api/v1/cart/items", json={"variant_id": variant.id, "quantity": 2}, headers=GUEST)

        response = client.post("/api/v1/cart/merge", json={"guest_session_id": "s-1"}, headers=USER)

        assert response.status_code == 200
        data = response.json()
        assert data["merged"] == 1
        assert data["items"][0]["quantity"] == 2
        assert client.get("/api/v1/cart", headers=GUEST).json()["items"] == []
