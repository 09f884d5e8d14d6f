"""商品目录与后台管理路由测试"""
import pytest

from app.models import ProductStatus

ADMIN = {"X-User-Id": "admin-1"}


class TestCatalogRouter:
    """前台商品路由测试类"""

    def test_list_only_published(self, client, make_variant):
        published = make_variant(stock=3)
        make_variant(stock=3, status=ProductStatus.DRAFT)

        response = client.get("/api/v1/products")

        assert response.status_code == 200
        data = response.json()
        assert data["pagination"]["total"] == 1
        assert data["products"][0]["variants"][0]["id"] == published.id

    def test_get_product_by_slug(self, client, make_variant):
        make_variant(stock=3)
        response = client.get("/api/v1/products/sourdough-1")
        assert response.status_code == 200
        assert response.json()["product"]["slug"] == "sourdough-1"

    def test_get_draft_product_404(self, client, make_variant):
        make_variant(stock=3, status=ProductStatus.DRAFT)
        assert client.get("/api/v1/products/sourdough-1").status_code == 404

    def test_variant_stock(self, client, make_variant):
        variant = make_variant(stock=7)
        response = client.get(f"/api/v1/variants/{variant.id}/stock")
        assert response.status_code == 200
        assert response.json()["available_stock"] == 7

    def test_variant_stock_not_found(self, client):
        assert client.get("/api/v1/variants/999/stock").status_code == 404


class TestAdminRouter:
    """后台管理路由测试类"""

    @pytest.fixture
    def product(self, client):
        response = client.post(
            "/api/v1/admin/products",
            json={
                "slug": "croissant",
                "name": "可颂",
                "base_price": "3.50",
                "status": "published",
                "variants": [{"available_stock": 10}, {"sku": "CR-BOX6", "price": "19.00"}],
            },
            headers=ADMIN,
        )
        assert response.status_code == 201
        return response.json()["product"]

    def test_requires_login(self, client):
        assert client.get("/api/v1/admin/products").status_code == 401

    def test_requires_admin(self, client):
        response = client.get("/api/v1/admin/products", headers={"X-User-Id": "42"})
        assert response.status_code == 403

    def test_create_product(self, product):
        skus = [v["sku"] for v in product["variants"]]
        assert skus == ["croissant-v1", "CR-BOX6"]
        assert product["variants"][0]["available_stock"] == 10
        assert float(product["variants"][0]["price"]) == 3.5

    def test_duplicate_slug(self, client, product):
        response = client.post(
            "/api/v1/admin/products",
            json={"slug": "croissant", "name": "另一个", "base_price": "1.00"},
            headers=ADMIN,
        )
        assert response.status_code == 409
        assert response.json()["code"] == "conflict"

    def test_update_and_list(self, client, product):
        response = client.patch(
            f"/api/v1/admin/products/{product['id']}", json={"name": "黄油可颂"}, headers=ADMIN
        )
        assert response.status_code == 200
        assert response.json()["product"]["name"] == "黄油可颂"

        listed = client.get("/api/v1/admin/products", params={"search": "croiss"}, headers=ADMIN).json()
        assert listed["pagination"]["total"] == 1

    def test_archive(self, client, product):
        response = client.delete(f"/api/v1/admin/products/{product['id']}", headers=ADMIN)

        assert response.status_code == 200
        archived = response.json()["product"]
        assert archived["status"] == "archived"
        assert all(not v["is_active"] for v in archived["variants"])
        assert client.get("/api/v1/products/croissant").status_code == 404

    def test_variants(self, client, product):
        created = client.post(
            f"/api/v1/admin/products/{product['id']}/variants",
            json={"price": "6.00", "available_stock": 4},
            headers=ADMIN,
        )
        assert created.status_code == 201
        variant = created.json()["variant"]
        assert variant["sku"] == "croissant-v3"

        updated = client.patch(
            f"/api/v1/admin/products/{product['id']}/variants/{variant['id']}",
            json={"is_active": False},
            headers=ADMIN,
        )
        assert updated.json()["variant"]["is_active"] is False

        listed = client.get(f"/api/v1/admin/products/{product['id']}/variants", headers=ADMIN)
        assert len(listed.json()["variants"]) == 3

    def test_adjust_stock(self, client, product):
        variant_id = product["variants"][0]["id"]

        response = client.post(
            f"/api/v1/admin/variants/{variant_id}/stock", json={"delta": 5, "reason": "restock"}, headers=ADMIN
        )
        assert response.status_code == 200
        assert response.json()["available_stock"] == 15

        too_much = client.post(
            f"/api/v1/admin/variants/{variant_id}/stock", json={"delta": -20}, headers=ADMIN
        )
        assert too_much.status_code == 409
        assert too_much.json()["code"] == "insufficient_stock"

    def test_adjust_stock_zero(self, client, product):
        variant_id = product["variants"][0]["id"]
        response = client.post(f"/api/v1/admin/variants/{variant_id}/stock", json={"delta": 0}, headers=ADMIN)
        assert response.status_code == 400

    def test_untracked_variant(self, client, product):
        """不追踪库存的规格：0 库存也能加购，只受单品上限约束；有预占时不能切换"""
        created = client.post(
            f"/api/v1/admin/products/{product['id']}/variants",
            json={"sku": "CR-MADE-TO-ORDER", "track_inventory": False},
            headers=ADMIN,
        )
        assert created.status_code == 201
        variant = created.json()["variant"]
        assert variant["track_inventory"] is False
        assert variant["available_stock"] == 0

        added = client.post(
            "/api/v1/cart/items", json={"variant_id": variant["id"], "quantity": 8}, headers={"X-User-Id": "7"}
        )
        assert added.status_code == 200
        over = client.patch(
            f"/api/v1/cart/items/{variant['id']}", json={"quantity": 11}, headers={"X-User-Id": "7"}
        )
        assert over.status_code == 400

        toggled = client.patch(
            f"/api/v1/admin/products/{product['id']}/variants/{variant['id']}",
            json={"track_inventory": True},
            headers=ADMIN,
        )
        assert toggled.status_code == 409

        listed = client.get(f"/api/v1/admin/products/{product['id']}/variants", headers=ADMIN).json()
        stored = next(v for v in listed["variants"] if v["id"] == variant["id"])
        assert (stored["available_stock"], stored["reserved_stock"]) == (0, 0)
