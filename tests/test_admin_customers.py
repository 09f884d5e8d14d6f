"""后台客户与地址管理路由测试"""
from decimal import Decimal

import pytest

from app.models import Order, OrderStatus

ADMIN = {"X-User-Id": "admin-1"}
BASE = "/api/v1/admin/customers"


class TestAdminCustomers:
    """客户管理路由测试类"""

    @pytest.fixture
    def create(self, client):
        def _create(**fields):
            body = {"first_name": "Ada", "last_name": "Baker", "email": "ada@example.com", **fields}
            response = client.post(BASE, json=body, headers=ADMIN)
            assert response.status_code == 201, response.text
            return response.json()["customer"]

        return _create

    def test_requires_admin(self, client):
        assert client.get(BASE).status_code == 401
        assert client.get(BASE, headers={"X-User-Id": "42"}).status_code == 403

    def test_create_without_account(self, create):
        customer = create(email="  Ada@Example.COM ", phone="", tags=["wholesale"])

        assert customer["user_id"] is None
        assert customer["email"] == "ada@example.com"
        assert customer["phone"] is None
        assert customer["tags"] == ["wholesale"]
        assert customer["is_active"] is True
        assert customer["addresses"] == []

    def test_duplicate_email(self, client, create):
        create()
        response = client.post(
            BASE,
            json={"first_name": "Eve", "last_name": "Baker", "email": "ADA@example.com"},
            headers=ADMIN,
        )
        assert response.status_code == 409
        assert response.json()["code"] == "conflict"

    def test_missing_required_fields(self, client):
        response = client.post(BASE, json={"first_name": " ", "last_name": "B", "email": "x@y.z"}, headers=ADMIN)
        assert response.status_code == 422

    def test_search_filter_and_paging(self, client, create):
        create(first_name="Ada", email="ada@example.com", company="Crumb Co")
        create(first_name="Bob", email="bob@example.com")
        inactive = create(first_name="Cleo", email="cleo@example.com")
        client.patch(f"{BASE}/{inactive['id']}", json={"is_active": False}, headers=ADMIN)

        found = client.get(BASE, params={"search": "crumb"}, headers=ADMIN).json()
        assert [c["first_name"] for c in found["customers"]] == ["Ada"]

        active = client.get(BASE, params={"status": "active"}, headers=ADMIN).json()
        assert active["pagination"]["total"] == 2

        inactive_only = client.get(BASE, params={"status": "inactive"}, headers=ADMIN).json()
        assert [c["first_name"] for c in inactive_only["customers"]] == ["Cleo"]

        first_page = client.get(
            BASE, params={"limit": 2, "sort": "first_name", "order": "asc"}, headers=ADMIN
        ).json()
        assert [c["first_name"] for c in first_page["customers"]] == ["Ada", "Bob"]
        assert first_page["pagination"]["total_pages"] == 2

        second_page = client.get(
            BASE, params={"limit": 2, "page": 2, "sort": "first_name", "order": "asc"}, headers=ADMIN
        ).json()
        assert [c["first_name"] for c in second_page["customers"]] == ["Cleo"]

    def test_update_rejects_taken_email(self, client, create):
        create()
        other = create(first_name="Bob", email="bob@example.com")

        response = client.patch(f"{BASE}/{other['id']}", json={"email": "ada@example.com"}, headers=ADMIN)
        assert response.status_code == 409

        renamed = client.patch(f"{BASE}/{other['id']}", json={"last_name": "Miller"}, headers=ADMIN)
        assert renamed.json()["customer"]["last_name"] == "Miller"

    def test_get_missing_customer(self, client):
        assert client.get(f"{BASE}/999", headers=ADMIN).status_code == 404

    def test_bulk_delete(self, client, create):
        first = create()
        second = create(first_name="Bob", email="bob@example.com")
        client.post(
            f"{BASE}/{first['id']}/addresses",
            json={"first_name": "Ada", "last_name": "Baker", "address_line1": "1 Main St",
                  "city": "Portland", "state": "OR", "zip": "97201"},
            headers=ADMIN,
        )

        response = client.request("DELETE", BASE, json={"ids": [first["id"], second["id"]]}, headers=ADMIN)

        assert response.status_code == 200
        assert response.json()["deleted"] == 2
        assert client.get(BASE, headers=ADMIN).json()["pagination"]["total"] == 0

    def test_delete_blocked_by_orders(self, client, create, db_session, now):
        customer = create(user_id="u-100")
        db_session.add(
            Order(
                order_no="ORD-CUSTOMER-1",
                owner_id="user:u-100",
                status=OrderStatus.PAID,
                total_amount=Decimal("9.00"),
                payment_deadline=now,
            )
        )
        db_session.commit()

        single = client.delete(f"{BASE}/{customer['id']}", headers=ADMIN)
        bulk = client.request("DELETE", BASE, json={"ids": [customer["id"]]}, headers=ADMIN)

        assert single.status_code == 409
        assert bulk.status_code == 409
        assert client.get(f"{BASE}/{customer['id']}", headers=ADMIN).status_code == 200

    def test_delete_single(self, client, create):
        customer = create()
        assert client.delete(f"{BASE}/{customer['id']}", headers=ADMIN).status_code == 200
        assert client.delete(f"{BASE}/{customer['id']}", headers=ADMIN).status_code == 404


class TestAdminAddresses:
    """收货地址路由测试类"""

    ADDRESS = {
        "first_name": "Ada",
        "last_name": "Baker",
        "address_line1": "1 Main St",
        "city": "Portland",
        "state": "OR",
        "zip": "97201",
    }

    @pytest.fixture
    def customer(self, client):
        response = client.post(
            BASE,
            json={"first_name": "Ada", "last_name": "Baker", "email": "ada@example.com"},
            headers=ADMIN,
        )
        return response.json()["customer"]

    def _add(self, client, customer, **fields):
        response = client.post(
            f"{BASE}/{customer['id']}/addresses", json={**self.ADDRESS, **fields}, headers=ADMIN
        )
        assert response.status_code == 201, response.text
        return response.json()["address"]

    def test_create_applies_defaults(self, client, customer):
        address = self._add(client, customer, address_line2="")

        assert address["label"] == "Home"
        assert address["country"] == "US"
        assert address["address_line2"] is None
        assert address["is_default"] is False

    def test_create_requires_fields(self, client, customer):
        response = client.post(
            f"{BASE}/{customer['id']}/addresses", json={**self.ADDRESS, "zip": ""}, headers=ADMIN
        )
        assert response.status_code == 422

    def test_create_for_missing_customer(self, client):
        response = client.post(f"{BASE}/999/addresses", json=self.ADDRESS, headers=ADMIN)
        assert response.status_code == 404

    def test_single_default_address(self, client, customer):
        home = self._add(client, customer, is_default=True)
        work = self._add(client, customer, label="Work")

        client.patch(f"{BASE}/{customer['id']}/addresses/{work['id']}", json={"is_default": True}, headers=ADMIN)

        listed = client.get(f"{BASE}/{customer['id']}/addresses", headers=ADMIN).json()["addresses"]
        assert [(a["id"], a["is_default"]) for a in listed] == [(work["id"], True), (home["id"], False)]

    def test_update_and_delete(self, client, customer):
        address = self._add(client, customer)
        url = f"{BASE}/{customer['id']}/addresses/{address['id']}"

        updated = client.patch(url, json={"city": "Salem", "country": "us"}, headers=ADMIN)
        assert updated.status_code == 200
        assert (updated.json()["address"]["city"], updated.json()["address"]["country"]) == ("Salem", "US")

        assert client.delete(url, headers=ADMIN).status_code == 200
        assert client.delete(url, headers=ADMIN).status_code == 404
        assert client.get(f"{BASE}/{customer['id']}/addresses", headers=ADMIN).json()["addresses"] == []

    def test_address_of_other_customer(self, client, customer):
        address = self._add(client, customer)
        other = client.post(
            BASE, json={"first_name": "Bob", "last_name": "B", "email": "bob@example.com"}, headers=ADMIN
        ).json()["customer"]

        response = client.patch(
            f"{BASE}/{other['id']}/addresses/{address['id']}", json={"city": "Salem"}, headers=ADMIN
        )
        assert response.status_code == 404
