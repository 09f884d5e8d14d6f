"""后台规格模板路由测试"""
import pytest

ADMIN = {"X-User-Id": "admin-1"}
BASE = "/api/v1/admin/variations"


class TestAdminVariations:
    """规格模板路由测试类"""

    @pytest.fixture
    def template(self, client):
        response = client.post(BASE, json={"name": "Size"}, headers=ADMIN)
        assert response.status_code == 201, response.text
        return response.json()["template"]

    def _add(self, client, template, value, **fields):
        return client.post(
            f"{BASE}/{template['id']}/values", json={"value": value, **fields}, headers=ADMIN
        )

    def test_requires_admin(self, client):
        assert client.post(BASE, json={"name": "Size"}).status_code == 401
        assert client.get(BASE, headers={"X-User-Id": "42"}).status_code == 403

    def test_template_name_unique_ignoring_case(self, client, template):
        response = client.post(BASE, json={"name": "  size "}, headers=ADMIN)

        assert response.status_code == 409
        assert response.json()["code"] == "conflict"

    def test_rename_template(self, client, template):
        other = client.post(BASE, json={"name": "Flavor"}, headers=ADMIN).json()["template"]

        clash = client.patch(f"{BASE}/{other['id']}", json={"name": "SIZE"}, headers=ADMIN)
        recased = client.patch(f"{BASE}/{template['id']}", json={"name": "SIZE"}, headers=ADMIN)

        assert clash.status_code == 409
        assert recased.status_code == 200
        assert recased.json()["template"]["name"] == "SIZE"

    def test_values_append_in_order(self, client, template):
        first = self._add(client, template, "6 inch").json()["value"]
        second = self._add(client, template, "8 inch").json()["value"]
        pinned = self._add(client, template, "4 inch", display_order=10).json()["value"]

        assert (first["display_order"], second["display_order"], pinned["display_order"]) == (0, 1, 10)

        detail = client.get(f"{BASE}/{template['id']}", headers=ADMIN).json()["template"]
        assert [v["value"] for v in detail["values"]] == ["6 inch", "8 inch", "4 inch"]

    def test_duplicate_value_in_template(self, client, template):
        self._add(client, template, "6 inch")
        other = client.post(BASE, json={"name": "Box"}, headers=ADMIN).json()["template"]

        assert self._add(client, template, "6 INCH").status_code == 409
        assert self._add(client, other, "6 inch").status_code == 201

    def test_update_value(self, client, template):
        value = self._add(client, template, "6 inch").json()["value"]
        self._add(client, template, "8 inch")
        url = f"{BASE}/{template['id']}/values/{value['id']}"

        assert client.patch(url, json={}, headers=ADMIN).status_code == 422
        assert client.patch(url, json={"value": "8 Inch"}, headers=ADMIN).status_code == 409

        updated = client.patch(url, json={"display_order": 5}, headers=ADMIN)
        assert updated.status_code == 200
        assert updated.json()["value"]["display_order"] == 5

    def test_value_of_other_template(self, client, template):
        value = self._add(client, template, "6 inch").json()["value"]
        other = client.post(BASE, json={"name": "Box"}, headers=ADMIN).json()["template"]

        url = f"{BASE}/{other['id']}/values/{value['id']}"
        assert client.patch(url, json={"value": "7 inch"}, headers=ADMIN).status_code == 404
        assert client.delete(url, headers=ADMIN).status_code == 404

    def test_delete_value(self, client, template):
        value = self._add(client, template, "6 inch").json()["value"]

        url = f"{BASE}/{template['id']}/values/{value['id']}"
        assert client.delete(url, headers=ADMIN).status_code == 200
        assert client.get(f"{BASE}/{template['id']}", headers=ADMIN).json()["template"]["values"] == []

    def test_delete_template_with_values(self, client, template):
        self._add(client, template, "6 inch")

        assert client.delete(f"{BASE}/{template['id']}", headers=ADMIN).status_code == 200
        assert client.get(f"{BASE}/{template['id']}", headers=ADMIN).status_code == 404
        assert client.delete(f"{BASE}/{template['id']}", headers=ADMIN).status_code == 404
        assert client.get(BASE, headers=ADMIN).json()["templates"] == []

    def test_missing_template(self, client):
        assert client.post(f"{BASE}/999/values", json={"value": "x"}, headers=ADMIN).status_code == 404
