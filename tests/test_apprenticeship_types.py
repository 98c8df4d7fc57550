"""
Apprenticeship Registry
Tests — apprenticeship type taxonomy.
"""

from apprenticeship_registry.models import db
from apprenticeship_registry.models.apprenticeship import ApprenticeshipType


class TestApprenticeshipTypes:

    def test_create_and_list(self, client):
        res = client.post("/api/v1/apprenticeship-types", json={"name": "Учебная", "description": "1st year"})
        assert res.status_code == 201
        assert res.get_json()["result"]["name"] == "Учебная"

        res = client.get("/api/v1/apprenticeship-types")
        body = res.get_json()
        assert body["total"] == 1
        assert body["items"][0]["description"] == "1st year"

    def test_create_requires_name(self, client):
        res = client.post("/api/v1/apprenticeship-types", json={"name": "  "})
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"

    def test_duplicate_name_conflicts(self, client, apprenticeship_type):
        res = client.post("/api/v1/apprenticeship-types", json={"name": apprenticeship_type.name})
        assert res.status_code == 409

    def test_delete_unreferenced(self, client, apprenticeship_type):
        type_id = apprenticeship_type.id
        res = client.delete(f"/api/v1/apprenticeship-types/{type_id}")
        assert res.status_code == 200
        assert res.get_json()["result"]["id"] == type_id
        db.session.expire_all()
        assert db.session.get(ApprenticeshipType, type_id) is None

    def test_delete_referenced_type_conflicts(self, client, apprenticeship, apprenticeship_type):
        type_id = apprenticeship_type.id
        res = client.delete(f"/api/v1/apprenticeship-types/{type_id}")
        assert res.status_code == 409
        assert "still referenced" in res.get_json()["error"]
        db.session.expire_all()
        assert db.session.get(ApprenticeshipType, type_id) is not None

    def test_delete_missing(self, client):
        assert client.delete("/api/v1/apprenticeship-types/missing").status_code == 404
