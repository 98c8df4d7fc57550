"""
Apprenticeship Registry
Tests — users, curators and curator groups.
"""


class TestUsers:

    def test_create_and_get(self, client):
        res = client.post("/api/v1/users", json={"telegram_id": 424242, "full_name": "Olga"})
        assert res.status_code == 201
        created = res.get_json()
        assert created["telegram_id"] == "424242"
        assert created["role"] == "STUDENT"

        res = client.get(f"/api/v1/users/{created['id']}")
        assert res.status_code == 200
        assert res.get_json()["full_name"] == "Olga"

    def test_telegram_id_required(self, client):
        assert client.post("/api/v1/users", json={"full_name": "No chat"}).status_code == 400

    def test_invalid_role(self, client):
        res = client.post("/api/v1/users", json={"telegram_id": "1", "role": "dean"})
        assert res.status_code == 400

    def test_duplicate_telegram_id(self, client, user):
        res = client.post("/api/v1/users", json={"telegram_id": user.telegram_id})
        assert res.status_code == 409

    def test_list_filters_by_role(self, client, user):
        client.post("/api/v1/users", json={"telegram_id": "2", "role": "curator"})
        res = client.get("/api/v1/users?role=curator")
        body = res.get_json()
        assert body["total"] == 1
        assert body["items"][0]["role"] == "CURATOR"

    def test_get_missing(self, client):
        assert client.get("/api/v1/users/missing").status_code == 404


class TestCurators:

    def test_create_and_list(self, client):
        res = client.post("/api/v1/curators", json={"full_name": "Anna", "email": "anna@example.org"})
        assert res.status_code == 201
        body = client.get("/api/v1/curators").get_json()
        assert body["total"] == 1
        assert body["items"][0]["email"] == "anna@example.org"

    def test_full_name_required(self, client):
        assert client.post("/api/v1/curators", json={}).status_code == 400


class TestCuratorGroups:

    def test_create_and_list(self, client):
        assert client.post("/api/v1/curator-groups", json={"name": "ИСП-21"}).status_code == 201
        body = client.get("/api/v1/curator-groups").get_json()
        assert [g["name"] for g in body["items"]] == ["ИСП-21"]

    def test_duplicate_name(self, client):
        client.post("/api/v1/curator-groups", json={"name": "ИСП-21"})
        assert client.post("/api/v1/curator-groups", json={"name": "ИСП-21"}).status_code == 409
