"""HTTP surface: status codes, body shapes and multipart uploads."""

from io import BytesIO

from conftest import auth, png_bytes, png_header


def photo(name="item.png"):
    return (BytesIO(png_bytes()), name)


def create_report(client, token, category_id, kind="lost", photos=()):
    data = {"kind": kind, "itemName": "Backpack", "categoryId": category_id, "incidentLocation": "Library"}
    if photos:
        data["photos"] = list(photos)
    return client.post("/api/v1/reports", data=data, headers=auth(token), content_type="multipart/form-data")


class TestOperational:
    def test_health(self, client):
        assert client.get("/health").get_json() == {"status": "ok"}

    def test_db_check(self, client):
        assert client.get("/db-check").get_json() == {"db": "ok"}


class TestAuth:
    def test_register_login_verify(self, client):
        resp = client.post("/api/v1/auth/register", data={
            "email": "ana@example.com", "password": "secret123", "username": "ana", "phone": "555",
            "identityDocument": photo("id.png"),
        }, content_type="multipart/form-data")
        assert resp.status_code == 201
        user = resp.get_json()["user"]
        assert user["role"] == "guest"
        assert user["identityDocumentUrl"].startswith("/uploads/identity-documents/")

        resp = client.post("/api/v1/auth/login", json={"email": "ana@example.com", "password": "secret123"})
        token = resp.get_json()["token"]
        body = client.post("/api/v1/auth/verify", json={"token": token}).get_json()
        assert body["valid"] is True and body["role"] == "guest"

    def test_register_missing_fields(self, client):
        resp = client.post("/api/v1/auth/register", json={"email": "ana@example.com"})
        assert resp.status_code == 400
        assert "details" in resp.get_json()

    def test_duplicate_email(self, client, guest):
        resp = client.post("/api/v1/auth/register", json={
            "email": "guest1@example.com", "password": "secret123", "username": "x", "phone": "1",
        })
        assert resp.status_code == 409
        assert resp.get_json() == {"error": "Email already in use"}

    def test_bad_login(self, client, guest):
        resp = client.post("/api/v1/auth/login", json={"email": "guest1@example.com", "password": "nope-nope"})
        assert resp.status_code == 401


class TestReports:
    def test_requires_token(self, client, category):
        resp = client.post("/api/v1/reports", json={"kind": "lost", "itemName": "x", "categoryId": category.id})
        assert resp.status_code == 401
        assert "error" in resp.get_json()

    def test_invalid_token(self, client, category):
        resp = create_report(client, "garbage", category.id)
        assert resp.status_code == 401

    def test_create_with_photos(self, client, guest, category):
        resp = create_report(client, guest[1], category.id, photos=[photo(), photo("b.png")])
        assert resp.status_code == 201
        report = resp.get_json()["report"]
        assert report["status"] == "open"
        assert len(report["photoUrls"]) == 2
        assert client.get(report["photoUrls"][0]).status_code == 200

    def test_too_many_photos(self, client, guest, category):
        resp = create_report(client, guest[1], category.id, photos=[photo(f"{i}.png") for i in range(4)])
        assert resp.status_code == 400

    def test_non_image_rejected(self, client, guest, category):
        resp = create_report(client, guest[1], category.id, photos=[(BytesIO(b"plain text"), "notes.txt")])
        assert resp.status_code == 400

    def test_oversized_image_rejected(self, client, guest, category):
        resp = create_report(client, guest[1], category.id, photos=[(BytesIO(png_header(60000, 60000)), "huge.png")])
        assert resp.status_code == 400
        assert client.get("/api/v1/reports").get_json()["reports"] == []

    def test_list_and_filter(self, client, guest, category):
        create_report(client, guest[1], category.id, kind="lost")
        create_report(client, guest[1], category.id, kind="found")
        assert len(client.get("/api/v1/reports").get_json()["reports"]) == 2
        found = client.get("/api/v1/reports?kind=found").get_json()["reports"]
        assert [r["kind"] for r in found] == ["found"]
        assert client.get("/api/v1/reports?kind=stolen").status_code == 400

    def test_get_missing(self, client):
        resp = client.get("/api/v1/reports/rep-missing")
        assert resp.status_code == 404
        assert resp.get_json() == {"error": "Report not found"}

    def test_guest_cannot_edit(self, client, guest, category):
        report_id = create_report(client, guest[1], category.id).get_json()["report"]["id"]
        resp = client.put(f"/api/v1/reports/{report_id}", json={"itemName": "Other"}, headers=auth(guest[1]))
        assert resp.status_code == 403
        assert resp.get_json()["yourRole"] == "guest"

    def test_admin_edit_kind_rejected(self, client, guest, admin, category):
        report_id = create_report(client, guest[1], category.id).get_json()["report"]["id"]
        resp = client.put(f"/api/v1/reports/{report_id}", json={"kind": "found"}, headers=auth(admin[1]))
        assert resp.status_code == 400

    def test_status_patch_rejects_inconsistent_value(self, client, guest, staff, category):
        report_id = create_report(client, guest[1], category.id).get_json()["report"]["id"]
        resp = client.patch(f"/api/v1/reports/{report_id}/status", json={"status": "closed"}, headers=auth(staff[1]))
        assert resp.status_code == 409
        resp = client.patch(f"/api/v1/reports/{report_id}/status", json={"status": "open"}, headers=auth(staff[1]))
        assert resp.status_code == 200

    def test_delete(self, client, guest, admin, category):
        report_id = create_report(client, guest[1], category.id).get_json()["report"]["id"]
        assert client.delete(f"/api/v1/reports/{report_id}", headers=auth(admin[1])).status_code == 200
        assert client.get(f"/api/v1/reports/{report_id}").status_code == 404


class TestMatchAndClaim:
    def test_lifecycle_over_http(self, client, guest, staff, category):
        lost_id = create_report(client, guest[1], category.id, kind="lost").get_json()["report"]["id"]
        found_id = create_report(client, staff[1], category.id, kind="found").get_json()["report"]["id"]

        resp = client.post("/api/v1/matches", json={"lostReportId": lost_id, "foundReportId": found_id, "score": 0.9},
                           headers=auth(staff[1]))
        assert resp.status_code == 201
        match_id = resp.get_json()["match"]["id"]

        again = client.post("/api/v1/matches", json={"lostReportId": lost_id, "foundReportId": found_id},
                            headers=auth(staff[1]))
        assert again.status_code == 409

        available = client.get("/api/v1/claims/available-matches", headers=auth(staff[1])).get_json()["matches"]
        assert available[0]["lostReport"]["id"] == lost_id

        recipient = client.get(f"/api/v1/claims/available-recipient?matchId={match_id}", headers=auth(staff[1]))
        recipient_id = recipient.get_json()["recipient"]["recipientId"]
        assert recipient_id == guest[0].id

        resp = client.post("/api/v1/claims", data={"matchId": match_id, "recipientId": recipient_id, "proof": photo()},
                           headers=auth(staff[1]), content_type="multipart/form-data")
        assert resp.status_code == 201
        assert resp.get_json()["claim"]["proofUrl"].startswith("/uploads/claims/")

        statuses = {r["id"]: r["status"] for r in client.get("/api/v1/reports").get_json()["reports"]}
        assert statuses == {lost_id: "closed", found_id: "closed"}

        second = client.post("/api/v1/claims", data={"matchId": match_id, "recipientId": recipient_id, "proof": photo()},
                             headers=auth(staff[1]), content_type="multipart/form-data")
        assert second.status_code == 409

        mine = client.get("/api/v1/claims", headers=auth(guest[1])).get_json()["claims"]
        assert [c["matchId"] for c in mine] == [match_id]

    def test_guest_cannot_match(self, client, guest, category):
        lost_id = create_report(client, guest[1], category.id, kind="lost").get_json()["report"]["id"]
        found_id = create_report(client, guest[1], category.id, kind="found").get_json()["report"]["id"]
        resp = client.post("/api/v1/matches", json={"lostReportId": lost_id, "foundReportId": found_id},
                           headers=auth(guest[1]))
        assert resp.status_code == 403
        assert resp.get_json()["requiredRoles"] == ["admin", "staff"]

    def test_wrong_kinds(self, client, guest, staff, category):
        a = create_report(client, guest[1], category.id, kind="lost").get_json()["report"]["id"]
        b = create_report(client, guest[1], category.id, kind="lost").get_json()["report"]["id"]
        resp = client.post("/api/v1/matches", json={"lostReportId": a, "foundReportId": b}, headers=auth(staff[1]))
        assert resp.status_code == 400

    def test_claim_without_proof(self, client, guest, staff, category):
        lost_id = create_report(client, guest[1], category.id, kind="lost").get_json()["report"]["id"]
        found_id = create_report(client, guest[1], category.id, kind="found").get_json()["report"]["id"]
        match_id = client.post("/api/v1/matches", json={"lostReportId": lost_id, "foundReportId": found_id},
                               headers=auth(staff[1])).get_json()["match"]["id"]
        resp = client.post("/api/v1/claims", json={"matchId": match_id, "recipientId": guest[0].id},
                           headers=auth(staff[1]))
        assert resp.status_code == 400

    def test_delete_match(self, client, guest, staff, category):
        lost_id = create_report(client, guest[1], category.id, kind="lost").get_json()["report"]["id"]
        found_id = create_report(client, guest[1], category.id, kind="found").get_json()["report"]["id"]
        match_id = client.post("/api/v1/matches", json={"lostReportId": lost_id, "foundReportId": found_id},
                               headers=auth(staff[1])).get_json()["match"]["id"]
        assert client.delete(f"/api/v1/matches/{match_id}", headers=auth(staff[1])).status_code == 200
        assert client.get(f"/api/v1/reports/{lost_id}").get_json()["report"]["status"] == "open"


class TestUsers:
    def test_profile(self, client, guest):
        body = client.get("/api/v1/users/profile", headers=auth(guest[1])).get_json()
        assert body["user"]["email"] == "guest1@example.com"
        resp = client.put("/api/v1/users/profile", json={"phone": "555-1234"}, headers=auth(guest[1]))
        assert resp.get_json()["user"]["phone"] == "555-1234"

    def test_list_requires_staff(self, client, guest, staff):
        assert client.get("/api/v1/users", headers=auth(guest[1])).status_code == 403
        assert len(client.get("/api/v1/users", headers=auth(staff[1])).get_json()["users"]) == 2

    def test_admin_manages_users(self, client, admin, guest):
        resp = client.post("/api/v1/users", json={"email": "new@example.com", "password": "secret123",
                                                  "username": "new", "role": "staff"}, headers=auth(admin[1]))
        assert resp.status_code == 201
        user_id = resp.get_json()["user"]["id"]

        resp = client.patch(f"/api/v1/users/{user_id}/role", json={"role": "admin"}, headers=auth(admin[1]))
        assert resp.get_json()["user"]["role"] == "admin"
        resp = client.patch(f"/api/v1/users/{user_id}/role", json={"role": "owner"}, headers=auth(admin[1]))
        assert resp.status_code == 400

        resp = client.put(f"/api/v1/users/{user_id}", json={"username": "renamed", "email": "renamed@example.com"},
                          headers=auth(admin[1]))
        assert resp.get_json()["user"]["username"] == "renamed"

        assert client.delete(f"/api/v1/users/{user_id}", headers=auth(admin[1])).status_code == 200
        assert client.get(f"/api/v1/users/{user_id}", headers=auth(admin[1])).status_code == 404

    def test_role_change_applies_to_existing_token(self, client, admin, guest):
        assert client.get("/api/v1/users", headers=auth(guest[1])).status_code == 403
        client.patch(f"/api/v1/users/{guest[0].id}/role", json={"role": "staff"}, headers=auth(admin[1]))
        assert client.get("/api/v1/users", headers=auth(guest[1])).status_code == 200

    def test_self_delete(self, client, admin):
        resp = client.delete(f"/api/v1/users/{admin[0].id}", headers=auth(admin[1]))
        assert resp.status_code == 403


class TestCategories:
    def test_crud(self, client, staff):
        resp = client.post("/api/v1/categories", json={"name": "Keys"}, headers=auth(staff[1]))
        assert resp.status_code == 201
        category_id = resp.get_json()["category"]["id"]
        assert client.post("/api/v1/categories", json={"name": "Keys"}, headers=auth(staff[1])).status_code == 409
        resp = client.put(f"/api/v1/categories/{category_id}", json={"name": "Keyrings"}, headers=auth(staff[1]))
        assert resp.get_json()["category"]["name"] == "Keyrings"
        assert [c["name"] for c in client.get("/api/v1/categories").get_json()["categories"]] == ["Keyrings"]
        assert client.delete(f"/api/v1/categories/{category_id}", headers=auth(staff[1])).status_code == 200

    def test_in_use_category(self, client, guest, staff, category):
        create_report(client, guest[1], category.id)
        resp = client.delete(f"/api/v1/categories/{category.id}", headers=auth(staff[1]))
        assert resp.status_code == 409

    def test_guest_cannot_write(self, client, guest):
        assert client.post("/api/v1/categories", json={"name": "X"}, headers=auth(guest[1])).status_code == 403
