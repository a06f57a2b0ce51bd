"""
Integration tests for the contact form and its admin triage endpoints.
"""

from tests.conftest import auth_headers


def submit(client, **overrides):
    payload = {
        "name": "Jane Visitor",
        "email": "Jane.Visitor@Example.com",
        "subject": "Question about reports",
        "message": "Can my caregiver see my uploaded reports?",
    }
    payload.update(overrides)
    response = client.post("/api/contact", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["contact_id"]


class TestSubmitContact:

    def test_public_submit_stores_defaults(self, client, admin):
        response = client.post("/api/contact", json={
            "name": "  Jane Visitor ",
            "email": "Jane.Visitor@Example.com",
            "phone": "+15551234567",
            "subject": "Question about reports",
            "message": "Can my caregiver see my uploaded reports?",
            "category": "support",
        })

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Thank you for your message. We will get back to you soon!"

        contact = client.get(f"/api/contact/{body['contact_id']}", headers=auth_headers(admin)).json()
        assert contact["name"] == "Jane Visitor"
        assert contact["email"] == "jane.visitor@example.com"
        assert contact["category"] == "support"
        assert contact["status"] == "pending"
        assert contact["priority"] == "medium"
        assert contact["notes"] == []
        assert contact["user_agent"]

    def test_invalid_fields_rejected(self, client):
        response = client.post("/api/contact", json={
            "name": "J",
            "email": "not-an-email",
            "phone": "0123",
            "subject": "Hi",
            "message": "short",
            "category": "spam",
        })

        assert response.status_code == 422
        assert response.json()["success"] is False


class TestContactAdmin:

    def test_requires_admin(self, client, patient):
        assert client.get("/api/contact").status_code == 401
        response = client.get("/api/contact", headers=auth_headers(patient))
        assert response.status_code == 403
        assert response.json()["message"] == "Not authorized"
        assert client.get("/api/contact/stats", headers=auth_headers(patient)).status_code == 403

    def test_list_filters_and_pagination(self, client, admin):
        first = submit(client, category="support")
        second = submit(client, category="feedback")
        third = submit(client, category="support")

        page = client.get("/api/contact?limit=2", headers=auth_headers(admin)).json()
        assert [c["id"] for c in page["contacts"]] == [third, second]
        assert page["pagination"] == {
            "current_page": 1,
            "total_pages": 2,
            "total_items": 3,
            "items_per_page": 2,
        }

        support = client.get("/api/contact?category=support", headers=auth_headers(admin)).json()
        assert [c["id"] for c in support["contacts"]] == [third, first]

        pending = client.get("/api/contact?status=closed", headers=auth_headers(admin)).json()
        assert pending["contacts"] == []

    def test_get_missing(self, client, admin):
        response = client.get("/api/contact/999", headers=auth_headers(admin))

        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Contact submission not found"}

    def test_update_status_priority_and_note(self, client, admin):
        contact_id = submit(client)

        response = client.put(f"/api/contact/{contact_id}", json={
            "status": "replied",
            "priority": "high",
            "assigned_to_user_id": admin.id,
            "note": "Answered by phone",
        }, headers=auth_headers(admin))

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "replied"
        assert body["priority"] == "high"
        assert body["assigned_to_user_id"] == admin.id
        assert len(body["notes"]) == 1
        assert body["notes"][0]["content"] == "Answered by phone"
        assert body["notes"][0]["created_by_user_id"] == admin.id

        second = client.put(
            f"/api/contact/{contact_id}", json={"note": "Closed out"}, headers=auth_headers(admin)
        ).json()
        assert [n["content"] for n in second["notes"]] == ["Answered by phone", "Closed out"]
        assert second["status"] == "replied"

    def test_update_unknown_assignee(self, client, admin):
        contact_id = submit(client)

        response = client.put(
            f"/api/contact/{contact_id}", json={"assigned_to_user_id": 999}, headers=auth_headers(admin)
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Assigned user not found"

    def test_update_invalid_status(self, client, admin):
        contact_id = submit(client)

        response = client.put(f"/api/contact/{contact_id}", json={"status": "archived"}, headers=auth_headers(admin))

        assert response.status_code == 422

    def test_delete(self, client, admin):
        contact_id = submit(client)

        response = client.delete(f"/api/contact/{contact_id}", headers=auth_headers(admin))

        assert response.json() == {"success": True, "message": "Contact deleted successfully"}
        assert client.get(f"/api/contact/{contact_id}", headers=auth_headers(admin)).status_code == 404

    def test_stats(self, client, admin):
        submit(client, category="support")
        submit(client, category="support")
        closed = submit(client, category="complaint")
        client.put(
            f"/api/contact/{closed}", json={"status": "closed", "priority": "urgent"}, headers=auth_headers(admin)
        )

        stats = client.get("/api/contact/stats", headers=auth_headers(admin)).json()

        assert stats["total"] == 3
        assert stats["by_status"] == {"pending": 2, "read": 0, "replied": 0, "closed": 1}
        assert stats["by_category"] == {
            "general": 0, "support": 2, "sales": 0, "feedback": 0, "complaint": 1,
        }
        assert stats["by_priority"] == {"low": 0, "medium": 2, "high": 0, "urgent": 1}
