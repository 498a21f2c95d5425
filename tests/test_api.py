"""Tests for the HTTP API - routing, authorization and error translation."""
import pytest

from letterflow.api.routes import get_drafting_client
from letterflow.main import app

ADMIN = {"X-User-Id": "1"}
MANAGER = {"X-User-Id": "2"}
EMPLOYEE = {"X-User-Id": "3"}


def compose(client, headers=ADMIN, recipients=None, subject="Budget request"):
    recipients = recipients or [
        {"user_id": "2", "role": "SIGNER"},
        {"user_id": "3", "role": "VIEWER"},
    ]
    return client.post("/api/letters", headers=headers, json={
        "subject": subject,
        "content": "Please review.",
        "recipients": recipients,
    })


class TestAuth:

    def test_login_success(self, client):
        response = client.post("/api/auth/login", json={"username": "admin", "password": "123"})

        assert response.status_code == 200
        body = response.json()
        assert body["id"] == "1"
        assert "password_hash" not in body

    def test_login_failure_is_generic(self, client):
        wrong = client.post("/api/auth/login", json={"username": "admin", "password": "wrong"})
        unknown = client.post("/api/auth/login", json={"username": "ghost", "password": "123"})

        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json() == unknown.json()

    def test_overlong_password_is_unauthorized(self, client):
        response = client.post("/api/auth/login", json={"username": "admin", "password": "x" * 100})

        assert response.status_code == 401

    def test_create_user_with_overlong_password_is_bad_request(self, client):
        response = client.post("/api/users", headers=ADMIN, json={
            "username": "long", "password": "y" * 100, "full_name": "Long", "role": "EMPLOYEE",
        })

        assert response.status_code == 400
        assert "72 bytes" in response.json()["detail"]["message"]

    def test_unknown_acting_user(self, client):
        assert client.get("/api/letters", headers={"X-User-Id": "99"}).status_code == 401

    def test_missing_acting_user_header(self, client):
        assert client.get("/api/letters").status_code == 422


class TestLetterFlow:

    def test_compose_sign_and_list(self, client):
        created = compose(client)
        assert created.status_code == 201
        letter = created.json()
        assert letter["status"] == "PENDING"
        assert letter["sender_name"] == "System Administrator"
        assert [r["user_name"] for r in letter["recipients"]] == ["Reza Alavi", "Sara Mohammadi"]

        assert [l["id"] for l in client.get("/api/letters/pending", headers=MANAGER).json()] == [letter["id"]]

        signed = client.post(f"/api/letters/{letter['id']}/action", headers=MANAGER, json={
            "status": "APPROVED",
            "signature_image": "data:image/png;base64,AAA",
        })
        assert signed.status_code == 200
        assert signed.json()["status"] == "APPROVED"

        stats = client.get("/api/letters/stats", headers=MANAGER).json()
        assert stats == {"total": 1, "pending": 0, "approved": 1, "rejected": 0}
        assert len(client.get("/api/letters/inbox", headers=EMPLOYEE).json()) == 1
        assert len(client.get("/api/letters/sent", headers=ADMIN).json()) == 1

    def test_reject_with_comment(self, client):
        letter = compose(client).json()

        response = client.post(f"/api/letters/{letter['id']}/action", headers=MANAGER, json={
            "status": "REJECTED",
            "comment": "missing budget code",
        })

        assert response.json()["status"] == "REJECTED"
        assert response.json()["recipients"][0]["comment"] == "missing budget code"

    def test_empty_recipients_rejected(self, client):
        assert compose(client, recipients=[]).status_code == 422

    def test_duplicate_recipients_rejected(self, client):
        response = compose(client, recipients=[
            {"user_id": "2", "role": "SIGNER"},
            {"user_id": "2", "role": "VIEWER"},
        ])
        assert response.status_code == 400
        assert "more than once" in response.json()["detail"]["message"]

    def test_unknown_recipient_rejected(self, client):
        response = compose(client, recipients=[{"user_id": "99", "role": "SIGNER"}])
        assert response.status_code == 400

    def test_action_by_non_recipient_is_not_found(self, client):
        letter = compose(client).json()
        response = client.post(f"/api/letters/{letter['id']}/action", headers=ADMIN, json={"status": "APPROVED"})
        assert response.status_code == 404

    def test_outsider_cannot_read_letter(self, client):
        letter = compose(client, recipients=[{"user_id": "2", "role": "SIGNER"}]).json()

        assert client.get(f"/api/letters/{letter['id']}", headers=EMPLOYEE).status_code == 404
        assert client.get(f"/api/letters/{letter['id']}", headers=MANAGER).status_code == 200


class TestAdministration:

    def test_admin_only_routes(self, client):
        assert client.get("/api/letters/all", headers=MANAGER).status_code == 403
        assert client.get("/api/logs", headers=EMPLOYEE).status_code == 403
        assert client.get("/api/letters/all", headers=ADMIN).status_code == 200

    def test_add_signer_reopens_approved_letter(self, client):
        letter = compose(client, recipients=[{"user_id": "3", "role": "VIEWER"}]).json()
        assert letter["status"] == "APPROVED"

        response = client.post(
            f"/api/letters/{letter['id']}/recipients", headers=ADMIN, json={"user_id": "2", "role": "SIGNER"}
        )

        assert response.status_code == 200
        assert response.json()["status"] == "PENDING"

    def test_update_with_stale_version_conflicts(self, client):
        letter = compose(client).json()
        client.post(f"/api/letters/{letter['id']}/action", headers=MANAGER, json={"status": "APPROVED"})

        letter["subject"] = "Edited from a stale copy"
        response = client.put(f"/api/letters/{letter['id']}", headers=ADMIN, json=letter)

        assert response.status_code == 409

    def test_update_subject(self, client):
        letter = compose(client).json()
        letter["subject"] = "Budget request (revised)"

        response = client.put(f"/api/letters/{letter['id']}", headers=ADMIN, json=letter)

        assert response.status_code == 200
        assert response.json()["subject"] == "Budget request (revised)"
        assert response.json()["version"] == letter["version"] + 1

    def test_user_management(self, client):
        created = client.post("/api/users", headers=ADMIN, json={
            "username": "clerk", "password": "pw", "full_name": "New Clerk", "role": "EMPLOYEE",
        })
        assert created.status_code == 201
        user_id = created.json()["id"]

        listed = client.get("/api/users", headers=EMPLOYEE).json()
        assert "clerk" in {u["username"] for u in listed}
        assert all("password_hash" not in u for u in listed)

        assert client.delete(f"/api/users/{user_id}", headers=ADMIN).status_code == 204
        assert client.delete(f"/api/users/{user_id}", headers=ADMIN).status_code == 404

    def test_users_edit_only_themselves(self, client):
        profile = {"username": "employee", "full_name": "Sara M.", "role": "EMPLOYEE", "position": "Sales"}

        assert client.put("/api/users/3", headers=EMPLOYEE, json=profile).status_code == 200
        assert client.put("/api/users/2", headers=EMPLOYEE, json=profile).status_code == 403
        promoted = dict(profile, role="ADMIN")
        assert client.put("/api/users/3", headers=EMPLOYEE, json=promoted).status_code == 403

    def test_settings(self, client):
        assert client.get("/api/settings").json()["theme_color"] == "#0ea5e9"

        new_settings = {"site_name": "Head Office", "theme_color": "#112233"}
        assert client.put("/api/settings", headers=EMPLOYEE, json=new_settings).status_code == 403
        assert client.put("/api/settings", headers=ADMIN, json=new_settings).status_code == 200
        assert client.get("/api/settings").json()["site_name"] == "Head Office"

    def test_logs_record_actions(self, client):
        client.post("/api/auth/login", json={"username": "manager", "password": "123"})
        compose(client)

        actions = [e["action"] for e in client.get("/api/logs", headers=ADMIN).json()]
        assert actions[:2] == ["CREATE_LETTER", "LOGIN"]


class TestDrafting:

    @pytest.fixture
    def fake_drafting(self):
        class FakeDrafting:
            def draft_letter(self, topic, sender_name, recipient_names):
                return f"{topic} from {sender_name} to {', '.join(recipient_names)}"

        app.dependency_overrides[get_drafting_client] = FakeDrafting
        yield
        app.dependency_overrides.pop(get_drafting_client, None)

    def test_draft_uses_recipient_names(self, client, fake_drafting):
        response = client.post("/api/letters/draft", headers=EMPLOYEE, json={
            "topic": "Leave request", "recipient_ids": ["2"],
        })

        assert response.status_code == 200
        assert response.json()["text"] == "Leave request from Sara Mohammadi to Reza Alavi"


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"
