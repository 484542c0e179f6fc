import pytest

from app.extensions import db
from app.models import DELETED_COMMENT_MARKER, Feedback, Topic


@pytest.fixture()
def people(app, make_user, make_topic):
    with app.app_context():
        owner = make_user(password="owner-pass")
        dev = make_user(role="developer")
        admin = make_user(role="admin")
        topic = make_topic("Mobile")
        return {"owner": owner.id, "dev": dev.id, "admin": admin.id, "topic": topic.id}


def _new_feedback(client, login, people, **overrides):
    login(client, people["owner"])
    body = {
        "title": "Offline mode",
        "description": "Let the app work without a connection.",
        "topic_id": people["topic"],
    }
    body.update(overrides)
    return client.post("/api/feedback", json=body)


def test_healthz(client):
    assert client.get("/healthz").get_json() == {"status": "ok"}


def test_anonymous_writes_are_unauthorized(client, people):
    resp = client.post("/api/feedback", json={"title": "Offline mode", "description": "x" * 20, "topic_id": people["topic"]})
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "unauthorized"


def test_anonymous_invalid_bodies_are_unauthorized_not_invalid(client, people):
    resp = client.post("/api/tasks", json={})
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "unauthorized"
    assert client.post("/api/feedback", json={"title": "x"}).status_code == 401
    assert client.patch(f"/api/admin/users/{people['owner']}/role", json={}).status_code == 401


def test_public_reads(client, login, people):
    _new_feedback(client, login, people)
    anon = client.application.test_client()
    resp = anon.get("/api/feedback")
    assert resp.status_code == 200
    assert resp.get_json()[0]["upvote_count"] == 0
    assert anon.get("/api/topics").get_json()[0]["name"] == "Mobile"


def test_create_feedback_returns_201(client, login, people):
    resp = _new_feedback(client, login, people)
    assert resp.status_code == 201
    data = resp.get_json()
    assert data["status"] == "open"
    assert data["user_id"] == people["owner"]
    assert data["topic"]["name"] == "Mobile"


def test_validation_errors_list_details(client, login, people):
    resp = _new_feedback(client, login, people, title="Hi", description="short")
    assert resp.status_code == 400
    body = resp.get_json()
    assert body["error"] == "validation_error"
    assert any(d.startswith("title:") for d in body["details"])
    assert any(d.startswith("description:") for d in body["details"])


def test_missing_entities_are_404(client, login, people):
    login(client, people["owner"])
    assert client.get("/api/feedback/9999").status_code == 404
    resp = _new_feedback(client, login, people, topic_id=9999)
    assert resp.status_code == 404
    assert resp.get_json()["error"] == "not_found"


def test_non_staff_cannot_create_tasks(client, login, people):
    fb_id = _new_feedback(client, login, people).get_json()["id"]
    resp = client.post("/api/tasks", json={"title": "Ship offline mode", "feedback_id": fb_id})
    assert resp.status_code == 403
    assert resp.get_json()["error"] == "forbidden"


def test_task_board_flow_over_http(app, client, login, people):
    fb_id = _new_feedback(client, login, people).get_json()["id"]

    login(client, people["dev"])
    resp = client.post("/api/tasks", json={"title": "Ship offline mode", "feedback_id": fb_id, "priority": "high"})
    assert resp.status_code == 201
    task_id = resp.get_json()["id"]
    assert client.get(f"/api/feedback/{fb_id}").get_json()["status"] == "in-development"

    for _ in range(3):
        assert client.post(f"/api/tasks/{task_id}/advance").status_code == 200
    assert client.post(f"/api/tasks/{task_id}/advance").status_code == 409

    assert client.post(f"/api/tasks/{task_id}/review", json={"approved": "yes"}).status_code == 400
    resp = client.post(f"/api/tasks/{task_id}/review", json={"approved": True})
    assert resp.get_json()["status"] == "completed"
    assert client.get(f"/api/feedback/{fb_id}").get_json()["status"] == "completed"

    entry = {"title": "Offline mode", "description": "Works on the subway now.", "task_id": task_id}
    resp = client.post("/api/changelog", json=entry)
    assert resp.status_code == 201
    entry_id = resp.get_json()["id"]
    resp = client.post("/api/changelog", json=entry)
    assert resp.status_code == 409
    assert "already has a changelog entry" in resp.get_json()["message"]

    detail = client.get(f"/api/tasks/{task_id}").get_json()
    assert detail["changelog"]["task_id"] == task_id

    resp = client.patch(f"/api/changelog/{entry_id}", json={"title": "Offline mode everywhere"})
    assert resp.status_code == 200
    assert resp.get_json()["title"] == "Offline mode everywhere"

    # guards
    login(client, people["admin"])
    assert client.delete(f"/api/tasks/{task_id}").status_code == 409
    assert client.delete(f"/api/feedback/{fb_id}").status_code == 409
    assert client.delete(f"/api/topics/{people['topic']}").status_code == 409


def test_upvote_toggle_endpoint(client, login, people):
    fb_id = _new_feedback(client, login, people).get_json()["id"]
    assert client.post(f"/api/feedback/{fb_id}/upvote").get_json() == {"upvoted": True, "count": 1}
    assert client.get(f"/api/feedback/{fb_id}/upvote").get_json() == {"count": 1, "user_upvoted": True}
    assert client.post(f"/api/feedback/{fb_id}/upvote").get_json() == {"upvoted": False, "count": 0}
    assert client.get("/api/feedback/9999/upvote").status_code == 404


def test_comment_thread_over_http(app, client, login, people):
    fb_id = _new_feedback(client, login, people).get_json()["id"]

    c1 = client.post(f"/api/feedback/{fb_id}/comments", json={"content": "Any timeline?"}).get_json()
    resp = client.post(f"/api/feedback/{fb_id}/comments", json={"content": "Bump", "parent_id": c1["id"]})
    assert resp.status_code == 201
    c2 = resp.get_json()
    assert client.post(f"/api/feedback/{fb_id}/comments", json={"content": "   "}).status_code == 400

    resp = client.post(f"/api/feedback/{fb_id}/comments/{c1['id']}/answer")
    assert resp.get_json() == {"is_answer": True, "feedback_status": "closed"}

    tree = client.get(f"/api/feedback/{fb_id}/comments?tree=1").get_json()
    assert [n["id"] for n in tree] == [c1["id"]]
    assert tree[0]["replies"][0]["id"] == c2["id"]

    resp = client.delete(f"/api/feedback/{fb_id}/comments/{c1['id']}/answer")
    assert resp.get_json() == {"is_answer": False, "feedback_status": "closed"}

    resp = client.delete(f"/api/feedback/{fb_id}/comments/{c1['id']}")
    assert resp.get_json()["soft_deleted"] is True
    flat = client.get(f"/api/feedback/{fb_id}/comments").get_json()
    assert flat[0]["content"] == DELETED_COMMENT_MARKER
    assert flat[0]["is_answer"] is False

    resp = client.delete(f"/api/feedback/{fb_id}/comments/{c2['id']}")
    assert resp.get_json() == {"success": True, "soft_deleted": False}

    with app.app_context():
        assert db.session.get(Feedback, fb_id).status == "closed"


def test_topics_admin_crud(app, client, login, people):
    login(client, people["dev"])
    assert client.post("/api/topics", json={"name": "Billing"}).status_code == 403

    login(client, people["admin"])
    assert client.post("/api/topics", json={"name": "Billing", "color": "blue"}).status_code == 400
    resp = client.post("/api/topics", json={"name": "Billing", "color": "#123abc"})
    assert resp.status_code == 201
    topic_id = resp.get_json()["id"]
    assert client.post("/api/topics", json={"name": "Billing"}).status_code == 409

    resp = client.patch(f"/api/topics/{topic_id}", json={"description": "Invoices and plans"})
    assert resp.get_json()["description"] == "Invoices and plans"
    assert client.delete(f"/api/topics/{topic_id}").get_json() == {"success": True}
    with app.app_context():
        assert db.session.get(Topic, topic_id) is None


def test_login_me_logout(client, people):
    resp = client.post("/auth/login", json={"email": "nobody@example.com", "password": "x"})
    assert resp.status_code == 401

    with client.application.app_context():
        from app.models import User
        email = db.session.get(User, people["owner"]).email

    resp = client.post("/auth/login", json={"email": email.upper(), "password": "owner-pass"})
    assert resp.status_code == 200
    assert client.get("/auth/me").get_json()["id"] == people["owner"]

    assert client.post("/auth/logout").get_json() == {"success": True}
    assert client.get("/auth/me").status_code == 401


def test_banned_users_lose_access(client, login, people):
    login(client, people["admin"])
    assert client.post(f"/api/admin/users/{people['owner']}/ban", json={"reason": "spam"}).status_code == 200
    assert client.post(f"/api/admin/users/{people['admin']}/ban", json={}).status_code == 409

    resp = _new_feedback(client, login, people)
    assert resp.status_code == 401

    anon = client.application.test_client()
    with client.application.app_context():
        from app.models import User
        email = db.session.get(User, people["owner"]).email
    assert anon.post("/auth/login", json={"email": email, "password": "owner-pass"}).status_code == 403


def test_me_rejects_a_banned_session(client, login, people):
    login(client, people["admin"])
    assert client.post(f"/api/admin/users/{people['owner']}/ban", json={"reason": "spam"}).status_code == 200

    login(client, people["owner"])
    resp = client.get("/auth/me")
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "unauthorized"


def test_admin_endpoints(client, login, people):
    login(client, people["dev"])
    assert client.get("/api/admin/users").status_code == 403

    login(client, people["admin"])
    assert len(client.get("/api/admin/users").get_json()) == 3
    resp = client.patch(f"/api/admin/users/{people['owner']}/role", json={"role": "developer"})
    assert resp.get_json()["role"] == "developer"
    assert client.get("/api/admin/stats").get_json()["users"]["by_role"]["developer"] == 2
    assert client.post(f"/api/admin/users/{people['owner']}/ban", json={"expires_at": "soon"}).status_code == 400


def test_unknown_route_is_json_404(client):
    resp = client.get("/api/nope")
    assert resp.status_code == 404
    assert resp.get_json()["error"] == "not_found"
