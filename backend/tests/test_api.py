"""
API smoke tests: FastAPI TestClient against an in-memory SQLite database.

Walks one report through the whole life cycle:
form -> submission -> partner rebuttal -> management decision -> ATA review
"""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from thoreye.auth import hash_password
from thoreye.database import Base, get_db
from thoreye.main import app
from thoreye.models.db_models import UserDB


@pytest.fixture
def session_factory():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def token_headers(client, email):
    token = client.post("/auth/login", json={"email": email, "password": "password123"}).json()["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(client, session_factory):
    db = session_factory()
    db.add(UserDB(
        id="u-admin", email="root@thoreye.io", username="root",
        password_hash=hash_password("password123"), role="admin",
    ))
    db.commit()
    db.close()
    return token_headers(client, "root@thoreye.io")


def login_as(client, username, role, admin_headers=None):
    """Register an account; roles outside self-service are granted by the admin afterwards."""
    email = f"{username}@thoreye.io"
    registered_role = role if role in ("auditor", "partner") else "auditor"
    response = client.post("/auth/register", json={
        "email": email, "username": username, "password": "password123", "role": registered_role,
    })
    assert response.status_code == 201, response.text
    headers = token_headers(client, email)
    user_id = client.get("/auth/me", headers=headers).json()["id"]

    if role != registered_role:
        granted = client.put(f"/admin/users/{user_id}/role", headers=admin_headers, json={"role": role})
        assert granted.status_code == 200, granted.text
    return headers, user_id


@pytest.fixture
def actors(client, admin_headers):
    return {
        role: login_as(client, name, role, admin_headers)
        for name, role in [
            ("alice", "auditor"), ("pat", "partner"), ("max", "manager"), ("morgan", "master_auditor"),
        ]
    }


@pytest.fixture
def form_name(client, actors, call_form):
    data = call_form.to_dict()
    data["name"] = "inbound"
    response = client.post("/forms", json=data, headers=actors["manager"][0])
    assert response.status_code == 201, response.text
    return "inbound"


def submit(client, actors, answers, form_name="inbound"):
    return client.post("/reports", headers=actors["auditor"][0], json={
        "form_name": form_name,
        "agent": "Sam Agent",
        "agent_id": "A-100",
        "partner_id": actors["partner"][1],
        "answers": [{"question_id": k, "answer": v} for k, v in answers.items()],
    })


class TestAuth:

    def test_me_returns_role(self, client, actors):
        headers, _ = actors["partner"]
        assert client.get("/auth/me", headers=headers).json()["role"] == "partner"

    def test_bad_password_rejected(self, client, actors):
        response = client.post("/auth/login", json={"email": "alice@thoreye.io", "password": "wrong-pass"})
        assert response.status_code == 401

    @pytest.mark.parametrize("role", ["admin", "manager", "teamleader", "master_auditor"])
    def test_privileged_roles_cannot_self_register(self, client, role):
        response = client.post("/auth/register", json={
            "email": "eager@thoreye.io", "username": "eager", "password": "password123", "role": role,
        })
        assert response.status_code == 422
        assert client.post("/auth/login", json={
            "email": "eager@thoreye.io", "password": "password123",
        }).status_code == 401

    def test_admin_grants_role(self, client, actors, admin_headers):
        headers, user_id = actors["manager"]
        assert client.get("/auth/me", headers=headers).json()["role"] == "manager"
        roles = {u["username"]: u["role"] for u in client.get("/admin/users", headers=admin_headers).json()}
        assert roles["max"] == "manager"
        assert roles["alice"] == "auditor"

    def test_only_admin_grants_roles(self, client, actors):
        headers, user_id = actors["manager"]
        response = client.put(f"/admin/users/{user_id}/role", headers=headers, json={"role": "admin"})
        assert response.status_code == 403


class TestForms:

    def test_auditor_cannot_create_form(self, client, actors, call_form):
        response = client.post("/forms", json=call_form.to_dict(), headers=actors["auditor"][0])
        assert response.status_code == 403

    def test_duplicate_form_conflicts(self, client, actors, form_name, call_form):
        data = call_form.to_dict()
        data["name"] = form_name
        assert client.post("/forms", json=data, headers=actors["manager"][0]).status_code == 409

    def test_get_form_includes_fatal_option(self, client, actors, form_name):
        data = client.get(f"/forms/{form_name}", headers=actors["auditor"][0]).json()
        verified = data["sections"][0]["questions"][1]
        assert verified["parsedOptions"] == ["Yes", "No", "Fatal"]

    def test_unknown_form_404(self, client, actors):
        assert client.get("/forms/missing", headers=actors["auditor"][0]).status_code == 404

    def test_visibility(self, client, actors, form_name):
        response = client.post(
            f"/forms/{form_name}/visibility", headers=actors["auditor"][0], json={"answers": {"q3": "Yes"}},
        )
        assert response.json()["sections"]["Escalation"] == ["q4"]

    def test_spawn_then_prune(self, client, actors, form_name):
        headers = actors["auditor"][0]
        first = client.post(f"/forms/{form_name}/spawn", headers=headers, json={
            "question_id": "q6", "value": "Yes",
        }).json()
        assert first["active_section"] == "Interaction 2"
        assert len(first["spawned_sections"]) == 1

        again = client.post(f"/forms/{form_name}/spawn", headers=headers, json={
            "question_id": "q6", "value": "Yes",
            "answers": first["answers"], "spawned_sections": first["spawned_sections"],
        }).json()
        assert again["spawned"] is None
        assert len(again["spawned_sections"]) == 1

        pruned = client.post(f"/forms/{form_name}/spawn", headers=headers, json={
            "question_id": "q6", "value": "No",
            "answers": first["answers"], "spawned_sections": first["spawned_sections"],
        }).json()
        assert pruned["spawned_sections"] == []


class TestReportLifecycle:

    def test_missing_mandatory_returns_list(self, client, actors, form_name):
        response = submit(client, actors, {"q1": "Yes"})
        assert response.status_code == 400
        missing = {m["questionId"] for m in response.json()["detail"]["missing"]}
        assert missing == {"q2", "q5", "q6"}

    def test_full_dispute_and_review(self, client, actors, form_name, complete_answers):
        response = submit(client, actors, dict(complete_answers, q1="No"))
        assert response.status_code == 201, response.text
        report = response.json()
        assert report["score"] == 80
        assert report["status"] == "completed"

        partner_headers, partner_id = actors["partner"]
        manager_headers, _ = actors["manager"]

        actions = client.get(f"/rebuttals/report/{report['id']}/actions", headers=partner_headers).json()
        assert set(actions["actions"]) == {"accept", "reject"}

        disputed = client.post("/rebuttals", headers=partner_headers, json={
            "report_id": report["id"], "action": "reject", "rebuttal_text": "Greeting was given",
        })
        assert disputed.status_code == 200, disputed.text
        assert disputed.json()["status"] == "under_rebuttal"

        accepted = client.post("/rebuttals", headers=manager_headers, json={
            "report_id": report["id"], "action": "bod",
        }).json()
        assert accepted["status"] == "accepted"
        assert accepted["rebuttals"][0]["handlerResponse"] == "Benefit of Doubt applied"

        late = client.post("/rebuttals", headers=partner_headers, json={
            "report_id": report["id"], "action": "accept",
        })
        assert late.status_code == 409

        listed = client.get(f"/rebuttals/partner/{partner_id}", headers=partner_headers).json()
        assert [r["status"] for r in listed] == ["accepted"]

        review = client.post("/ata/reviews", headers=actors["master_auditor"][0], json={
            "report_id": report["id"],
            "master_rating": 9,
            "feedback": "Greeting was fine",
            "assessments": [{"question_id": "q1", "ata_answer": "Yes", "is_correct": False, "is_ce": True}],
        })
        assert review.status_code == 201, review.text
        body = review.json()
        assert body["variance"] == 10
        assert body["varianceBand"] == "moderate"
        assert body["accuracyMetrics"]["ceErrors"] == 1

        fetched = client.get(f"/ata/reviews/{report['id']}", headers=partner_headers).json()
        assert fetched["ataScore"] == 90

    def test_rebuttal_text_required(self, client, actors, form_name, complete_answers):
        report = submit(client, actors, complete_answers).json()
        response = client.post("/rebuttals", headers=actors["partner"][0], json={
            "report_id": report["id"], "action": "reject",
        })
        assert response.status_code == 400

    def test_auditor_cannot_take_workflow_actions(self, client, actors, form_name, complete_answers):
        report = submit(client, actors, complete_answers).json()
        response = client.post("/rebuttals", headers=actors["auditor"][0], json={
            "report_id": report["id"], "action": "accept",
        })
        assert response.status_code == 403

    def test_edit_and_delete(self, client, actors, form_name, complete_answers):
        report = submit(client, actors, complete_answers).json()
        answers = [{"question_id": k, "answer": v} for k, v in dict(complete_answers, q1="No").items()]

        edited = client.put(f"/reports/{report['id']}", headers=actors["manager"][0], json={"answers": answers})
        assert edited.status_code == 200, edited.text
        assert edited.json()["score"] == 80
        assert edited.json()["editHistory"][0]["action"] == "edited"

        deleted = client.delete(f"/reports/{report['id']}", headers=actors["manager"][0])
        assert deleted.status_code == 204
        assert client.get(f"/reports/{report['id']}", headers=actors["manager"][0]).status_code == 404

    def test_partner_sees_only_assigned_reports(self, client, actors, form_name, complete_answers):
        report = submit(client, actors, complete_answers).json()
        other_headers, _ = login_as(client, "paula", "partner")

        assert client.get(f"/reports/{report['id']}", headers=actors["partner"][0]).status_code == 200
        assert client.get(f"/reports/{report['id']}", headers=other_headers).status_code == 403

    def test_partner_cannot_act_on_another_partners_report(self, client, actors, form_name, complete_answers):
        report = submit(client, actors, complete_answers).json()
        eve_headers, _ = login_as(client, "eve", "partner")

        accepted = client.post("/rebuttals", headers=eve_headers, json={
            "report_id": report["id"], "action": "accept",
        })
        assert accepted.status_code == 403
        disputed = client.post("/rebuttals", headers=eve_headers, json={
            "report_id": report["id"], "action": "reject", "rebuttal_text": "not mine",
        })
        assert disputed.status_code == 403
        assert client.get(f"/rebuttals/report/{report['id']}", headers=eve_headers).status_code == 403
        assert client.get(f"/rebuttals/report/{report['id']}/actions", headers=eve_headers).status_code == 403

        stored = client.get(f"/reports/{report['id']}", headers=actors["manager"][0]).json()
        assert stored["status"] == "completed"
        assert stored["rebuttals"] == []

    def test_draft_then_submit(self, client, actors, form_name, complete_answers):
        draft = client.post("/reports/drafts", headers=actors["auditor"][0], json={
            "form_name": form_name, "agent": "Sam Agent", "agent_id": "A-100",
            "answers": [{"question_id": "q1", "answer": "Yes"}],
        }).json()
        assert draft["status"] == "draft"

        response = client.post("/reports", headers=actors["auditor"][0], json={
            "form_name": form_name, "agent": "Sam Agent", "agent_id": "A-100", "report_id": draft["id"],
            "answers": [{"question_id": k, "answer": v} for k, v in complete_answers.items()],
        })
        assert response.status_code == 201
        assert response.json()["id"] == draft["id"]
