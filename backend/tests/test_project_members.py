"""Projects and project membership: idempotent add, manager-only edits, notification mail."""
import pytest
from sqlalchemy import func, select

from app.models import Project, ProjectMember


@pytest.fixture
def project(seed, customer):
    account, _ = customer
    return seed(Project(name="Acme Rebrand", account_id=account.id))


def _member_count(query, project_id):
    async def run(db):
        stmt = select(func.count()).select_from(ProjectMember).where(ProjectMember.project_id == project_id)
        return (await db.execute(stmt)).scalar_one()

    return query(run)


class TestProjects:
    def test_create_and_list(self, client, customer):
        _, headers = customer
        resp = client.post("/api/projects", json={"name": " Website "}, headers=headers)
        assert resp.status_code == 201
        project = resp.json()["project"]
        assert project["name"] == "Website"
        assert [p["id"] for p in client.get("/api/projects", headers=headers).json()["projects"]] == [project["id"]]

    def test_member_sees_shared_project(self, client, project, make_account, seed):
        seed(ProjectMember(project_id=project.id, email="designer@acme.test"))
        _, headers = make_account("designer@acme.test")
        projects = client.get("/api/projects", headers=headers).json()["projects"]
        assert [p["id"] for p in projects] == [project.id]
        detail = client.get(f"/api/projects/{project.id}", headers=headers).json()
        assert detail["canManage"] is False

    def test_stranger_forbidden(self, client, project, make_account):
        _, headers = make_account("stranger@elsewhere.test")
        assert client.get(f"/api/projects/{project.id}", headers=headers).status_code == 403
        assert client.get("/api/projects", headers=headers).json()["projects"] == []

    def test_admin_sees_everything(self, client, project, admin):
        _, headers = admin
        detail = client.get(f"/api/projects/{project.id}", headers=headers).json()
        assert detail["canManage"] is True
        assert detail["sprints"] == []


class TestAddMember:
    def test_add_twice_keeps_one_row_and_one_email(self, client, project, customer, sent_emails, query):
        _, headers = customer
        payload = {"projectId": project.id, "email": "  New.Person@Acme.test ", "title": "Designer"}
        first = client.post("/api/project-members", json=payload, headers=headers)
        second = client.post("/api/project-members", json=payload, headers=headers)
        assert first.json() == {"success": True, "added": True, "emailSent": True}
        assert second.json() == {"success": True, "added": False, "emailSent": False}
        assert _member_count(query, project.id) == 1
        assert len(sent_emails) == 1
        assert sent_emails[0]["to"] == "new.person@acme.test"
        assert sent_emails[0]["subject"] == "You've been added to Acme Rebrand"
        assert "Designer" in sent_emails[0]["html"]

    def test_invalid_email(self, client, project, customer):
        _, headers = customer
        resp = client.post("/api/project-members", json={"projectId": project.id, "email": "nobody"}, headers=headers)
        assert resp.status_code == 400
        assert resp.json() == {"error": "Valid email is required"}

    def test_member_cannot_add(self, client, project, make_account, seed, sent_emails):
        seed(ProjectMember(project_id=project.id, email="viewer@acme.test"))
        _, headers = make_account("viewer@acme.test")
        resp = client.post(
            "/api/project-members",
            json={"projectId": project.id, "email": "friend@acme.test"},
            headers=headers,
        )
        assert resp.status_code == 403
        assert sent_emails == []

    def test_unknown_project(self, client, customer):
        _, headers = customer
        resp = client.post("/api/project-members", json={"projectId": "nope", "email": "a@b.test"}, headers=headers)
        assert resp.status_code == 404

    def test_unconfigured_mail_still_adds(self, client, project, customer):
        _, headers = customer
        resp = client.post(
            "/api/project-members",
            json={"projectId": project.id, "email": "quiet@acme.test"},
            headers=headers,
        )
        assert resp.json() == {"success": True, "added": True, "emailSent": False}


class TestListUpdateRemove:
    def test_list_joins_account_names(self, client, project, customer, make_account, seed):
        make_account("known@acme.test", name="Known Person")
        seed(
            ProjectMember(project_id=project.id, email="known@acme.test", title="PM"),
        )
        _, headers = customer
        members = client.get("/api/project-members", params={"projectId": project.id}, headers=headers).json()["members"]
        assert members == [
            {
                "email": "known@acme.test",
                "title": "PM",
                "name": "Known Person",
                "firstName": None,
                "lastName": None,
                "addedByAccount": None,
                "createdAt": members[0]["createdAt"],
            }
        ]

    def test_list_requires_project_id(self, client, customer):
        _, headers = customer
        assert client.get("/api/project-members", headers=headers).status_code == 400

    def test_update_title(self, client, project, customer, seed):
        seed(ProjectMember(project_id=project.id, email="pm@acme.test"))
        _, headers = customer
        resp = client.patch(
            "/api/project-members",
            json={"projectId": project.id, "email": "PM@acme.test", "title": "Lead"},
            headers=headers,
        )
        assert resp.json() == {"success": True}
        missing = client.patch(
            "/api/project-members",
            json={"projectId": project.id, "email": "ghost@acme.test", "title": "Lead"},
            headers=headers,
        )
        assert missing.status_code == 404
        assert missing.json() == {"error": "Member not found"}

    def test_remove_sends_mail_only_when_removed(self, client, project, customer, seed, sent_emails, query):
        seed(ProjectMember(project_id=project.id, email="leaving@acme.test"))
        _, headers = customer
        params = {"projectId": project.id, "email": "leaving@acme.test"}
        first = client.delete("/api/project-members", params=params, headers=headers)
        second = client.delete("/api/project-members", params=params, headers=headers)
        assert first.json() == {"success": True, "removed": True}
        assert second.json() == {"success": True, "removed": False}
        assert [m["to"] for m in sent_emails] == ["leaving@acme.test"]
        assert _member_count(query, project.id) == 0
