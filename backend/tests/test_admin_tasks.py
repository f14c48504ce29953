"""Studio task board: focus singleton, ordering, event history, ideas and milestones."""
import pytest

from app.models import AdminIdea


@pytest.fixture
def headers(admin):
    return admin[1]


def _create(client, headers, **payload):
    resp = client.post("/api/admin/tasks/tasks", json=payload, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()["task"]


def _tasks(client, headers, **params):
    return client.get("/api/admin/tasks/tasks", params=params, headers=headers).json()["tasks"]


def _events(client, headers, **params):
    return client.get("/api/admin/tasks/events", params=params, headers=headers).json()


def test_board_is_admin_only(client, customer):
    _, customer_headers = customer
    assert client.get("/api/admin/tasks/tasks", headers=customer_headers).status_code == 403
    assert client.get("/api/admin/tasks/tasks").status_code == 401


class TestFocus:
    def test_at_most_one_task_holds_now(self, client, headers):
        first = _create(client, headers, name="Invoice Acme", focus="now")
        second = _create(client, headers, name="Review deck")
        resp = client.patch("/api/admin/tasks/tasks", json={"id": second["id"], "focus": "now"}, headers=headers)
        assert resp.status_code == 200
        now = _tasks(client, headers, focus="now")
        assert [t["id"] for t in now] == [second["id"]]
        by_id = {t["id"]: t for t in _tasks(client, headers)}
        assert by_id[first["id"]]["focus"] == ""

    def test_creating_with_now_takes_focus(self, client, headers):
        _create(client, headers, name="Old focus", focus="now")
        newer = _create(client, headers, name="New focus", focus="now")
        assert [t["id"] for t in _tasks(client, headers, focus="now")] == [newer["id"]]

    def test_completing_clears_now(self, client, headers):
        task = _create(client, headers, name="Ship logo", focus="now")
        resp = client.patch("/api/admin/tasks/tasks", json={"id": task["id"], "completed": True}, headers=headers)
        updated = resp.json()["task"]
        assert updated["completed"] is True
        assert updated["completed_at"] is not None
        assert updated["focus"] == ""
        assert _tasks(client, headers, focus="now") == []

    def test_completed_task_cannot_take_now(self, client, headers):
        holder = _create(client, headers, name="Current focus", focus="now")
        task = _create(client, headers, name="Done already")
        resp = client.patch(
            "/api/admin/tasks/tasks",
            json={"id": task["id"], "completed": True, "focus": "now"},
            headers=headers,
        )
        assert resp.status_code == 200
        updated = resp.json()["task"]
        assert updated["completed"] is True
        assert updated["focus"] == ""
        assert [t["id"] for t in _tasks(client, headers, focus="now")] == [holder["id"]]

    def test_focus_events(self, client, headers):
        task = _create(client, headers, name="Write brief")
        client.patch("/api/admin/tasks/tasks", json={"id": task["id"], "focus": "today"}, headers=headers)
        client.patch("/api/admin/tasks/tasks", json={"id": task["id"], "focus": "now"}, headers=headers)
        client.patch("/api/admin/tasks/tasks", json={"id": task["id"], "focus": ""}, headers=headers)
        types = sorted(e["event_type"] for e in _events(client, headers, taskId=task["id"])["events"])
        assert types == sorted(["created", "added_to_today", "focused", "removed_from_today", "unfocused"])


class TestOrdering:
    def test_bottom_then_top(self, client, headers, seed):
        idea = seed(AdminIdea(title="Client portal"))
        a = _create(client, headers, name="A", idea_id=idea.id)
        b = _create(client, headers, name="B", idea_id=idea.id)
        c = _create(client, headers, name="C", idea_id=idea.id, position="top")
        order = {t["id"]: t["sort_order"] for t in _tasks(client, headers, ideaId=idea.id)}
        assert order == {c["id"]: 1, a["id"]: 2, b["id"]: 3}

    def test_subtasks_append(self, client, headers):
        parent = _create(client, headers, name="Parent")
        s1 = _create(client, headers, name="Sub 1", parent_task_id=parent["id"])
        s2 = _create(client, headers, name="Sub 2", parent_task_id=parent["id"])
        assert (s1["sub_sort_order"], s2["sub_sort_order"]) == (1, 2)

    def test_unknown_parent(self, client, headers):
        resp = client.post("/api/admin/tasks/tasks", json={"name": "Orphan", "parent_task_id": "nope"}, headers=headers)
        assert resp.status_code == 404

    def test_reorder(self, client, headers):
        a = _create(client, headers, name="A")
        b = _create(client, headers, name="B")
        resp = client.patch(
            "/api/admin/tasks/tasks",
            json={"reorder": [{"id": a["id"], "sort_order": 5}, {"id": b["id"], "sort_order": 2}]},
            headers=headers,
        )
        assert resp.json() == {"success": True}
        assert [t["name"] for t in _tasks(client, headers)] == ["B", "A"]


class TestUpdatesAndEvents:
    def test_blank_name_rejected(self, client, headers):
        assert client.post("/api/admin/tasks/tasks", json={"name": "  "}, headers=headers).status_code == 400
        task = _create(client, headers, name="Keep")
        resp = client.patch("/api/admin/tasks/tasks", json={"id": task["id"], "name": " "}, headers=headers)
        assert resp.status_code == 400

    def test_patch_requires_fields(self, client, headers):
        task = _create(client, headers, name="Idle")
        assert client.patch("/api/admin/tasks/tasks", json={"id": task["id"]}, headers=headers).status_code == 400
        assert client.patch("/api/admin/tasks/tasks", json={"id": "nope", "name": "x"}, headers=headers).status_code == 404

    def test_note_and_milestone_events(self, client, headers):
        milestone = client.post(
            "/api/admin/tasks/milestones",
            json={"name": "Launch", "target_date": "2026-11-30"},
            headers=headers,
        ).json()["milestone"]
        task = _create(client, headers, name="Prep launch")
        client.patch(
            "/api/admin/tasks/tasks",
            json={"id": task["id"], "note": "Call printer", "milestone_id": milestone["id"]},
            headers=headers,
        )
        events = {e["event_type"]: e for e in _events(client, headers, taskId=task["id"])["events"]}
        assert events["note_updated"]["event_data"]["has_note"] is True
        assert events["milestone_changed"]["event_data"]["new_milestone_id"] == milestone["id"]
        labelled = _tasks(client, headers)[0]
        assert labelled["milestone_name"] == "Launch"
        assert labelled["milestone_target_date"] == "2026-11-30"

    def test_delete_keeps_history(self, client, headers):
        task = _create(client, headers, name="Temporary")
        _create(client, headers, name="Child", parent_task_id=task["id"])
        resp = client.delete("/api/admin/tasks/tasks", params={"id": task["id"]}, headers=headers)
        assert resp.json() == {"success": True, "message": 'Task "Temporary" deleted'}
        assert _tasks(client, headers) == []

        deleted = _events(client, headers, eventType="deleted")
        assert deleted["total"] == 1
        event = deleted["events"][0]
        assert event["task_id"] is None
        assert event["event_data"] == {"task_id": task["id"], "name": "Temporary"}
        assert _events(client, headers, eventType="created")["total"] == 2

    def test_delete_unknown(self, client, headers):
        assert client.delete("/api/admin/tasks/tasks", params={"id": "nope"}, headers=headers).status_code == 404
        assert client.delete("/api/admin/tasks/tasks", headers=headers).status_code == 400

    def test_event_paging(self, client, headers):
        for i in range(3):
            _create(client, headers, name=f"T{i}")
        page = _events(client, headers, limit=2, offset=0)
        assert page["total"] == 3
        assert len(page["events"]) == 2
        assert (page["limit"], page["offset"]) == (2, 0)


class TestIdeasAndMilestones:
    def test_idea_task_counts(self, client, headers):
        idea = client.post("/api/admin/tasks/ideas", json={"title": "Referral program"}, headers=headers).json()["idea"]
        done = _create(client, headers, name="Draft copy", idea_id=idea["id"])
        _create(client, headers, name="Design page", idea_id=idea["id"])
        client.patch("/api/admin/tasks/tasks", json={"id": done["id"], "completed": True}, headers=headers)
        ideas = client.get("/api/admin/tasks/ideas", headers=headers).json()["ideas"]
        assert ideas[0]["task_count"] == 2
        assert ideas[0]["completed_task_count"] == 1

    def test_milestones_without_tasks(self, client, headers):
        client.post("/api/admin/tasks/milestones", json={"name": "Someday"}, headers=headers)
        milestones = client.get("/api/admin/tasks/milestones", headers=headers).json()["milestones"]
        assert milestones[0]["name"] == "Someday"
        assert milestones[0]["task_count"] == 0
        assert milestones[0]["target_date"] is None
