"""
Tests for projects, tasks and the pasted task-list parser.
"""

import pytest

from portal.domain.projects.task_parser import (
    infer_priority,
    parse_task_list,
    split_list_items,
    summarize_title,
)

# =============================================================================
# Task list parser
# =============================================================================


class TestSplitListItems:
    """Tests for splitting pasted text into items."""

    def test_bullets(self):
        text = "- Fix the header logo\n- Update footer links\n* Swap hero image"
        assert split_list_items(text) == ["Fix the header logo", "Update footer links", "Swap hero image"]

    def test_numbered_with_continuation_lines(self):
        text = "1) Resize the banner\n   on mobile only\n2) Remove the popup"
        assert split_list_items(text) == ["Resize the banner\n   on mobile only", "Remove the popup"]

    def test_non_breaking_space_after_bullet(self):
        assert split_list_items("-\u00a0First item\n-\u00a0Second item") == ["First item", "Second item"]

    def test_paragraphs(self):
        text = "The contact form is slow.\n\n\n\nThe blog needs pagination."
        assert split_list_items(text) == ["The contact form is slow.", "The blog needs pagination."]

    def test_plain_lines(self):
        assert split_list_items("One thing\r\nAnother thing") == ["One thing", "Another thing"]

    def test_blank_text(self):
        assert split_list_items("  \n\t ") == []


class TestTaskFields:
    """Tests for titles and priorities."""

    def test_title_is_first_sentence_without_lead_in(self):
        item = "Following on from our call, the homepage hero image is too large. It pushes content down."
        assert summarize_title(item) == "the homepage hero image is too large"

    def test_short_first_sentence_keeps_whole_item(self):
        assert summarize_title("Fix it. The menu overlaps the logo") == "Fix it. The menu overlaps the logo"

    def test_long_title_truncated(self):
        title = summarize_title("word " * 60)
        assert len(title) == 120
        assert title.endswith("...")

    @pytest.mark.parametrize(
        "item,expected",
        [
            ("The checkout page is completely white", "critical"),
            ("Please fix the menu alignment", "high"),
            ("Could we add a newsletter signup", "low"),
            ("Change the footer colour to navy", "medium"),
        ],
    )
    def test_priority_keywords(self, item, expected):
        assert infer_priority(item) == expected

    def test_duplicates_removed(self):
        tasks = parse_task_list("- Update footer links\n- Update footer links\n- Add a map")
        assert [t["title"] for t in tasks] == ["Update footer links", "Add a map"]

    def test_max_items(self):
        text = "\n".join(f"- Task number {i}" for i in range(10))
        assert len(parse_task_list(text, max_items=3)) == 3


# =============================================================================
# API
# =============================================================================


@pytest.fixture
def project(client, headers, staff, client_org):
    response = client.post(
        "/projects", json={"organization_id": client_org.id, "name": "Website refresh"}, headers=headers(staff)
    )
    assert response.status_code == 201
    return response.json()


class TestProjectsAPI:
    """Tests for project and task endpoints."""

    def test_client_sees_own_projects_only(self, client, headers, project, client_user, other_client):
        assert [p["id"] for p in client.get("/projects", headers=headers(client_user)).json()] == [project["id"]]
        assert client.get("/projects", headers=headers(other_client)).json() == []
        assert client.get(f"/projects/{project['id']}", headers=headers(other_client)).status_code == 404

    def test_client_cannot_create_project(self, client, headers, client_user, client_org):
        response = client.post(
            "/projects", json={"organization_id": client_org.id, "name": "Mine"}, headers=headers(client_user)
        )
        assert response.status_code == 403

    def test_unassigned_staff_cannot_create_project(self, client, headers, unassigned_staff, client_org):
        response = client.post(
            "/projects", json={"organization_id": client_org.id, "name": "Nope"}, headers=headers(unassigned_staff)
        )
        assert response.status_code == 404

    def test_parse_preview_then_bulk_import(self, client, headers, staff, project):
        preview = client.post(
            f"/projects/{project['id']}/tasks/parse",
            json={"text": "- Fix the broken contact form\n- Could we add a blog"},
            headers=headers(staff),
        )
        assert preview.status_code == 200
        body = preview.json()
        assert body["source"] == "heuristic"
        assert [t["priority"] for t in body["tasks"]] == ["critical", "low"]

        imported = client.post(
            f"/projects/{project['id']}/tasks/bulk",
            json={"tasks": [{"title": t["title"], "priority": t["priority"]} for t in body["tasks"]]},
            headers=headers(staff),
        )
        assert imported.status_code == 201
        tasks = client.get(f"/projects/{project['id']}/tasks", headers=headers(staff)).json()
        assert len(tasks) == 2

    def test_parse_with_nothing_found(self, client, headers, staff, project):
        response = client.post(
            f"/projects/{project['id']}/tasks/parse", json={"text": "   "}, headers=headers(staff)
        )
        assert response.status_code == 400

    def test_client_cannot_be_assigned_tasks(self, client, headers, staff, client_user, project):
        response = client.post(
            f"/projects/{project['id']}/tasks",
            json={"title": "Review copy", "assigned_to": client_user.id},
            headers=headers(staff),
        )
        assert response.status_code == 400


class TestMilestones:
    """Tests for project milestones and task grouping."""

    def _milestone(self, client, headers, user, project, **payload):
        return client.post(f"/projects/{project['id']}/milestones", json=payload, headers=headers(user))

    def test_sort_order_defaults_to_end(self, client, headers, staff, project):
        first = self._milestone(client, headers, staff, project, name="Design").json()
        second = self._milestone(client, headers, staff, project, name="Build").json()
        assert (first["sort_order"], second["sort_order"]) == (0, 1)
        assert first["status"] == "pending"
        assert first["completed_date"] is None

    def test_dated_milestones_listed_first(self, client, headers, staff, project):
        self._milestone(client, headers, staff, project, name="Someday")
        self._milestone(client, headers, staff, project, name="Launch", due_date="2026-06-01T00:00:00")
        names = [m["name"] for m in client.get(f"/projects/{project['id']}/milestones", headers=headers(staff)).json()]
        assert names == ["Launch", "Someday"]

    def test_completion_date_follows_status(self, client, headers, staff, project):
        milestone = self._milestone(client, headers, staff, project, name="Design").json()
        url = f"/projects/{project['id']}/milestones/{milestone['id']}"
        completed = client.patch(url, json={"status": "completed"}, headers=headers(staff)).json()
        assert completed["completed_date"] is not None
        reopened = client.patch(url, json={"status": "in_progress"}, headers=headers(staff)).json()
        assert reopened["completed_date"] is None

    def test_invalid_status(self, client, headers, staff, project):
        assert self._milestone(client, headers, staff, project, name="X", status="done").status_code == 422

    def test_task_grouped_under_milestone(self, client, headers, staff, project):
        milestone = self._milestone(client, headers, staff, project, name="Design").json()
        task = client.post(
            f"/projects/{project['id']}/tasks",
            json={"title": "Wireframes", "milestone_id": milestone["id"]},
            headers=headers(staff),
        ).json()
        assert task["milestone_id"] == milestone["id"]
        listed = client.get(f"/projects/{project['id']}/milestones/{milestone['id']}", headers=headers(staff)).json()
        assert listed["task_count"] == 1

    def test_task_cannot_use_another_projects_milestone(self, client, headers, staff, client_org, project):
        other = client.post(
            "/projects", json={"organization_id": client_org.id, "name": "Shop"}, headers=headers(staff)
        ).json()
        foreign = self._milestone(client, headers, staff, other, name="Checkout").json()
        response = client.post(
            f"/projects/{project['id']}/tasks",
            json={"title": "Wireframes", "milestone_id": foreign["id"]},
            headers=headers(staff),
        )
        assert response.status_code == 400

    def test_delete_unlinks_tasks(self, client, headers, staff, project):
        milestone = self._milestone(client, headers, staff, project, name="Design").json()
        client.post(
            f"/projects/{project['id']}/tasks",
            json={"title": "Wireframes", "milestone_id": milestone["id"]},
            headers=headers(staff),
        )
        url = f"/projects/{project['id']}/milestones/{milestone['id']}"
        assert client.delete(url, headers=headers(staff)).status_code == 200
        tasks = client.get(f"/projects/{project['id']}/tasks", headers=headers(staff)).json()
        assert [t["milestone_id"] for t in tasks] == [None]

    def test_client_reads_but_cannot_create(self, client, headers, staff, client_user, project):
        self._milestone(client, headers, staff, project, name="Design")
        assert len(client.get(f"/projects/{project['id']}/milestones", headers=headers(client_user)).json()) == 1
        assert self._milestone(client, headers, client_user, project, name="Mine").status_code == 403
