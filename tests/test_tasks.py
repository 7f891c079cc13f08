from datetime import timedelta

import pytest
from dropbox.exceptions import ApiError
from dropbox.files import DeleteError

from conftest import auth_headers, make_user
from models import db
from models.file_progress import FileProgress
from models.task_assignments import TaskAssignment
from models.task_files import TaskFile
from models.tasks import Task
from utils.helpers import utcnow

OPTIONS = ["Yes", "No"]


def test_admin_creates_task_assigned_to_all_active_users(client, admin, learner):
    make_user("second_learner")
    make_user("former_learner", status="disabled")

    response = client.post("/api/tasks", json={
        "title": "Fire drill", "passingScore": 80, "enableQuiz": True,
    }, headers=auth_headers(admin))

    assert response.status_code == 201
    data = response.get_json()["data"]
    assert data["status"] == "draft"
    assert data["passing_score"] == 80
    assert data["assignment_count"] == 2


def test_admin_creates_task_for_selected_users(client, admin, learner):
    response = client.post("/api/tasks", json={
        "title": "Onboarding", "assignmentType": "user", "assignmentIds": [learner.id],
    }, headers=auth_headers(admin))

    task_id = response.get_json()["data"]["id"]
    assignments = TaskAssignment.query.filter_by(task_id=task_id).all()
    assert [a.user_id for a in assignments] == [learner.id]


def test_create_task_with_unknown_assignee_fails(client, admin):
    response = client.post("/api/tasks", json={
        "title": "Onboarding", "assignmentType": "user",
        "assignmentIds": ["00000000-0000-4000-8000-000000000000"],
    }, headers=auth_headers(admin))

    assert response.status_code == 400
    assert Task.query.count() == 0


def test_learner_cannot_create_task(client, learner):
    response = client.post("/api/tasks", json={"title": "Nope"}, headers=auth_headers(learner))

    assert response.status_code == 403


def test_learner_lists_only_published_assigned_tasks(client, make_task, learner):
    visible = make_task(assignees=[learner])
    make_task(status="draft", assignees=[learner])
    make_task()

    response = client.get("/api/tasks", headers=auth_headers(learner))

    body = response.get_json()
    assert [task["id"] for task in body["data"]] == [visible.id]
    assert body["meta"]["total"] == 1


def test_admin_list_is_paginated_and_filtered(client, make_task, admin):
    for _ in range(3):
        make_task(status="draft")
    make_task()

    response = client.get("/api/tasks?page=1&limit=2&status=draft", headers=auth_headers(admin))

    body = response.get_json()
    assert len(body["data"]) == 2
    assert body["meta"] == {"total": 3, "page": 1, "limit": 2, "totalPages": 2}


def test_list_limit_is_capped(client, admin):
    response = client.get("/api/tasks?limit=500", headers=auth_headers(admin))

    assert response.status_code == 400
    assert response.get_json()["error"].startswith("limit:")


def test_learner_cannot_view_draft_task(client, make_task, learner):
    task = make_task(status="draft", assignees=[learner])

    response = client.get(f"/api/tasks/{task.id}", headers=auth_headers(learner))

    assert response.status_code == 403


def test_task_detail_for_learner_includes_progress(client, make_task, learner):
    task = make_task(assignees=[learner], files=[("pdf", 4)])
    client.post("/api/learning/progress", json={
        "fileId": task.files[0].id, "taskId": task.id, "position": 2, "actionKind": "page_change",
    }, headers=auth_headers(learner))

    data = client.get(f"/api/tasks/{task.id}", headers=auth_headers(learner)).get_json()["data"]

    assert len(data["files"]) == 1
    assert data["progress"][task.files[0].id]["progressPercent"] == 50


@pytest.mark.parametrize("current,target,allowed", [
    ("draft", "published", True),
    ("published", "archived", True),
    ("archived", "deleted", True),
    ("draft", "archived", False),
    ("archived", "published", False),
    ("deleted", "draft", False),
])
def test_status_transitions(client, make_task, admin, current, target, allowed):
    task = make_task(status=current)

    response = client.patch(f"/api/tasks/{task.id}", json={"status": target}, headers=auth_headers(admin))

    assert (response.status_code == 200) is allowed
    db.session.refresh(task)
    assert task.status == (target if allowed else current)


def test_update_task_fields(client, make_task, admin):
    task = make_task()

    response = client.patch(f"/api/tasks/{task.id}", json={
        "title": "Renamed", "passingScore": 60,
    }, headers=auth_headers(admin))

    data = response.get_json()["data"]
    assert data["title"] == "Renamed"
    assert data["passing_score"] == 60


def test_delete_task_cascades_and_removes_stored_files(client, make_task, admin, learner, fake_dropbox):
    task = make_task(assignees=[learner], files=[("pdf", 2), ("video", 30)])
    task_id = task.id

    response = client.delete(f"/api/tasks/{task_id}", headers=auth_headers(admin))

    assert response.status_code == 200
    assert db.session.get(Task, task_id) is None
    assert TaskFile.query.filter_by(task_id=task_id).count() == 0
    assert TaskAssignment.query.filter_by(task_id=task_id).count() == 0
    assert fake_dropbox.deleted == ["/lms-test/uploads/0/file.pdf", "/lms-test/uploads/1/file.video"]


def test_delete_task_survives_storage_failure(client, make_task, admin, fake_dropbox, monkeypatch):
    task = make_task(files=[("pdf", 2), ("video", 30)])
    task_id = task.id
    attempted = []

    def failing_delete(path):
        attempted.append(path)
        raise ApiError("req-del", DeleteError.other, "other", "en")

    monkeypatch.setattr(fake_dropbox, "files_delete_v2", failing_delete)

    response = client.delete(f"/api/tasks/{task_id}", headers=auth_headers(admin))

    assert response.status_code == 200
    assert db.session.get(Task, task_id) is None
    assert TaskFile.query.filter_by(task_id=task_id).count() == 0
    assert attempted == ["/lms-test/uploads/0/file.pdf", "/lms-test/uploads/1/file.video"]


def test_add_and_reorder_files(client, make_task, admin):
    task = make_task()
    headers = auth_headers(admin)
    first = client.post(f"/api/tasks/{task.id}/files", json={
        "title": "Handbook", "storageKey": "uploads/a/handbook.pdf", "fileType": "pdf", "totalPages": 12,
    }, headers=headers).get_json()["data"]
    second = client.post(f"/api/tasks/{task.id}/files", json={
        "title": "Walkthrough", "storageKey": "uploads/b/walk.mp4", "fileType": "video", "duration": 300,
    }, headers=headers).get_json()["data"]

    assert (first["order"], second["order"]) == (0, 1)
    assert second["total_pages"] is None

    reordered = client.put(f"/api/tasks/{task.id}/files/order", json={
        "fileIds": [second["id"], first["id"]],
    }, headers=headers)

    assert [f["id"] for f in reordered.get_json()["data"]] == [second["id"], first["id"]]
    assert [f.id for f in db.session.get(Task, task.id).files] == [second["id"], first["id"]]


def test_reorder_requires_every_file(client, make_task, admin):
    task = make_task(files=[("pdf", 1), ("pdf", 2)])

    response = client.put(f"/api/tasks/{task.id}/files/order", json={
        "fileIds": [task.files[0].id],
    }, headers=auth_headers(admin))

    assert response.status_code == 400


def test_delete_file_removes_stored_object(client, make_task, admin, fake_dropbox):
    task = make_task(files=[("pdf", 3)])
    file_id = task.files[0].id

    response = client.delete(f"/api/tasks/{task.id}/files/{file_id}", headers=auth_headers(admin))

    assert response.status_code == 200
    assert db.session.get(TaskFile, file_id) is None
    assert fake_dropbox.deleted == ["/lms-test/uploads/0/file.pdf"]


def test_delete_file_survives_storage_failure(client, make_task, admin, fake_dropbox, monkeypatch):
    task = make_task(files=[("pdf", 3)])
    file_id = task.files[0].id

    def failing_delete(path):
        raise ApiError("req-del", DeleteError.other, "other", "en")

    monkeypatch.setattr(fake_dropbox, "files_delete_v2", failing_delete)

    response = client.delete(f"/api/tasks/{task.id}/files/{file_id}", headers=auth_headers(admin))

    assert response.status_code == 200
    assert db.session.get(TaskFile, file_id) is None


def test_replace_assignments(client, make_task, admin, learner):
    other = make_user("other_learner")
    task = make_task(assignees=[learner])

    response = client.put(f"/api/tasks/{task.id}/assignments", json={
        "userIds": [other.id],
    }, headers=auth_headers(admin))

    assert [a["user_id"] for a in response.get_json()["data"]] == [other.id]


def test_question_crud(client, make_task, admin):
    task = make_task(enable_quiz=True)
    headers = auth_headers(admin)

    created = client.post(f"/api/tasks/{task.id}/quiz", json={
        "question": "Is the exit marked?", "options": OPTIONS, "correctAnswer": 0,
    }, headers=headers)
    assert created.status_code == 201
    question_id = created.get_json()["data"]["id"]

    updated = client.patch(f"/api/tasks/{task.id}/quiz/{question_id}", json={"correctAnswer": 1}, headers=headers)
    assert updated.get_json()["data"]["correct_answer"] == 1

    out_of_range = client.patch(f"/api/tasks/{task.id}/quiz/{question_id}", json={"correctAnswer": 5}, headers=headers)
    assert out_of_range.status_code == 400

    deleted = client.delete(f"/api/tasks/{task.id}/quiz/{question_id}", headers=headers)
    assert deleted.status_code == 200
    assert client.get(f"/api/tasks/{task.id}/quiz", headers=headers).get_json()["data"] == []


def test_question_answer_must_index_an_option(client, make_task, admin):
    task = make_task(enable_quiz=True)

    response = client.post(f"/api/tasks/{task.id}/quiz", json={
        "question": "Pick one", "options": OPTIONS, "correctAnswer": 2,
    }, headers=auth_headers(admin))

    assert response.status_code == 400


class TestCompletion:
    def _finish_files(self, task, user):
        for task_file in task.files:
            db.session.add(FileProgress(
                user_id=user.id, file_id=task_file.id, task_id=task.id,
                position=task_file.stored_extent, extent=task_file.stored_extent,
                progress=100.0, completed_at=utcnow(),
            ))
        db.session.commit()

    def _complete(self, client, task, user):
        return client.post(f"/api/tasks/{task.id}/complete", json={"confirmed": True}, headers=auth_headers(user))

    def test_completion_requires_confirmation(self, client, make_task, learner):
        task = make_task(assignees=[learner])

        response = client.post(f"/api/tasks/{task.id}/complete", json={"confirmed": False},
                               headers=auth_headers(learner))

        assert response.status_code == 400

    def test_unfinished_files_block_completion(self, client, make_task, learner):
        task = make_task(assignees=[learner], files=[("pdf", 3), ("video", 60)])

        response = self._complete(client, task, learner)

        assert response.status_code == 400
        assert response.get_json()["error"].startswith("2 file(s)")

    def test_completion_after_all_files_done(self, client, make_task, learner):
        task = make_task(assignees=[learner], files=[("pdf", 3)])
        self._finish_files(task, learner)

        response = self._complete(client, task, learner)

        assert response.status_code == 200
        assert response.get_json()["data"]["is_completed"] is True
        assert self._complete(client, task, learner).status_code == 400

    def test_failed_quiz_blocks_completion(self, client, make_task, learner):
        task = make_task(assignees=[learner], enable_quiz=True, questions=[(OPTIONS, 0)])
        client.post("/api/quiz/submit", json={
            "taskId": task.id, "answers": [{"questionId": task.questions[0].id, "selectedIndex": 1}],
        }, headers=auth_headers(learner))

        assert self._complete(client, task, learner).get_json()["error"] == "Quiz not passed"

        client.post("/api/quiz/submit", json={
            "taskId": task.id, "answers": [{"questionId": task.questions[0].id, "selectedIndex": 0}],
        }, headers=auth_headers(learner))

        assert self._complete(client, task, learner).status_code == 200

    def test_unassigned_user_cannot_complete(self, client, make_task):
        task = make_task()
        stranger = make_user("stranger")

        assert self._complete(client, task, stranger).status_code == 403

    def test_deadline_passed_blocks_completion(self, client, make_task, learner):
        task = make_task(assignees=[learner], deadline=utcnow() - timedelta(days=1))

        assert self._complete(client, task, learner).status_code == 400

    def test_unpublished_task_cannot_be_completed(self, client, make_task, learner):
        task = make_task(status="archived", assignees=[learner])

        assert self._complete(client, task, learner).status_code == 403
