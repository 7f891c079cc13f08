import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app import create_app
from config import Settings
from models import db
from models.quiz_questions import QuizQuestion
from models.task_assignments import TaskAssignment
from models.task_files import TaskFile
from models.tasks import Task
from models.users import User
from utils.dropbox_service import DropboxStorage
from utils.tokens import issue_token

TEST_SECRET = "test-secret-that-is-at-least-32-characters"
PASSWORD = "Str0ngPassword"


class FakeDropbox:
    """Records calls made through DropboxStorage instead of reaching Dropbox."""

    def __init__(self):
        self.upload_links = []
        self.download_links = []
        self.deleted = []

    def files_get_temporary_upload_link(self, commit_info, duration=None):
        self.upload_links.append((commit_info.path, duration))
        return SimpleNamespace(link=f"https://upload.example.test{commit_info.path}")

    def files_get_temporary_link(self, path):
        self.download_links.append(path)
        return SimpleNamespace(link=f"https://content.example.test{path}")

    def files_delete_v2(self, path):
        self.deleted.append(path)
        return SimpleNamespace(metadata=None)


@pytest.fixture()
def settings():
    return Settings(
        database_url="sqlite://",
        session_secret=TEST_SECRET,
        dropbox_app_key="app-key",
        dropbox_app_secret="app-secret",
        dropbox_refresh_token="refresh-token",
        dropbox_root="/lms-test",
        env="testing",
        log_level="DEBUG",
    )


@pytest.fixture()
def fake_dropbox():
    return FakeDropbox()


@pytest.fixture()
def app(settings, fake_dropbox):
    app = create_app(settings, storage=DropboxStorage(settings, client=fake_dropbox))
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


def make_user(username, role="user", status="active", name=None):
    user = User(username=username, name=name or username.title(), role=role, status=status)
    user.set_password(PASSWORD)
    db.session.add(user)
    db.session.commit()
    return user


def auth_headers(user):
    return {"Authorization": f"Bearer {issue_token(user.id, TEST_SECRET)}"}


@pytest.fixture()
def admin(app):
    return make_user("admin_user", role="admin")


@pytest.fixture()
def learner(app):
    return make_user("learner")


@pytest.fixture()
def make_task(admin):
    """Factory for a task with files, optional quiz and assignees."""

    def _make_task(status="published", assignees=(), files=(), questions=(), passing_score=100,
                   enable_quiz=False, deadline=None):
        task = Task(
            title="Safety induction",
            status=status,
            passing_score=passing_score,
            enable_quiz=enable_quiz,
            deadline=deadline,
            created_by=admin.id,
        )
        db.session.add(task)
        db.session.flush()

        for order, (file_type, extent) in enumerate(files):
            db.session.add(TaskFile(
                task_id=task.id,
                title=f"File {order + 1}",
                storage_key=f"uploads/{order}/file.{file_type}",
                file_type=file_type,
                total_pages=extent if file_type != "video" else None,
                duration=extent if file_type == "video" else None,
                order=order,
            ))
        for order, (options, correct) in enumerate(questions):
            db.session.add(QuizQuestion(
                task_id=task.id,
                question=f"Question {order + 1}",
                options=options,
                correct_answer=correct,
                order=order,
            ))
        for user in assignees:
            db.session.add(TaskAssignment(task_id=task.id, user_id=user.id, assigned_by=admin.id))

        db.session.commit()
        return task

    return _make_task
