import sqlite3
import uuid

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine

# Initialize SQLAlchemy
db = SQLAlchemy()


def new_id():
    return str(uuid.uuid4())


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores ON DELETE CASCADE unless asked
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# Import models
from models.users import User
from models.tasks import Task
from models.task_files import TaskFile
from models.task_assignments import TaskAssignment
from models.quiz_questions import QuizQuestion
from models.quiz_submissions import QuizSubmission
from models.file_progress import FileProgress
from models.learning_logs import LearningLog
