import logging

from flask import Blueprint, current_app, g

from classes.task_manager import TaskManager
from classes.validators import (
    AssignmentSchema,
    CompleteTaskSchema,
    FileOrderSchema,
    QuestionSchema,
    QuestionUpdateSchema,
    TaskCreateSchema,
    TaskFileCreateSchema,
    TaskListQuery,
    TaskUpdateSchema,
    parse_body,
    parse_query,
)
from utils.errors import NotFound, StorageError
from utils.helpers import success_response
from utils.utils import admin_required, is_admin, login_required

logger = logging.getLogger(__name__)

task_bp = Blueprint("tasks", __name__)


def _discard_stored_file(storage_key):
    storage = current_app.extensions["storage"]
    try:
        storage.delete(storage_key)
    except NotFound:
        logger.info("Stored file %s was already gone", storage_key)
    except StorageError:
        logger.exception("Could not delete stored file %s", storage_key)

#__________________________________________________________________________________________ * Tasks *__________________________________________________

@task_bp.route("", methods=["GET"])
@login_required
def list_tasks():
    query = parse_query(TaskListQuery)
    tasks, meta = TaskManager.list(g.user_id, is_admin(g.user_id), query)
    return success_response(tasks, meta=meta)


@task_bp.route("", methods=["POST"])
@admin_required
def create_task():
    data = parse_body(TaskCreateSchema)
    task = TaskManager.create(data, g.user_id)
    return success_response(task.to_dict(), status=201)


@task_bp.route("/<task_id>", methods=["GET"])
@login_required
def get_task(task_id):
    return success_response(TaskManager.detail(task_id, g.user_id, is_admin(g.user_id)))


@task_bp.route("/<task_id>", methods=["PATCH"])
@admin_required
def update_task(task_id):
    data = parse_body(TaskUpdateSchema)
    task = TaskManager.update(task_id, data)
    return success_response(task.to_dict())


@task_bp.route("/<task_id>", methods=["DELETE"])
@admin_required
def delete_task(task_id):
    for storage_key in TaskManager.delete(task_id):
        _discard_stored_file(storage_key)
    return success_response({"message": "Task deleted"})


@task_bp.route("/<task_id>/complete", methods=["POST"])
@login_required
def complete_task(task_id):
    parse_body(CompleteTaskSchema)
    assignment = TaskManager.complete(task_id, g.user_id)
    return success_response(assignment.to_dict())

#__________________________________________________________________________________________ * Files *__________________________________________________

@task_bp.route("/<task_id>/files", methods=["POST"])
@admin_required
def add_file(task_id):
    data = parse_body(TaskFileCreateSchema)
    task_file = TaskManager.add_file(task_id, data)
    return success_response(task_file.to_dict(), status=201)


@task_bp.route("/<task_id>/files/<file_id>", methods=["DELETE"])
@admin_required
def delete_file(task_id, file_id):
    storage_key = TaskManager.remove_file(task_id, file_id)
    _discard_stored_file(storage_key)
    return success_response({"message": "File deleted"})


@task_bp.route("/<task_id>/files/order", methods=["PUT"])
@admin_required
def reorder_files(task_id):
    data = parse_body(FileOrderSchema)
    return success_response(TaskManager.reorder_files(task_id, data.file_ids))

#__________________________________________________________________________________________ * Assignments *__________________________________________________

@task_bp.route("/<task_id>/assignments", methods=["PUT"])
@admin_required
def set_assignments(task_id):
    data = parse_body(AssignmentSchema)
    return success_response(TaskManager.set_assignments(task_id, data.user_ids, g.user_id))

#__________________________________________________________________________________________ * Quiz questions *__________________________________________________

@task_bp.route("/<task_id>/quiz", methods=["GET"])
@login_required
def list_questions(task_id):
    detail = TaskManager.detail(task_id, g.user_id, is_admin(g.user_id))
    return success_response(detail["quiz_questions"])


@task_bp.route("/<task_id>/quiz", methods=["POST"])
@admin_required
def add_question(task_id):
    data = parse_body(QuestionSchema)
    question = TaskManager.add_question(task_id, data)
    return success_response(question.to_dict(include_answer=True), status=201)


@task_bp.route("/<task_id>/quiz/<question_id>", methods=["PATCH"])
@admin_required
def update_question(task_id, question_id):
    data = parse_body(QuestionUpdateSchema)
    question = TaskManager.update_question(task_id, question_id, data)
    return success_response(question.to_dict(include_answer=True))


@task_bp.route("/<task_id>/quiz/<question_id>", methods=["DELETE"])
@admin_required
def delete_question(task_id, question_id):
    TaskManager.delete_question(task_id, question_id)
    return success_response({"message": "Question deleted"})
