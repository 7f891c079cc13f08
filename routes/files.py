from flask import Blueprint, current_app, g

from classes.validators import UploadLinkSchema, parse_body
from models import db
from models.task_assignments import TaskAssignment
from models.task_files import TaskFile
from utils.errors import Forbidden, InvalidState, NotFound
from utils.helpers import success_response
from utils.utils import admin_required, is_admin, login_required

files_bp = Blueprint("files", __name__)


def get_storage():
    return current_app.extensions["storage"]


@files_bp.route("/upload-link", methods=["POST"])
@admin_required
def upload_link():
    """Reserve a storage key and hand back a temporary link to upload to it."""
    data = parse_body(UploadLinkSchema)
    storage = get_storage()
    key = storage.new_key(data.filename)
    return success_response({
        "storageKey": key,
        "uploadUrl": storage.create_upload_link(key),
        "expiresIn": storage.upload_link_ttl,
    }, status=201)


@files_bp.route("/<file_id>/download-link", methods=["GET"])
@login_required
def download_link(file_id):
    task_file = db.session.get(TaskFile, file_id)
    if not task_file:
        raise NotFound("File not found")

    if not is_admin(g.user_id):
        if not task_file.task.is_published:
            raise InvalidState("Task is not published")
        assigned = TaskAssignment.query.filter_by(task_id=task_file.task_id, user_id=g.user_id).first()
        if not assigned:
            raise Forbidden("You are not assigned to this task")

    return success_response({
        "fileId": task_file.id,
        "url": get_storage().create_download_link(task_file.storage_key),
    })
