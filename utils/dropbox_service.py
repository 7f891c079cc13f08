import logging
import uuid

import dropbox
from dropbox.exceptions import ApiError
from dropbox.files import CommitInfo, WriteMode
from werkzeug.utils import secure_filename

from utils.errors import NotFound, StorageError

logger = logging.getLogger(__name__)

UPLOAD_PREFIX = "uploads"


def _is_not_found(error):
    """True when a Dropbox route error describes a missing path."""
    for lookup in ("get_path", "get_path_lookup"):
        getter = getattr(error, lookup, None)
        checker = getattr(error, lookup.replace("get_", "is_"), None)
        if getter and checker and checker():
            path_error = getter()
            return bool(getattr(path_error, "is_not_found", lambda: False)())
    return False


class DropboxStorage:
    """Object storage backed by a Dropbox app folder.

    File bytes never pass through the application: clients receive temporary
    links to upload to or download from, and the database records only the
    storage key. Keys are relative to ``settings.dropbox_root``.
    """

    def __init__(self, settings, client=None):
        self.root = settings.dropbox_root
        self.upload_link_ttl = settings.upload_link_ttl
        self.dbx = client or dropbox.Dropbox(
            oauth2_refresh_token=settings.dropbox_refresh_token,
            app_key=settings.dropbox_app_key,
            app_secret=settings.dropbox_app_secret,
        )

    def new_key(self, filename):
        """A fresh key, so concurrent uploads never target the same path."""
        safe_name = secure_filename(filename) or "file"
        return f"{UPLOAD_PREFIX}/{uuid.uuid4().hex}/{safe_name}"

    def path_for(self, key):
        key = key.strip("/")
        if not key or ".." in key.split("/"):
            raise NotFound("File not found")
        return f"{self.root}/{key}"

    def create_upload_link(self, key):
        commit_info = CommitInfo(path=self.path_for(key), mode=WriteMode.add, autorename=False)
        try:
            result = self.dbx.files_get_temporary_upload_link(
                commit_info, duration=float(self.upload_link_ttl)
            )
        except ApiError as e:
            logger.error("Dropbox upload link failed for %s: %s", key, e)
            raise StorageError() from e
        return result.link

    def create_download_link(self, key):
        try:
            result = self.dbx.files_get_temporary_link(self.path_for(key))
        except ApiError as e:
            if _is_not_found(e.error):
                raise NotFound("File not found") from e
            logger.error("Dropbox download link failed for %s: %s", key, e)
            raise StorageError() from e
        return result.link

    def delete(self, key):
        try:
            self.dbx.files_delete_v2(self.path_for(key))
        except ApiError as e:
            if _is_not_found(e.error):
                raise NotFound("File not found") from e
            logger.error("Dropbox delete failed for %s: %s", key, e)
            raise StorageError() from e
        logger.info("File deleted from Dropbox: %s", key)
        return True
