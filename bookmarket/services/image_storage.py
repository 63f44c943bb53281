import json
import logging
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol
import jwt
import requests
from werkzeug.utils import secure_filename
from bookmarket.errors import StorageUnavailable, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_EXTS = {"png", "jpg", "jpeg", "gif", "webp"}


@dataclass(frozen=True)
class StoredImage:
    file_id: str
    url: str


class ImageStorage(Protocol):
    def store(self, data: bytes, mimetype: str, filename: str) -> StoredImage: ...

    def delete(self, file_id: str) -> None: ...


def _safe_name(filename: str) -> str:
    fname = secure_filename(filename or "")
    if "." not in fname:
        raise ValidationError("image must have a file extension", {"image": "bad_filename"})
    ext = fname.rsplit(".", 1)[-1].lower()
    if ext not in ALLOWED_IMAGE_EXTS:
        raise ValidationError(f"unsupported image type: {ext}", {"image": "unsupported_type"})
    return f"book_{uuid.uuid4().hex[:12]}_{fname}"


class LocalImageStorage:
    """Covers saved under the static folder, served by Flask's static route."""

    def __init__(self, base_dir, url_prefix: str):
        self.base_dir = Path(base_dir)
        self.url_prefix = url_prefix.rstrip("/") + "/"

    def store(self, data: bytes, mimetype: str, filename: str) -> StoredImage:
        name = _safe_name(filename)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        (self.base_dir / name).write_bytes(data)
        return StoredImage(file_id=name, url=self.url_prefix + name)

    def delete(self, file_id: str) -> None:
        # file ids are bare names we generated; refuse anything path-like
        if secure_filename(file_id) != file_id:
            raise ValueError(f"bad image id {file_id!r}")
        (self.base_dir / file_id).unlink(missing_ok=True)


class DriveImageStorage:
    """Google Drive v3 with a service account (GOOGLE_CREDENTIALS json)."""

    TOKEN_URL = "https://oauth2.googleapis.com/token"
    UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3/files"
    FILES_URL = "https://www.googleapis.com/drive/v3/files"
    SCOPE = "https://www.googleapis.com/auth/drive.file"

    def __init__(self, credentials: dict, folder_id: Optional[str] = None, timeout=(5, 30)):
        if not credentials.get("client_email") or not credentials.get("private_key"):
            raise ValueError("Google Drive credentials need client_email and private_key")
        self.client_email = credentials["client_email"]
        self.private_key = credentials["private_key"]
        self.folder_id = folder_id
        self.timeout = timeout

    @classmethod
    def from_json(cls, raw: str, folder_id: Optional[str] = None) -> "DriveImageStorage":
        return cls(json.loads(raw), folder_id=folder_id)

    def _headers(self) -> dict:
        now = int(time.time())
        assertion = jwt.encode(
            {"iss": self.client_email, "scope": self.SCOPE, "aud": self.TOKEN_URL,
             "iat": now, "exp": now + 3600},
            self.private_key,
            algorithm="RS256",
        )
        r = self._call("post", self.TOKEN_URL, data={
            "grant_type": "urn:ietf:params:oauth:grant-type:jwt-bearer",
            "assertion": assertion,
        })
        return {"Authorization": f"Bearer {r.json()['access_token']}"}

    def _call(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            r = requests.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error("drive request %s %s failed: %s", method.upper(), url, e)
            raise StorageUnavailable("image storage unreachable")
        if not r.ok:
            logger.error("drive %s %s returned %s: %s", method.upper(), url, r.status_code, r.text[:200])
            raise StorageUnavailable(f"image storage returned {r.status_code}")
        return r

    def store(self, data: bytes, mimetype: str, filename: str) -> StoredImage:
        name = _safe_name(filename)
        headers = self._headers()
        metadata = {"name": name, "mimeType": mimetype}
        if self.folder_id:
            metadata["parents"] = [self.folder_id]
        r = self._call(
            "post", self.UPLOAD_URL,
            params={"uploadType": "multipart", "fields": "id"},
            headers=headers,
            files={
                "metadata": ("metadata", json.dumps(metadata), "application/json; charset=UTF-8"),
                "file": (name, data, mimetype),
            },
        )
        file_id = r.json().get("id")
        if not file_id:
            raise StorageUnavailable("image storage returned no file id")

        # anyone with the link can read the cover
        self._call("post", f"{self.FILES_URL}/{file_id}/permissions",
                   headers=headers, json={"role": "reader", "type": "anyone"})
        meta = self._call("get", f"{self.FILES_URL}/{file_id}",
                          headers=headers, params={"fields": "webViewLink,webContentLink"}).json()
        return StoredImage(file_id=file_id, url=meta.get("webContentLink") or meta.get("webViewLink") or "")

    def delete(self, file_id: str) -> None:
        self._call("delete", f"{self.FILES_URL}/{file_id}", headers=self._headers())


def build_image_storage(app) -> ImageStorage:
    raw = app.config.get("GOOGLE_CREDENTIALS")
    if raw:
        app.logger.info("cover images: Google Drive")
        return DriveImageStorage.from_json(raw, folder_id=app.config.get("GOOGLE_DRIVE_FOLDER_ID"))
    folder = app.config["UPLOAD_FOLDER"].strip("/")
    app.logger.info("cover images: local static/%s", folder)
    return LocalImageStorage(Path(app.static_folder) / folder, f"{app.static_url_path}/{folder}")
