"""Storage service - file uploads to Supabase Storage (prod) or local disk (dev).

Supabase is used when SUPABASE_URL and SUPABASE_SERVICE_KEY are configured;
otherwise files land under UPLOAD_FOLDER (default: instance/uploads/).

Holds avatars, the company logo, uploaded documents and generated
quotation PDFs (quotations/<id>.pdf).
"""

import logging
import os
import uuid

import requests
from flask import current_app

logger = logging.getLogger(__name__)

# Max file size: 10 MB
MAX_FILE_SIZE = 10 * 1024 * 1024

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}
DOCUMENT_EXTENSIONS = IMAGE_EXTENSIONS | {
    ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx", ".txt", ".csv",
}


def _get_supabase_config():
    """Return Supabase storage config if available, else None."""
    url = current_app.config.get("SUPABASE_URL")
    key = current_app.config.get("SUPABASE_SERVICE_KEY")
    bucket = current_app.config.get("SUPABASE_STORAGE_BUCKET", "crm-files")

    if url and key:
        return {"url": url.rstrip("/"), "key": key, "bucket": bucket}
    return None


def _local_root():
    return current_app.config.get("UPLOAD_FOLDER") or os.path.join(
        current_app.instance_path, "uploads"
    )


def validate_file(file, allowed_extensions=DOCUMENT_EXTENSIONS):
    """Validate an uploaded file (from request.files).

    Returns (ok: bool, error: str|None).
    """
    if not file or not file.filename:
        return False, "Please upload a file"

    ext = os.path.splitext(file.filename)[1].lower()
    if ext not in allowed_extensions:
        return False, f"File type '{ext}' is not allowed."

    # Check file size (read + seek back)
    file.seek(0, os.SEEK_END)
    size = file.tell()
    file.seek(0)

    if size > MAX_FILE_SIZE:
        return False, f"File is too large ({size / (1024*1024):.1f} MB). Maximum is 10 MB."

    if size == 0:
        return False, "File is empty."

    return True, None


def upload_file(file, folder):
    """Store a request upload under `folder`/ with a random name.

    Returns dict with:
        filename: original filename
        storage_path: path in bucket or on disk
        content_type: MIME type
        file_size: bytes
        public_url: URL to access the file
    """
    original_name = file.filename
    ext = os.path.splitext(original_name)[1].lower()
    storage_path = f"{folder}/{uuid.uuid4().hex}{ext}"

    file_data = file.read()
    content_type = file.content_type or "application/octet-stream"

    return {
        "filename": original_name,
        "storage_path": storage_path,
        "content_type": content_type,
        "file_size": len(file_data),
        "public_url": upload_bytes(storage_path, file_data, content_type),
    }


def upload_bytes(storage_path, data, content_type="application/octet-stream"):
    """Store raw bytes at `storage_path`, overwriting. Returns the public URL."""
    supabase = _get_supabase_config()
    if supabase:
        return _upload_supabase(supabase, storage_path, data, content_type)
    return _upload_local(storage_path, data)


def _upload_supabase(config, path, data, content_type):
    url = f"{config['url']}/storage/v1/object/{config['bucket']}/{path}"

    headers = {
        "Authorization": f"Bearer {config['key']}",
        "Content-Type": content_type,
        "x-upsert": "true",
    }

    resp = requests.post(url, headers=headers, data=data, timeout=30)
    resp.raise_for_status()

    logger.info("Uploaded to Supabase: %s", path)
    return f"{config['url']}/storage/v1/object/public/{config['bucket']}/{path}"


def _upload_local(path, data):
    """Write to the local upload folder. Returns a URL path served by the app."""
    filepath = os.path.join(_local_root(), path)
    os.makedirs(os.path.dirname(filepath), exist_ok=True)

    with open(filepath, "wb") as f:
        f.write(data)

    logger.info("Uploaded locally: %s", filepath)
    return f"/uploads/{path}"


def storage_path_from_url(url):
    """Recover the storage path from a URL produced by upload_bytes()."""
    if not url:
        return None
    if url.startswith("/uploads/"):
        return url[len("/uploads/"):]
    supabase = _get_supabase_config()
    if supabase:
        prefix = f"{supabase['url']}/storage/v1/object/public/{supabase['bucket']}/"
        if url.startswith(prefix):
            return url[len(prefix):]
    return None


def delete_file(storage_path):
    """Delete a stored file. Missing files are ignored; other failures raise."""
    supabase = _get_supabase_config()
    if supabase:
        url = f"{supabase['url']}/storage/v1/object/{supabase['bucket']}/{storage_path}"
        headers = {"Authorization": f"Bearer {supabase['key']}"}
        resp = requests.delete(url, headers=headers, timeout=10)
        if resp.status_code != 404:
            resp.raise_for_status()
        return

    try:
        os.remove(os.path.join(_local_root(), storage_path))
    except FileNotFoundError:
        pass
