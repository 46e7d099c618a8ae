import os
import uuid
from fastapi import UploadFile
from ..config import settings
from ..errors import ValidationError


def file_extension(filename: str) -> str:
    return os.path.splitext(filename or "")[1].lstrip(".").lower()


def read_upload_file(upload_file: UploadFile) -> bytes:
    """Read an upload, enforcing the size limit and extension allow-list"""
    if not upload_file.filename:
        raise ValidationError("No file provided")

    extension = file_extension(upload_file.filename)
    if extension not in settings.allowed_extensions:
        allowed = ", ".join(ext.upper() for ext in settings.allowed_extensions)
        raise ValidationError(f"File type not allowed. Allowed types: {allowed}")

    # Validate file size while reading
    chunks = []
    file_size = 0
    chunk_size = 1024 * 1024  # 1MB
    while chunk := upload_file.file.read(chunk_size):
        file_size += len(chunk)
        if file_size > settings.max_file_size:
            raise ValidationError("File size must be less than 5MB")
        chunks.append(chunk)

    return b"".join(chunks)


def build_object_path(challenge_id: int, user_id: str, filename: str) -> str:
    safe_name = os.path.basename(filename).replace(" ", "_")
    return f"{challenge_id}/{user_id}/{uuid.uuid4()}_{safe_name}"


def original_filename(file_ref: str) -> str:
    name = file_ref.rsplit("/", 1)[-1]
    prefix, sep, rest = name.partition("_")
    return rest if sep and len(prefix) == 36 else name
