# utils/file_names.py
import uuid

IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "bmp", "webp"}
ALLOWED_EXTENSIONS = {"txt", "csv"} | IMAGE_EXTENSIONS
ALLOWED_MIME_TYPES = {"text/plain", "text/csv"}


def file_extension(file_name: str) -> str:
    """
    Lower-cased extension without the dot, or "" when the name has none.
    """
    if not file_name or "." not in file_name:
        return ""
    return file_name.rsplit(".", 1)[-1].strip().lower()


def random_object_name(file_name: str) -> str:
    """Random storage object name that keeps the original extension."""
    ext = file_extension(file_name)
    stem = uuid.uuid4().hex
    return f"{stem}.{ext}" if ext else stem
