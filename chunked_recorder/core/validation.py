"""
Validation of client-supplied identifiers before they touch the filesystem
"""
import re

from .exceptions import ValidationError

SESSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


def validate_session_id(session_id) -> str:
    """
    Return the session id unchanged if it is safe to use as a path component.

    Only letters, digits, underscore and hyphen are accepted, so separators,
    dots and empty values never reach a path join.
    """
    if not isinstance(session_id, str) or not session_id:
        raise ValidationError("Missing sessionId")
    if not SESSION_ID_PATTERN.fullmatch(session_id):
        raise ValidationError(
            "Invalid sessionId: use 1-128 letters, digits, '_' or '-'"
        )
    return session_id


def validate_chunk_index(chunk_index, width: int) -> int:
    """Accept a non-negative int (or its decimal text) that fits the file name width"""
    if chunk_index is None or chunk_index == "":
        raise ValidationError("Missing chunkIndex")
    if isinstance(chunk_index, bool):
        raise ValidationError("chunkIndex must be a non-negative integer")
    if isinstance(chunk_index, str):
        text = chunk_index.strip()
        # isdigit() alone admits non-ASCII digits such as "²" that int() rejects
        if not (text.isascii() and text.isdigit()):
            raise ValidationError("chunkIndex must be a non-negative integer")
        if len(text.lstrip("0")) > width:
            raise ValidationError(f"chunkIndex must be below {10 ** width}")
        chunk_index = int(text)
    if not isinstance(chunk_index, int) or chunk_index < 0:
        raise ValidationError("chunkIndex must be a non-negative integer")
    if chunk_index >= 10 ** width:
        raise ValidationError(f"chunkIndex must be below {10 ** width}")
    return chunk_index
