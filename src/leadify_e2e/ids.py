"""Identifier helpers used when seeding test rows."""

import time
import uuid
import random
import string

_BASE36 = string.digits + string.ascii_lowercase


def new_id() -> str:
    """Return a random UUID4 string."""
    return str(uuid.uuid4())


def is_uuid(value) -> bool:
    try:
        uuid.UUID(str(value))
    except (ValueError, TypeError, AttributeError):
        return False
    return True


def conversation_tag(now_ms: int = None) -> str:
    """Tag in the form ``test_<epoch ms>_<9 base36 chars>`` for rows created by checks."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    suffix = ''.join(random.choice(_BASE36) for _ in range(9))
    return f"test_{now_ms}_{suffix}"
