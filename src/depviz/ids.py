# src/depviz/ids.py
from __future__ import annotations

import random
import string

CHARSET = string.ascii_lowercase + string.ascii_uppercase + string.digits
DEFAULT_LENGTH = 12


def make_id(length=None, *, default_length: int = DEFAULT_LENGTH) -> str:
    """Random alphanumeric id; a non-int length falls back to default_length."""
    if not isinstance(length, int) or isinstance(length, bool):
        length = default_length
    return "".join(random.choices(CHARSET, k=max(0, length)))
