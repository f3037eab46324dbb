"""Opaque identifier generation."""
from __future__ import annotations

import itertools
import secrets
import time

_counter = itertools.count(1)


def generate_id() -> str:
    """Return a process-unique id of the form ``<millis>-<random>-<counter>``."""
    millis = int(time.time() * 1000)
    return f"{millis}-{secrets.randbelow(1000)}-{next(_counter)}"
