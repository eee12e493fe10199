"""ID and timestamp factories.

Order ids, in-memory message ids and receipts are all UUID v4 strings.

Timestamp Rule
--------------
All timestamps are ``datetime`` with ``tzinfo=timezone.utc``, never naive.
"""

from __future__ import annotations

import os
import socket
import uuid
from datetime import datetime, timezone


def new_id() -> str:
    """Generate a new UUID v4 string."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


def consumer_name(prefix: str) -> str:
    """Identity of this process inside a consumer group.

    ``<prefix>-<host>-<pid>-<random>``; stable for the life of the process
    and unique across restarts, so a restarted worker never inherits the
    pending entries of its previous incarnation by name.
    """
    return f"{prefix}-{socket.gethostname()}-{os.getpid()}-{new_id()[:8]}"
