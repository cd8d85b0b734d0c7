"""
Venue Gallery Backend — Shared Model Helpers
=============================================

What:  Identifier generation, UTC timestamps and the timestamp column mixin
       shared by the `categories` and `images` tables.

Identifier format:
    24 lowercase hex characters: 8 for the creation second, 16 random.
    Ids therefore sort roughly by creation time and match the id pattern the
    HTTP layer enforces on path parameters (OBJECT_ID_PATTERN).
"""

import secrets
import time
from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.orm import Mapped, mapped_column

OBJECT_ID_PATTERN = r"^[0-9a-fA-F]{24}$"


def generate_object_id() -> str:
    """Return a new 24-character hexadecimal identifier."""
    return f"{int(time.time()) & 0xFFFFFFFF:08x}{secrets.token_hex(8)}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimestampMixin:
    """Adds created_at / updated_at columns maintained by the ORM."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        comment="When this row was created (UTC)",
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        comment="When this row was last modified (UTC)",
    )
