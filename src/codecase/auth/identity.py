"""Authenticated caller, as read from the identity provider's token."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Identity:
    user_id: str
    email: str | None = None
