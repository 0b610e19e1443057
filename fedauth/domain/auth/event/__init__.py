"""Auth domain events."""

from .events import SessionCreated, UserCreated, UserUpdated

__all__ = ["SessionCreated", "UserCreated", "UserUpdated"]
