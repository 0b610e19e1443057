"""Domain events for the auth domain."""

from fedauth.domain.shared.event import Event


class SessionCreated(Event):
    """Emitted when a session becomes active."""

    session_id: str
    user_id: str
    client_id: str


class UserCreated(Event):
    """Emitted when a sign-up converts into a user."""

    user_id: str


class UserUpdated(Event):
    """Emitted when a user's profile or linked accounts change."""

    user_id: str
