"""Session package: authentication state and its observers."""

from finflow.session.broadcast import SessionSubscription, StateBroadcaster
from finflow.session.manager import SessionManager

__all__ = [
    "SessionManager",
    "SessionSubscription",
    "StateBroadcaster",
]
