"""
Session State Model

Exactly one SessionState holds for the process at any time. It is a
frozen value: the session manager replaces it, nobody mutates it.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, model_validator


class SessionPhase(str, Enum):
    """Lifecycle phases of the authenticated session."""
    LOADING = "loading"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"
    REFRESHING = "refreshing"
    SESSION_EXPIRED = "session_expired"


class SessionState(BaseModel):
    """
    Closed variant over SessionPhase.

    Only AUTHENTICATED carries a token, and it must be non-empty.
    Build values through the classmethods rather than the constructor.
    """
    model_config = ConfigDict(frozen=True)

    phase: SessionPhase
    token: Optional[str] = None

    @model_validator(mode='after')
    def validate_token(self) -> 'SessionState':
        if self.phase == SessionPhase.AUTHENTICATED:
            if not self.token:
                raise ValueError("Authenticated state requires a token")
        elif self.token is not None:
            raise ValueError(f"{self.phase.value} state cannot carry a token")
        return self

    @classmethod
    def loading(cls) -> 'SessionState':
        return cls(phase=SessionPhase.LOADING)

    @classmethod
    def authenticated(cls, token: str) -> 'SessionState':
        return cls(phase=SessionPhase.AUTHENTICATED, token=token)

    @classmethod
    def unauthenticated(cls) -> 'SessionState':
        return cls(phase=SessionPhase.UNAUTHENTICATED)

    @classmethod
    def refreshing(cls) -> 'SessionState':
        return cls(phase=SessionPhase.REFRESHING)

    @classmethod
    def session_expired(cls) -> 'SessionState':
        return cls(phase=SessionPhase.SESSION_EXPIRED)

    @property
    def is_authenticated(self) -> bool:
        return self.phase == SessionPhase.AUTHENTICATED

    def __str__(self) -> str:
        # Never print the token itself
        if self.token:
            return f"{self.phase.value}(token=***)"
        return self.phase.value
