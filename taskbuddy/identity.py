"""
Identity provider boundary.

The provider signs users in and out; the core only needs the current user
id to scope store queries. AuthSession routes provider callbacks to
subscribers, the same way the board routes store events.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class User:
    id: str
    name: str
    email: str
    avatar_url: Optional[str] = None

    @classmethod
    def from_profile(cls, profile: Mapping[str, Any]) -> "User":
        """Build a User from an identity provider profile."""
        return cls(
            id=profile["uid"],
            name=profile.get("displayName") or "User",
            email=profile.get("email") or "",
            avatar_url=profile.get("photoURL") or None,
        )


class AuthSession:
    """Current sign-in state plus change notifications."""

    def __init__(self):
        self.user: Optional[User] = None
        self.loading = True     # until the provider reports the first state
        self.subscribers: List[Callable[[Optional[User]], None]] = []

    @property
    def user_id(self) -> Optional[str]:
        return self.user.id if self.user else None

    def subscribe(self, callback: Callable[[Optional[User]], None]) -> Callable[[], None]:
        """Register a callback for auth changes. Returns an unsubscribe function."""
        self.subscribers.append(callback)

        def unsubscribe():
            if callback in self.subscribers:
                self.subscribers.remove(callback)
        return unsubscribe

    def _emit(self) -> None:
        for callback in list(self.subscribers):
            try:
                callback(self.user)
            except Exception:
                logger.exception("Error in auth state callback")

    def signed_in(self, user: User) -> None:
        """Provider callback: a user finished signing in."""
        logger.info(f"Signed in: {user.email or user.id}")
        self.user = user
        self.loading = False
        self._emit()

    def signed_out(self) -> None:
        """Provider callback: the user signed out (or no session exists)."""
        if self.user:
            logger.info(f"Signed out: {self.user.email or self.user.id}")
        self.user = None
        self.loading = False
        self._emit()

    def snapshot(self) -> Dict[str, Any]:
        return {"user_id": self.user_id, "loading": self.loading}
