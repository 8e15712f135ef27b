"""
Session Bootstrap
=================

AuthState hydrates the current session, keeps user/profile in sync with
auth-state notifications and provisions a default profile the first time
a user is seen.

LoadingStore is the shared base for state stores with a loading flag:
a wall-clock timer forces loading off after `timeout` seconds even when a
backend call never returns. The outstanding call is not cancelled;
AuthState.drain() waits for it before the backend is used again.

Backend calls run in worker threads (asyncio.to_thread) so the timer on
the event loop keeps running while a call blocks.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .backend import (
    BackendClient, BackendError, AuthApiError, AuthSession, User, Subscription,
    SIGNED_OUT, is_not_found,
)
from .config import Settings
from .notifications import Notifier
from .schemas import ProfileRow

logger = logging.getLogger(__name__)

UNEXPECTED_ERROR = "An unexpected error occurred"


@dataclass
class SessionConfig:
    """Bootstrap parameters"""
    loading_timeout: float = 8.0
    default_role: str = "attorney"

    @classmethod
    def from_settings(cls, settings: Settings) -> "SessionConfig":
        return cls(
            loading_timeout=settings.session_loading_timeout,
            default_role=settings.default_profile_role,
        )


# =============================================================================
# LOADING BASE
# =============================================================================

class LoadingStore:
    """Loading flag with a timeout fallback, an error message and a notifier."""

    label = "state"

    def __init__(self, timeout: float, notifier: Optional[Notifier] = None):
        self.timeout = timeout
        self.notifier = notifier or Notifier()
        self.loading = False
        self.timed_out = False
        self.error: Optional[str] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._settled = asyncio.Event()
        self._settled.set()

    def _begin_loading(self):
        self._cancel_timer()
        self.loading = True
        self.timed_out = False
        self._settled.clear()
        self._timer = asyncio.get_running_loop().call_later(self.timeout, self._force_loaded)

    def _force_loaded(self):
        self._timer = None
        if self.loading:
            logger.warning(f"{self.label} loading timed out after {self.timeout}s, forcing loading off")
            self.loading = False
            self.timed_out = True
        self._settled.set()

    def _finish_loading(self):
        self._cancel_timer()
        self.loading = False
        self._settled.set()

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fail(self, message: str):
        self.error = message
        self.notifier.error(message)

    async def settled(self):
        """Wait until loading finished or was forced off."""
        await self._settled.wait()

    async def _call(self, fn: Callable[..., Any], *args, **kwargs) -> Any:
        return await asyncio.to_thread(fn, *args, **kwargs)


# =============================================================================
# AUTH STATE
# =============================================================================

def default_full_name(user: User) -> str:
    metadata = user.user_metadata or {}
    if metadata.get("full_name"):
        return metadata["full_name"]
    if user.email and "@" in user.email:
        return user.email.split("@", 1)[0]
    return "User"


class AuthState(LoadingStore):
    """Session, user and profile for one client of the API."""

    label = "session"

    def __init__(self, backend: BackendClient, config: Optional[SessionConfig] = None,
                 notifier: Optional[Notifier] = None):
        config = config or SessionConfig()
        super().__init__(config.loading_timeout, notifier)
        self.backend = backend
        self.config = config
        self.session: Optional[AuthSession] = None
        self.user: Optional[User] = None
        self.profile: Optional[ProfileRow] = None
        self._subscription: Optional[Subscription] = None
        self._profile_checked_for: Optional[str] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def is_authenticated(self) -> bool:
        return self.session is not None and self.user is not None

    # -------------------------------------------------------------------------
    # Profile provisioning
    # -------------------------------------------------------------------------

    def _ensure_profile(self, user: User) -> Optional[ProfileRow]:
        """Fetch the user's profile, creating it on not-found. Runs once per user per bootstrap."""
        if self._profile_checked_for == user.id:
            return self.profile
        self._profile_checked_for = user.id

        try:
            row = (
                self.backend.table("profiles").select("*")
                .eq("id", user.id).single().execute().data
            )
            self.profile = ProfileRow.model_validate(row)
            return self.profile
        except BackendError as e:
            if not is_not_found(e):
                raise

        logger.info(f"No profile for user {user.id}, creating default profile")
        row = (
            self.backend.table("profiles").insert({
                "id": user.id,
                "email": user.email,
                "full_name": default_full_name(user),
                "role": self.config.default_role,
            }).single().execute().data
        )
        self.profile = ProfileRow.model_validate(row)
        return self.profile

    def _apply_session(self, session: Optional[AuthSession]):
        self.session = session
        self.user = session.user if session else None
        if self.user is None:
            self.profile = None
        elif self.profile is not None and self.profile.id != self.user.id:
            self.profile = None

    def _on_auth_change(self, event: str, session: Optional[AuthSession]):
        logger.info(f"Auth state change: {event}")
        self._apply_session(None if event == SIGNED_OUT else session)
        if self.user is None:
            return
        try:
            self._ensure_profile(self.user)
        except BackendError as e:
            logger.error(f"Error ensuring profile for {self.user.id}: {e.message}")
            self._fail(e.message)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self):
        """Hydrate the session and profile. Safe to call again to re-bootstrap."""
        self._begin_loading()
        self.error = None
        self._profile_checked_for = None
        if self._subscription is None:
            self._subscription = self.backend.auth.on_auth_state_change(self._on_auth_change)

        try:
            session = await self._call(self.backend.auth.get_session)
            self._apply_session(session)
            if self.user is not None:
                await self._call(self._ensure_profile, self.user)
        except BackendError as e:
            logger.error(f"Session bootstrap failed: {e.message}")
            self._fail(e.message)
        except Exception as e:
            logger.error(f"Session bootstrap failed: {e}", exc_info=True)
            self._fail(UNEXPECTED_ERROR)
        finally:
            self._finish_loading()

    async def bootstrap(self):
        """Run start() and return once it finished or the timeout forced loading off.

        After a timeout start() keeps running in the background.
        """
        await self.drain()
        self._settled.clear()
        self._task = asyncio.create_task(self.start())
        await self.settled()

    async def drain(self):
        """Wait for a start() that outlived the loading timeout.

        The background call still uses the request's database session, so
        anything else touching the backend waits for it first.
        """
        task = self._task
        if task is not None and not task.done():
            logger.info("Waiting for the session bootstrap still running after the timeout")
            await task

    def close(self):
        """Unsubscribe from auth notifications and stop the timer."""
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        self._cancel_timer()

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    async def sign_in(self, email: str, password: str) -> bool:
        await self.drain()
        self._begin_loading()
        self.error = None
        try:
            response = await self._call(self.backend.auth.sign_in_with_password, email, password)
            self._apply_session(response.session)
            return True
        except AuthApiError as e:
            self._fail(e.message)
            return False
        except Exception as e:
            logger.error(f"Sign in error: {e}", exc_info=True)
            self._fail(UNEXPECTED_ERROR)
            return False
        finally:
            self._finish_loading()

    async def sign_up(self, email: str, password: str, full_name: Optional[str] = None) -> bool:
        """Register and provision the profile; a failed profile insert signs the user out again."""
        await self.drain()
        self._begin_loading()
        self.error = None
        try:
            data = {"full_name": full_name} if full_name else None
            response = await self._call(self.backend.auth.sign_up, email, password, data)
            self._apply_session(response.session)
            if response.user is None:
                return False

            if self.profile is None or self.profile.id != response.user.id:
                try:
                    await self._call(self._ensure_profile, response.user)
                except BackendError as e:
                    logger.error(f"Profile creation failed for {response.user.id}: {e.message}")

            if self.profile is None:
                self._fail("Failed to create user profile")
                await self._call(self.backend.auth.sign_out)
                self._apply_session(None)
                return False
            return True
        except AuthApiError as e:
            self._fail(e.message)
            return False
        except Exception as e:
            logger.error(f"Sign up error: {e}", exc_info=True)
            self._fail(UNEXPECTED_ERROR)
            return False
        finally:
            self._finish_loading()

    async def sign_out(self):
        """Revoke the session; session, user and profile are cleared either way."""
        await self.drain()
        self._begin_loading()
        self.error = None
        try:
            await self._call(self.backend.auth.sign_out)
        except BackendError as e:
            self._fail(e.message)
        except Exception as e:
            logger.error(f"Sign out error: {e}", exc_info=True)
            self._fail(UNEXPECTED_ERROR)
        finally:
            self._apply_session(None)
            self._profile_checked_for = None
            self._finish_loading()

    def snapshot(self) -> dict:
        return {
            "user": {
                "id": self.user.id,
                "email": self.user.email,
                "user_metadata": self.user.user_metadata,
            } if self.user else None,
            "profile": self.profile,
            "loading": self.loading,
            "error": self.error,
        }
