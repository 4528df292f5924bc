from __future__ import annotations

"""
SessionManager: the single authoritative session for one client context.

Construct once per process (or per simulated tab) and pass it to consumers.
It subscribes to the shared store on construction and releases the
subscription on close().
"""

import asyncio
import threading
import uuid
from typing import Any, Callable, List, Mapping, Optional, Protocol, Union

from civiccare.core.config.models import SessionConfig
from civiccare.core.errors import ValidationError
from civiccare.core.session.models import (
    OutcomeKind,
    Session,
    SessionOutcome,
    SessionStatus,
    SessionView,
    UserProfile,
    coerce_profile,
    parse_cached_user,
)
from civiccare.core.session.reconcile import Delay, reconcile_profile
from civiccare.core.storage.base import KeyValueStore, StorageEvent


class AuthCollaborator(Protocol):
    async def fetch_profile(self, token: str) -> Any: ...

    async def logout(self, token: Optional[str]) -> Any: ...


SessionListener = Callable[[SessionView], None]


class SessionManager:
    def __init__(
        self,
        *,
        store: KeyValueStore,
        auth: AuthCollaborator,
        cfg: Optional[SessionConfig] = None,
        delay: Optional[Delay] = None,
        logger=None,
        event_logger=None,
    ):
        self.store = store
        self.auth = auth
        self.cfg = cfg or SessionConfig()
        self.logger = logger
        self.event_logger = event_logger
        self._delay: Delay = delay or asyncio.sleep

        self._lock = threading.RLock()
        self._session = Session()
        self._listeners: List[SessionListener] = []
        self._init_started = False
        self._closed = False
        self._unsubscribe_store: Optional[Callable[[], None]] = store.subscribe(self._on_storage_event)

    # ---------- read side ----------
    @property
    def status(self) -> SessionStatus:
        with self._lock:
            return self._session.status

    @property
    def user(self) -> Optional[UserProfile]:
        with self._lock:
            return self._session.user

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def is_loading(self) -> bool:
        return self.status != SessionStatus.READY

    @property
    def closed(self) -> bool:
        return self._closed

    def view(self) -> SessionView:
        with self._lock:
            user = self._session.user
            status = self._session.status
        return SessionView(user=user, is_authenticated=user is not None, is_loading=status != SessionStatus.READY)

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """
        Register a listener called with the new SessionView after every change.
        Returns an unsubscribe callable.
        """
        if not callable(listener):
            raise ValueError("listener must be callable")
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                try:
                    self._listeners.remove(listener)
                except ValueError:
                    pass

        return _unsubscribe

    # ---------- operations ----------
    async def initialize(self) -> SessionView:
        """
        Restore the session at startup.

        Phase 1 (synchronous): apply the cached user, if any.
        Phase 2 (asynchronous): verify the stored token with the backend,
        retrying transient failures with linear backoff.
        """
        with self._lock:
            if self._init_started or self._closed:
                if self.logger:
                    self.logger.info("Session initialize ignored (already started or closed).")
                return self.view()
            self._init_started = True

        trace_id = uuid.uuid4().hex
        token = self.store.get(self.cfg.token_key)
        cached = self._read_cached_user()

        with self._lock:
            self._session.token = token or None
            # a cached user without a token is not a session
            self._session.user = cached if token else None
            self._session.status = SessionStatus.RESTORING if token else SessionStatus.READY
        self._publish()

        if not token:
            self._log_event(trace_id, "session.init", {"outcome": "no_token", "cached_user": cached is not None})
            return self.view()

        outcome = await reconcile_profile(
            token,
            self.auth.fetch_profile,
            self._delay,
            max_attempts=self.cfg.max_attempts,
            backoff_seconds=self.cfg.backoff_seconds,
            is_cancelled=lambda: self._closed,
            logger=self.logger,
        )
        if outcome.kind == OutcomeKind.CANCELLED or self._closed:
            return self.view()

        self._apply_outcome(token, outcome)
        self._log_event(trace_id, "session.init", {"outcome": outcome.kind.value, "attempts": outcome.attempts})
        return self.view()

    def login(self, token: str, profile: Union[UserProfile, Mapping[str, Any]]) -> SessionView:
        """
        Record a session obtained from a successful login/registration exchange.
        """
        if not token:
            raise ValidationError("A token is required to log in.")
        user = coerce_profile(profile)
        with self._lock:
            self.store.set(self.cfg.token_key, token)
            self.store.set(self.cfg.user_key, user.to_json())
            self._session.token = token
            self._session.user = user
            self._session.status = SessionStatus.READY
        self._publish()
        self._log_event(uuid.uuid4().hex, "session.login", {"user_id": user.id})
        return self.view()

    async def logout(self) -> SessionView:
        """
        End the session. The local session is cleared even when the backend
        call fails.
        """
        token = self.store.get(self.cfg.token_key)
        try:
            await self.auth.logout(token)
        except Exception as e:  # noqa: BLE001
            if self.logger:
                self.logger.warning(f"Logout request failed; clearing local session anyway: {e}")
        finally:
            self._clear_local()
        self._log_event(uuid.uuid4().hex, "session.logout", {"had_token": bool(token)})
        return self.view()

    def update_user(self, partial: Mapping[str, Any]) -> Optional[UserProfile]:
        """
        Merge changed fields (e.g. total_points) into the current user.
        No-op when nobody is logged in.
        """
        with self._lock:
            current = self._session.user
            if current is None:
                return None
            merged = current.merged(partial)
            self.store.set(self.cfg.user_key, merged.to_json())
            self._session.user = merged
        self._publish()
        return merged

    def close(self) -> None:
        """
        Tear down: stop any in-flight reconciliation from mutating state and
        stop reacting to other contexts.
        """
        with self._lock:
            self._closed = True
            unsubscribe = self._unsubscribe_store
            self._unsubscribe_store = None
        if unsubscribe is not None:
            unsubscribe()

    # ---- internals ----
    def _read_cached_user(self) -> Optional[UserProfile]:
        raw = self.store.get(self.cfg.user_key)
        try:
            return parse_cached_user(raw)
        except ValidationError as e:
            if self.logger:
                self.logger.warning(f"Discarding malformed cached user: {e}")
            self.store.remove(self.cfg.user_key)
            return None

    def _apply_outcome(self, token: str, outcome: SessionOutcome) -> None:
        # a login/logout from this or another context may have replaced the token meanwhile
        still_current = self.store.get(self.cfg.token_key) == token
        with self._lock:
            if outcome.kind == OutcomeKind.VERIFIED and outcome.user is not None:
                if still_current:
                    self.store.set(self.cfg.user_key, outcome.user.to_json())
                    self._session.user = outcome.user
            elif outcome.kind == OutcomeKind.UNAUTHORIZED:
                if still_current:
                    self.store.remove(self.cfg.token_key)
                    self.store.remove(self.cfg.user_key)
                    self._session.token = None
                    self._session.user = None
                self._log_event(uuid.uuid4().hex, "session.invalidated", {"attempts": outcome.attempts, "applied": still_current})
            elif outcome.kind == OutcomeKind.UNREACHABLE:
                if self.logger:
                    self.logger.warning(f"Profile verification gave up after {outcome.attempts} attempt(s); keeping cached user.")
            self._session.status = SessionStatus.READY
        self._publish()

    def _clear_local(self) -> None:
        with self._lock:
            self.store.remove(self.cfg.token_key)
            self.store.remove(self.cfg.user_key)
            self._session.token = None
            self._session.user = None
        self._publish()

    def _on_storage_event(self, ev: StorageEvent) -> None:
        if self._closed:
            return
        if ev.key == self.cfg.token_key:
            with self._lock:
                if ev.new_value:
                    self._session.token = ev.new_value
                    return
                self._session.token = None
                self._session.user = None
            self._log_event(uuid.uuid4().hex, "session.cross_tab", {"change": "token_removed"})
            self._publish()
            return
        if ev.key == self.cfg.user_key and ev.new_value:
            try:
                user = parse_cached_user(ev.new_value)
            except ValidationError:
                return
            with self._lock:
                self._session.user = user
            self._log_event(uuid.uuid4().hex, "session.cross_tab", {"change": "user_updated"})
            self._publish()

    def _publish(self) -> None:
        view = self.view()
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(view)
            except Exception as e:  # noqa: BLE001
                if self.logger:
                    self.logger.error(f"Session listener failed: {e}")

    def _log_event(self, trace_id: str, event: str, details: dict) -> None:
        if self.logger:
            self.logger.info(f"{event} {details}")
        if self.event_logger is None:
            return
        try:
            self.event_logger.log(trace_id, event, details)
        except OSError as e:
            if self.logger:
                self.logger.warning(f"Unable to write session event log: {e}")
