"""Session lifecycle management.

Provides ``SessionLifecycleManager``, which owns the notion of the
*current* session.  A backend session is created lazily by the first
successful send, or eagerly through an explicit "new chat" action; both
paths converge here.

Classes
-------
- SessionNotFoundError            — the backend has no such session
- SessionCreationInProgressError  — a lazy creation is already in flight
- SwitchSupersededError           — a newer switch started meanwhile
- SentExchange                    — confirmed user message and its reply
- SwitchResult                    — outcome of ``switch_to``
- SessionLifecycleManager         — current-session owner
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from chat_session_controller.gateway.base import BackendGateway, FailureKind, GatewayError
from chat_session_controller.messages.repository import MessageRepository, PersistenceError
from chat_session_controller.session.offline_queue import FlushReport, OfflineQueue
from chat_session_controller.session.state import (
    Message,
    OfflineQueueEntry,
    Session,
    derive_title,
)
from chat_session_controller.session.store import SessionStore

logger = logging.getLogger(__name__)


class SessionNotFoundError(KeyError):
    """Raised when the backend reports that a session does not exist."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session {session_id!r} not found.")


class SessionCreationInProgressError(RuntimeError):
    """Raised when a second lazy creation is attempted before the first ends."""

    def __init__(self) -> None:
        super().__init__("Session creation already in progress.")


class SwitchSupersededError(RuntimeError):
    """Raised by ``switch_to`` when a later switch has been started."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Switch to {session_id!r} superseded by a later switch.")


@dataclass
class SentExchange:
    """A delivered user message together with the assistant's reply."""

    session_id: str
    user_message: Message
    reply: Message
    created_session: bool = False


@dataclass
class SwitchResult:
    """Outcome of a successful ``switch_to``."""

    session: Session
    messages: list[Message] = field(default_factory=list)
    has_more: bool = False


class SessionLifecycleManager:
    """Own the current session: lazy creation, switching, and persistence.

    Parameters
    ----------
    gateway:
        Backend used to send messages and create or fetch sessions.
    repository:
        Message history store; sends are written through to it.
    session_store:
        Persists the last-session pointer and cached session metadata.
    offline_queue:
        Queue of sends that failed with a network error.  A default
        ``OfflineQueue`` is created when omitted.
    page_size:
        Number of messages loaded when switching to a session.
    """

    def __init__(
        self,
        gateway: BackendGateway,
        repository: MessageRepository,
        session_store: SessionStore,
        offline_queue: OfflineQueue | None = None,
        page_size: int = 50,
    ) -> None:
        self._gateway = gateway
        self._repository = repository
        self._store = session_store
        self._offline_queue = offline_queue if offline_queue is not None else OfflineQueue()
        self._page_size = page_size
        self._current: Session | None = None
        self._creation_in_progress = False
        self._creation_settled = asyncio.Event()
        self._creation_settled.set()
        self._generation = 0
        self._lazy_generation = 0

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def current_session(self) -> Session | None:
        return self._current

    @property
    def current_session_id(self) -> str | None:
        return self._current.session_id if self._current is not None else None

    @property
    def creation_in_progress(self) -> bool:
        return self._creation_in_progress

    @property
    def offline_queue(self) -> OfflineQueue:
        return self._offline_queue

    @property
    def page_size(self) -> int:
        return self._page_size

    # ------------------------------------------------------------------
    # Lazy creation
    # ------------------------------------------------------------------

    def resolve_session_for_send(self) -> str | None:
        """Return the session id a new send should target.

        When a current session exists its id is returned unchanged and no
        backend call is made.  Otherwise the lazy-creation slot is claimed
        and None is returned: the send itself creates the session.

        Raises
        ------
        SessionCreationInProgressError
            If another send already claimed the lazy-creation slot.
        """
        if self._current is not None:
            return self._current.session_id
        if self._creation_in_progress:
            raise SessionCreationInProgressError()
        self._creation_in_progress = True
        self._creation_settled.clear()
        self._lazy_generation = self._generation
        logger.debug("SessionLifecycleManager: lazy creation claimed")
        return None

    async def await_session_for_send(self) -> str | None:
        """Resolve a send target, waiting out a lazy creation in flight.

        A send that arrives while another send is creating the session
        reuses the session that creation yields.  If that creation fails the
        waiter claims the lazy-creation slot itself.
        """
        while True:
            await self._creation_settled.wait()
            try:
                return self.resolve_session_for_send()
            except SessionCreationInProgressError:
                continue

    def release_lazy_claim(self) -> None:
        """Give back a lazy-creation slot that will not be used."""
        self._creation_in_progress = False
        self._creation_settled.set()

    async def send(
        self,
        message: Message,
        session_id: str | None,
        context: dict[str, str] | None = None,
    ) -> SentExchange:
        """Deliver ``message`` through the gateway and persist the exchange.

        ``session_id`` must come from ``resolve_session_for_send`` (or be an
        explicit target such as a queued entry's session).  A None id means
        the lazy-creation slot is held by the caller; it is released here on
        every path.

        Raises
        ------
        GatewayError
            If the backend rejected or could not receive the message.
        """
        lazy = session_id is None
        payload = dict(context or {})
        if lazy:
            payload.setdefault("session_title", derive_title(message.text))
        try:
            result = await self._gateway.send(session_id, message.text, payload)
            if lazy:
                await self._adopt_created_session(result.session_id)
        finally:
            if lazy:
                self.release_lazy_claim()

        confirmed = message.mark_sent(result.user_message_id)
        reply = result.reply
        try:
            confirmed = await self._repository.append(result.session_id, confirmed)
            reply = await self._repository.append(result.session_id, reply)
        except PersistenceError as exc:
            logger.warning("SessionLifecycleManager: could not persist exchange: %s", exc)

        if self._current is not None and self._current.session_id == result.session_id:
            self._current.touch(2)
            await self._cache_session(self._current)
        return SentExchange(
            session_id=result.session_id,
            user_message=confirmed,
            reply=reply,
            created_session=lazy,
        )

    async def _adopt_created_session(self, session_id: str) -> None:
        if self._generation != self._lazy_generation or self._current is not None:
            # A switch or explicit creation happened while the send was in flight.
            logger.debug(
                "SessionLifecycleManager: lazily created %r not adopted", session_id
            )
            return
        try:
            session = await self._gateway.get_session(session_id)
        except GatewayError as exc:
            logger.warning(
                "SessionLifecycleManager: metadata fetch for %r failed: %s", session_id, exc
            )
            session = Session(session_id=session_id)
        self._current = session
        logger.debug("SessionLifecycleManager: lazily created session %r", session_id)
        await self.persist_last_session(session_id)

    # ------------------------------------------------------------------
    # Switching and explicit creation
    # ------------------------------------------------------------------

    async def switch_to(self, session_id: str) -> SwitchResult:
        """Make ``session_id`` current and load its most recent messages.

        The switch is atomic: the current session changes only after both
        the metadata and the first page of history were fetched.

        Raises
        ------
        SessionNotFoundError
            If the backend has no session ``session_id``.
        SwitchSupersededError
            If another switch or creation started while this one awaited.
        GatewayError
            For any other backend failure.
        """
        self._generation += 1
        ticket = self._generation
        try:
            session = await self._gateway.get_session(session_id)
        except GatewayError as exc:
            if exc.kind is FailureKind.NOT_FOUND:
                raise SessionNotFoundError(session_id) from exc
            raise
        messages = await self._repository.fetch_page(session_id, self._page_size)
        if ticket != self._generation:
            raise SwitchSupersededError(session_id)

        self._current = session
        logger.debug("SessionLifecycleManager: switched to %r", session_id)
        await self.persist_last_session(session_id)
        await self._cache_session(session)
        return SwitchResult(
            session=session,
            messages=messages,
            has_more=len(messages) >= self._page_size,
        )

    async def recent_sessions(self, limit: int = 20) -> list[Session]:
        """Return the backend's most recently active sessions, newest first.

        Raises
        ------
        GatewayError
            If the backend could not be reached.
        """
        sessions = await self._gateway.list_sessions(limit)
        logger.debug("SessionLifecycleManager: listed %d sessions", len(sessions))
        return sessions

    async def create_explicitly(self, title: str | None = None) -> Session:
        """Create a backend session right away and make it current.

        Failures propagate to the caller and are not retried.
        """
        self._generation += 1
        ticket = self._generation
        if not title:
            now = datetime.now(timezone.utc)
            title = f"New Chat {now.day}/{now.month}"
        session = await self._gateway.create_session(title)
        if ticket != self._generation:
            raise SwitchSupersededError(session.session_id)
        self._current = session
        logger.debug("SessionLifecycleManager: created session %r explicitly", session.session_id)
        await self.persist_last_session(session.session_id)
        await self._cache_session(session)
        return session

    def reset(self) -> None:
        """Forget the current session; the next send creates a new one."""
        self._generation += 1
        self._current = None

    async def clear_current(self, delete_backend: bool = False) -> None:
        """Drop the current session, optionally deleting it in the backend.

        Raises
        ------
        GatewayError
            If the backend deletion failed; the session stays current.
        """
        session_id = self.current_session_id
        if session_id is not None and delete_backend:
            await self._gateway.delete_session(session_id)
            await self._repository.clear(session_id)
            try:
                await self._store.forget_session(session_id)
                await self._store.clear_last_session_id()
            except Exception as exc:  # noqa: BLE001 — pointer is a convenience
                logger.warning("SessionLifecycleManager: could not forget %r: %s", session_id, exc)
        self.reset()

    # ------------------------------------------------------------------
    # Last-session pointer (best-effort)
    # ------------------------------------------------------------------

    async def persist_last_session(self, session_id: str) -> None:
        """Remember ``session_id`` as the last active session.

        Failures are logged and swallowed.
        """
        try:
            await self._store.set_last_session_id(session_id)
        except Exception as exc:  # noqa: BLE001 — pointer is a convenience
            logger.warning("SessionLifecycleManager: could not persist last session: %s", exc)

    async def load_last_session(self) -> str | None:
        """Return the last active session id, or None.

        Failures are logged and swallowed.
        """
        try:
            return await self._store.get_last_session_id()
        except Exception as exc:  # noqa: BLE001 — pointer is a convenience
            logger.warning("SessionLifecycleManager: could not load last session: %s", exc)
            return None

    async def forget_last_session(self) -> None:
        try:
            await self._store.clear_last_session_id()
        except Exception as exc:  # noqa: BLE001 — pointer is a convenience
            logger.warning("SessionLifecycleManager: could not clear last session: %s", exc)

    async def _cache_session(self, session: Session) -> None:
        try:
            await self._store.save_session(session)
        except Exception as exc:  # noqa: BLE001 — cache is a convenience
            logger.warning("SessionLifecycleManager: could not cache %r: %s", session.session_id, exc)

    # ------------------------------------------------------------------
    # Offline queue
    # ------------------------------------------------------------------

    def enqueue_offline(
        self, message: Message, session_id: str | None, error: str
    ) -> OfflineQueueEntry:
        entry = self._offline_queue.enqueue(message, session_id, error)
        logger.debug(
            "SessionLifecycleManager: queued %r offline (%d queued)",
            message.message_id,
            len(self._offline_queue),
        )
        return entry

    async def flush_offline(
        self,
        context: dict[str, str] | None = None,
        on_sent: Callable[[OfflineQueueEntry, SentExchange], None] | None = None,
        on_failed: Callable[[OfflineQueueEntry, GatewayError, bool], None] | None = None,
    ) -> FlushReport:
        """Deliver queued messages one at a time, oldest first.

        The pass stops at the first entry that still fails, so later entries
        never overtake it.  An entry that fails terminally or exhausts its
        retry budget is abandoned and removed; expired entries are abandoned
        without being sent.

        Parameters
        ----------
        context:
            Extra data forwarded with every send.
        on_sent:
            Called with each delivered entry and its exchange.
        on_failed:
            Called with the failing entry, the error, and whether the entry
            was abandoned.
        """
        report = FlushReport()
        queue = self._offline_queue
        while (entry := queue.peek()) is not None:
            if entry.is_expired(datetime.now(timezone.utc), queue.max_age):
                queue.remove(entry.entry_id)
                report.abandoned.append(entry)
                logger.debug("SessionLifecycleManager: dropped expired entry %r", entry.entry_id)
                continue

            try:
                target = entry.session_id or self.resolve_session_for_send()
            except SessionCreationInProgressError:
                report.stopped_on = entry
                break
            try:
                exchange = await self.send(entry.message, target, context)
            except GatewayError as exc:
                queue.record_failure(entry, exc.message)
                abandoned = not exc.retryable or queue.should_abandon(entry)
                if abandoned:
                    queue.remove(entry.entry_id)
                    report.abandoned.append(entry)
                report.stopped_on = entry
                if on_failed is not None:
                    on_failed(entry, exc, abandoned)
                logger.debug(
                    "SessionLifecycleManager: flush stopped on %r (%s)", entry.entry_id, exc.kind.value
                )
                break

            queue.remove(entry.entry_id)
            entry.session_id = exchange.session_id
            report.sent.append(entry)
            if on_sent is not None:
                on_sent(entry, exchange)
        return report

    def __repr__(self) -> str:
        return (
            f"SessionLifecycleManager(current={self.current_session_id!r}, "
            f"queued={len(self._offline_queue)})"
        )
