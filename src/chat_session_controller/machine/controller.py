"""Conversation state machine.

``ConversationStateMachine`` turns user intents into state transitions.
``dispatch`` validates an intent synchronously and applies any optimistic
change at once; slow work (backend calls, audio, export) runs in tracked
asyncio tasks whose results come back through ``_commit``, the only place
the published state changes.

Classes
-------
- ValidationError           — an intent failed its precondition
- ConversationStateMachine  — the controller rendered by a presentation layer
"""
from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Awaitable, Callable, Coroutine
from dataclasses import replace
from datetime import datetime
from typing import Any, assert_never

from chat_session_controller.audio.base import AudioRecorder, SpeechPlayer
from chat_session_controller.gateway.base import BackendGateway, FailureKind, GatewayError
from chat_session_controller.machine.intents import (
    CancelRecording,
    ChangeLanguage,
    ClearChat,
    ConnectivityChanged,
    ExportHistory,
    Initialize,
    Intent,
    LoadOlderMessages,
    LoadQuickSuggestions,
    LoadSession,
    NewChat,
    PlayTextToSpeech,
    PlayVoiceMessage,
    ProcessOfflineQueue,
    Retry,
    RetryMessage,
    SaveAsFaq,
    SearchMessages,
    SendMessage,
    StartRecording,
    StopPlayback,
    StopRecording,
    ToggleFavorite,
)
from chat_session_controller.machine.signals import (
    DEFAULT_SIGNAL_BUFFER,
    ExportSuccess,
    IntentRejected,
    MessageSendFailed,
    OfflineQueueProcessed,
    OperationFailed,
    Signal,
    SignalChannel,
)
from chat_session_controller.machine.states import (
    ConversationState,
    Failed,
    Loading,
    Ready,
    Recording,
    Uninitialized,
)
from chat_session_controller.messages.repository import (
    MessageNotFoundError,
    MessageRepository,
    PersistenceError,
)
from chat_session_controller.session.exporter import HistoryExporter
from chat_session_controller.session.lifecycle import (
    SentExchange,
    SessionLifecycleManager,
    SessionNotFoundError,
    SwitchSupersededError,
)
from chat_session_controller.session.serializer import ExportFormat
from chat_session_controller.session.state import (
    Message,
    MessageSender,
    MessageStatus,
    MessageType,
    OfflineQueueEntry,
    PersonalizedSuggestions,
    UserContext,
    sort_messages,
)

logger = logging.getLogger(__name__)

StateListener = Callable[[ConversationState], None]

_EXPORT_FORMATS: frozenset[str] = frozenset({"json", "yaml"})
_OFFLINE_REASON = "offline"


class ValidationError(ValueError):
    """Raised internally when an intent is rejected.

    Never escapes ``dispatch``; the reason is published as ``IntentRejected``.
    """


class ConversationStateMachine:
    """Drive one open conversation.

    Parameters
    ----------
    lifecycle:
        Owner of the current session and the offline queue.
    gateway:
        Backend used for suggestions and user context.
    repository:
        Message history store used for paging, search and flag updates.
    recorder:
        Microphone capture.  Recording intents are rejected without one.
    player:
        Audio and text-to-speech playback.  Playback intents are rejected
        without one.
    exporter:
        Writes export files.  ``ExportHistory`` is rejected without one.
    language:
        Initial language code.
    tick_seconds:
        Interval at which the recording timer and waveform are updated.
    waveform_bars:
        Number of input-level samples kept in ``Recording.waveform``.
    signal_buffer:
        Undelivered signals kept; the oldest is dropped beyond this.

    Example
    -------
    ::

        machine = ConversationStateMachine(lifecycle, gateway, repository)
        machine.dispatch(SendMessage("Hello"))
        await machine.wait_idle()
    """

    def __init__(
        self,
        lifecycle: SessionLifecycleManager,
        gateway: BackendGateway,
        repository: MessageRepository,
        recorder: AudioRecorder | None = None,
        player: SpeechPlayer | None = None,
        exporter: HistoryExporter | None = None,
        language: str = "en",
        tick_seconds: float = 1.0,
        waveform_bars: int = 20,
        signal_buffer: int = DEFAULT_SIGNAL_BUFFER,
    ) -> None:
        self._lifecycle = lifecycle
        self._gateway = gateway
        self._repository = repository
        self._recorder = recorder
        self._player = player
        self._exporter = exporter
        self._language = language
        self._tick_seconds = tick_seconds
        self._waveform_bars = waveform_bars

        self._state: ConversationState = Uninitialized()
        self._suspended: Ready | None = None
        self._subscribers: list[StateListener] = []
        self._signals = SignalChannel(signal_buffer)
        self._tasks: set[asyncio.Task[None]] = set()
        self._closed = False

        self._user_context: UserContext | None = None
        self._suggestions: PersonalizedSuggestions | None = None

        self._last_load: Initialize | LoadSession | NewChat | None = None
        self._load_token = 0
        self._search_token = 0
        self._loading_older = False

        self._sends_in_flight = 0
        self._sends_held = 0
        self._sends_idle = asyncio.Event()
        self._sends_idle.set()
        self._flush_idle = asyncio.Event()
        self._flush_idle.set()
        self._online = True

        self._audio_lock = asyncio.Lock()
        self._recording_token = 0
        self._ticker: asyncio.Task[None] | None = None
        self._playback_token = 0

    # ------------------------------------------------------------------
    # Public surface
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConversationState:
        return self._state

    @property
    def lifecycle(self) -> SessionLifecycleManager:
        return self._lifecycle

    @property
    def language(self) -> str:
        return self._language

    @property
    def is_online(self) -> bool:
        return self._online

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call ``listener`` with every new state; return an unsubscribe function."""
        self._subscribers.append(listener)

        def unsubscribe() -> None:
            if listener in self._subscribers:
                self._subscribers.remove(listener)

        return unsubscribe

    async def next_signal(self) -> Signal:
        return await self._signals.next()

    def drain_signals(self) -> list[Signal]:
        """Return all pending signals; each is handed out only once."""
        return self._signals.drain()

    def dispatch(self, intent: Intent) -> bool:
        """Validate ``intent`` and start handling it.

        Must be called from within the running event loop.  Returns True
        when the intent was accepted.  A rejected intent leaves the state
        untouched and publishes ``IntentRejected``.
        """
        try:
            if self._closed:
                raise ValidationError("controller is closed")
            self._handle(intent)
        except ValidationError as exc:
            logger.debug("ConversationStateMachine: rejected %s: %s", type(intent).__name__, exc)
            self._signals.emit(IntentRejected(intent=type(intent).__name__, reason=str(exc)))
            return False
        return True

    async def wait_idle(self) -> None:
        """Wait until every effect task, including ones they start, has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        """Release audio resources and cancel outstanding work.

        The recorder is cancelled on every path, so the microphone is never
        left open.
        """
        if self._closed:
            return
        self._closed = True
        try:
            self._stop_ticker()
            for task in list(self._tasks):
                task.cancel()
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
            self._lifecycle.release_lazy_claim()
            if isinstance(self._state, Recording):
                self._recording_token += 1
                self._leave_recording()
        finally:
            if self._recorder is not None:
                try:
                    await self._recorder.cancel()
                except Exception as exc:  # noqa: BLE001 — release is best-effort
                    logger.warning("ConversationStateMachine: recorder release failed: %s", exc)
            if self._player is not None:
                try:
                    await self._player.stop()
                except Exception as exc:  # noqa: BLE001 — release is best-effort
                    logger.warning("ConversationStateMachine: player stop failed: %s", exc)
        logger.debug("ConversationStateMachine: closed")

    # ------------------------------------------------------------------
    # Intent routing
    # ------------------------------------------------------------------

    def _handle(self, intent: Intent) -> None:
        match intent:
            case Initialize():
                self._on_initialize(intent)
            case LoadSession():
                self._on_load_session(intent)
            case NewChat():
                self._on_new_chat(intent)
            case SendMessage():
                self._on_send_message(intent)
            case RetryMessage():
                self._on_retry_message(intent)
            case StartRecording():
                self._on_start_recording()
            case StopRecording():
                self._on_stop_recording(intent)
            case CancelRecording():
                self._on_cancel_recording()
            case PlayVoiceMessage():
                self._on_play_voice(intent)
            case PlayTextToSpeech():
                self._on_play_text(intent)
            case StopPlayback():
                self._on_stop_playback()
            case SearchMessages():
                self._on_search(intent)
            case ToggleFavorite():
                self._on_toggle_favorite(intent)
            case SaveAsFaq():
                self._on_save_as_faq(intent)
            case ExportHistory():
                self._on_export(intent)
            case ProcessOfflineQueue():
                self._on_process_offline_queue()
            case ConnectivityChanged():
                self._on_connectivity_changed(intent)
            case ClearChat():
                self._on_clear_chat(intent)
            case ChangeLanguage():
                self._on_change_language(intent)
            case LoadQuickSuggestions():
                self._on_load_suggestions(intent)
            case LoadOlderMessages():
                self._on_load_older()
            case Retry():
                self._on_retry()
            case _:
                assert_never(intent)

    def _require_ready(self) -> Ready:
        state = self._state
        match state:
            case Ready():
                return state
            case Uninitialized():
                raise ValidationError("conversation is not initialized")
            case Loading():
                raise ValidationError("a session is loading")
            case Recording():
                raise ValidationError("voice recording in progress")
            case Failed():
                raise ValidationError(f"session unavailable: {state.message}")
            case _:
                assert_never(state)

    # ------------------------------------------------------------------
    # Loading, switching and creating sessions
    # ------------------------------------------------------------------

    def _on_initialize(self, intent: Initialize) -> None:
        if not isinstance(self._state, (Uninitialized, Failed)):
            raise ValidationError("conversation already initialized")
        token = self._begin_load(intent, None)
        self._spawn("initialize", self._run_initialize(token))

    def _on_load_session(self, intent: LoadSession) -> None:
        if not intent.session_id:
            raise ValidationError("session id is empty")
        if isinstance(self._state, Recording):
            self._discard_recording()
        token = self._begin_load(intent, intent.session_id)
        self._spawn("load_session", self._run_load(intent.session_id, token))

    def _on_new_chat(self, intent: NewChat) -> None:
        if isinstance(self._state, Recording):
            raise ValidationError("voice recording in progress")
        token = self._begin_load(intent, None)
        self._spawn("new_chat", self._run_new_chat(intent.title, token))

    def _on_retry(self) -> None:
        state = self._state
        if not isinstance(state, Failed):
            raise ValidationError("nothing to retry")
        if not state.retryable:
            raise ValidationError(f"not retryable: {state.message}")
        self._handle(self._last_load or Initialize())

    def _begin_load(
        self, intent: Initialize | LoadSession | NewChat, session_id: str | None
    ) -> int:
        self._load_token += 1
        self._search_token += 1
        self._last_load = intent
        self._user_context = None
        self._suggestions = None
        self._commit(Loading(session_id=session_id))
        return self._load_token

    async def _run_initialize(self, token: int) -> None:
        session_id = await self._lifecycle.load_last_session()
        if token != self._load_token:
            return
        if session_id is None:
            self._commit(self._derive(Ready(language=self._language)))
            await self._refresh_context(token)
            return
        self._commit(Loading(session_id=session_id))
        await self._run_load(session_id, token, forget_missing=True)

    async def _run_load(self, session_id: str, token: int, forget_missing: bool = False) -> None:
        try:
            result = await self._lifecycle.switch_to(session_id)
        except SwitchSupersededError:
            logger.debug("ConversationStateMachine: load of %r superseded", session_id)
            return
        except SessionNotFoundError:
            if token != self._load_token:
                return
            if forget_missing:
                logger.info(
                    "ConversationStateMachine: last session %r no longer exists", session_id
                )
                await self._lifecycle.forget_last_session()
                self._commit(self._derive(Ready(language=self._language)))
                await self._refresh_context(token)
                return
            self._commit(Failed(message=f"Session {session_id!r} not found", retryable=False))
            return
        except Exception as exc:  # noqa: BLE001 — a failed load becomes Failed
            if token != self._load_token:
                return
            logger.warning("ConversationStateMachine: could not load %r: %s", session_id, exc)
            self._commit(Failed(message=f"Could not load session: {exc}", retryable=True))
            return

        if token != self._load_token:
            logger.debug("ConversationStateMachine: discarded stale load of %r", session_id)
            return
        self._commit(
            self._derive(
                Ready(
                    messages=tuple(result.messages),
                    language=self._language,
                    has_more_history=result.has_more,
                )
            )
        )
        await self._refresh_context(token)

    async def _run_new_chat(self, title: str | None, token: int) -> None:
        try:
            await self._lifecycle.create_explicitly(title)
        except SwitchSupersededError:
            return
        except Exception as exc:  # noqa: BLE001 — a failed creation becomes Failed
            if token != self._load_token:
                return
            logger.warning("ConversationStateMachine: could not create chat: %s", exc)
            self._commit(Failed(message=f"Could not create chat: {exc}", retryable=True))
            return
        if token != self._load_token:
            return
        self._commit(self._derive(Ready(language=self._language)))
        await self._refresh_context(token)

    async def _refresh_context(self, token: int) -> None:
        """Fetch user context and suggestions again after a load."""
        user_context: UserContext | None = None
        suggestions: PersonalizedSuggestions | None = None
        try:
            user_context = await self._gateway.get_user_context()
        except Exception as exc:  # noqa: BLE001 — context is optional
            logger.warning("ConversationStateMachine: user context unavailable: %s", exc)
        try:
            suggestions = await self._gateway.get_suggestions(self._lifecycle.current_session_id)
        except Exception as exc:  # noqa: BLE001 — suggestions are optional
            logger.warning("ConversationStateMachine: suggestions unavailable: %s", exc)

        if token != self._load_token:
            return
        self._user_context = user_context
        self._suggestions = suggestions
        view = self._chat_view()
        if view is not None and suggestions is not None:
            self._update_view(
                replace(view, quick_suggestions=tuple(suggestions.texts(self._language)))
            )

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    def _on_send_message(self, intent: SendMessage) -> None:
        if not isinstance(self._state, Uninitialized):
            self._require_ready()
        text = intent.text.strip()
        is_voice = intent.message_type is MessageType.VOICE
        if not text and not (is_voice and intent.audio_path):
            raise ValidationError("message text is empty")

        held = self._flushing
        resolve_later = held or self._lifecycle.creation_in_progress or not self._online
        session_id = None if resolve_later else self._lifecycle.resolve_session_for_send()

        if isinstance(self._state, Uninitialized):
            self._commit(self._derive(Ready(language=self._language)))
        message = Message(
            text=text,
            sender=MessageSender.USER,
            status=MessageStatus.PENDING,
            message_type=intent.message_type,
            audio_path=intent.audio_path,
            audio_duration=intent.audio_duration,
            language=self._language,
        )
        view = self._require_ready()
        if not self._online:
            self._queue_offline_send(view, message)
            return
        if held:
            self._sends_held += 1
        else:
            self._begin_send()
        self._update_view(replace(view, messages=view.messages + (message,)))
        self._spawn("send_message", self._run_send(message, session_id, held, resolve_later))

    def _on_retry_message(self, intent: RetryMessage) -> None:
        view = self._require_ready()
        if self._flushing:
            raise ValidationError("offline queue is being processed")
        if not self._online:
            raise ValidationError("offline")
        message = view.find(intent.message_id)
        if message is None:
            raise ValidationError(f"unknown message {intent.message_id!r}")
        if not message.is_user or message.status is not MessageStatus.FAILED:
            raise ValidationError("only failed user messages can be retried")

        resolve_later = self._lifecycle.creation_in_progress
        session_id = None if resolve_later else self._lifecycle.resolve_session_for_send()
        self._lifecycle.offline_queue.remove_message(message.message_id)
        pending = message.mark_pending()
        self._begin_send()
        self._update_view(self._with_message(view, pending))
        self._spawn("retry_message", self._run_send(pending, session_id, False, resolve_later))

    def _queue_offline_send(self, view: Ready, message: Message) -> None:
        """Keep a message composed while offline for the next flush."""
        failed = message.mark_failed(_OFFLINE_REASON)
        self._lifecycle.enqueue_offline(failed, self._lifecycle.current_session_id, _OFFLINE_REASON)
        logger.debug("ConversationStateMachine: offline, queued %r", message.message_id)
        self._update_view(replace(view, messages=view.messages + (failed,)))
        self._signals.emit(
            MessageSendFailed(
                message_id=message.message_id,
                reason=_OFFLINE_REASON,
                retryable=True,
                queued=True,
            )
        )

    @property
    def _flushing(self) -> bool:
        return not self._flush_idle.is_set()

    def _begin_send(self) -> None:
        self._sends_in_flight += 1
        self._sends_idle.clear()

    def _end_send(self) -> None:
        self._sends_in_flight -= 1
        if self._sends_in_flight == 0:
            self._sends_idle.set()

    def _send_context(self) -> dict[str, str]:
        context = self._user_context.as_send_context() if self._user_context else {}
        context["language"] = self._language
        return context

    async def _run_send(
        self,
        message: Message,
        session_id: str | None,
        held: bool,
        resolve_later: bool,
    ) -> None:
        if held:
            # Accepted while the offline queue is being processed.
            while self._flushing:
                await self._flush_idle.wait()
            self._sends_held -= 1
            self._begin_send()
        exchange: SentExchange | None = None
        failure: Exception | None = None
        try:
            if resolve_later:
                session_id = await self._lifecycle.await_session_for_send()
            exchange = await self._lifecycle.send(message, session_id, self._send_context())
        except Exception as exc:  # noqa: BLE001 — any failure marks the message failed
            failure = exc
        finally:
            self._end_send()

        if exchange is not None:
            self._confirm_send(message.message_id, exchange)
            return

        assert failure is not None
        reason = failure.message if isinstance(failure, GatewayError) else str(failure)
        retryable = isinstance(failure, GatewayError) and failure.retryable
        queued = isinstance(failure, GatewayError) and failure.kind is FailureKind.NETWORK
        if queued:
            self._lifecycle.enqueue_offline(message, session_id, reason)
        logger.warning(
            "ConversationStateMachine: send of %r failed (queued=%s): %s",
            message.message_id,
            queued,
            reason,
        )
        self._mark_failed(message.message_id, reason)
        self._signals.emit(
            MessageSendFailed(
                message_id=message.message_id,
                reason=reason,
                retryable=retryable,
                queued=queued,
            )
        )

    def _confirm_send(self, pending_id: str, exchange: SentExchange) -> None:
        """Swap the optimistic message for the confirmed one, reply right after."""
        view = self._chat_view()
        if view is None:
            return
        messages = list(view.messages)
        for index, message in enumerate(messages):
            if message.message_id == pending_id:
                break
        else:
            # The conversation moved on; the exchange is already persisted.
            self._refresh()
            return
        messages[index] = exchange.user_message
        messages.insert(index + 1, exchange.reply)
        self._update_view(replace(view, messages=tuple(messages)))

    def _mark_failed(self, message_id: str, reason: str) -> None:
        view = self._chat_view()
        if view is None:
            return
        message = view.find(message_id)
        if message is None:
            self._refresh()
            return
        self._update_view(self._with_message(view, message.mark_failed(reason)))

    # ------------------------------------------------------------------
    # Offline queue
    # ------------------------------------------------------------------

    def _on_process_offline_queue(self) -> None:
        if self._flushing:
            raise ValidationError("offline queue is already being processed")
        self._start_flush()

    def _start_flush(self) -> None:
        # Sends accepted from here on wait until the pass is over.
        self._flush_idle.clear()
        self._spawn("process_offline_queue", self._run_flush())

    async def _run_flush(self) -> None:
        try:
            while self._sends_in_flight:
                await self._sends_idle.wait()
            report = await self._lifecycle.flush_offline(
                self._send_context(),
                on_sent=self._on_flush_sent,
                on_failed=self._on_flush_failed,
            )
        finally:
            self._flush_idle.set()
            self._refresh()

        logger.debug(
            "ConversationStateMachine: offline flush sent=%d abandoned=%d",
            len(report.sent),
            len(report.abandoned),
        )
        if report.attempted:
            self._signals.emit(
                OfflineQueueProcessed(count=len(report.sent), abandoned=len(report.abandoned))
            )

    def _on_connectivity_changed(self, intent: ConnectivityChanged) -> None:
        came_back = intent.online and not self._online
        self._online = intent.online
        logger.info(
            "ConversationStateMachine: connectivity %s", "online" if intent.online else "offline"
        )
        self._refresh()
        if came_back and len(self._lifecycle.offline_queue) and not self._flushing:
            self._start_flush()

    def _on_flush_sent(self, entry: OfflineQueueEntry, exchange: SentExchange) -> None:
        self._confirm_send(entry.message.message_id, exchange)

    def _on_flush_failed(
        self, entry: OfflineQueueEntry, error: GatewayError, abandoned: bool
    ) -> None:
        self._mark_failed(entry.message.message_id, error.message)
        self._signals.emit(
            MessageSendFailed(
                message_id=entry.message.message_id,
                reason=error.message,
                retryable=not abandoned,
                queued=not abandoned,
            )
        )

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def _on_start_recording(self) -> None:
        view = self._require_ready()
        if self._recorder is None:
            raise ValidationError("no audio recorder configured")
        self._recording_token += 1
        self._suspended = view
        self._commit(Recording())
        self._spawn("start_recording", self._run_start_recording(self._recording_token))

    def _on_stop_recording(self, intent: StopRecording) -> None:
        if not isinstance(self._state, Recording):
            raise ValidationError("not recording")
        self._recording_token += 1
        self._leave_recording()
        self._spawn("stop_recording", self._run_stop_recording(intent.auto_send))

    def _on_cancel_recording(self) -> None:
        if not isinstance(self._state, Recording):
            raise ValidationError("not recording")
        self._recording_token += 1
        self._leave_recording()
        self._spawn("cancel_recording", self._run_cancel_recording())

    async def _run_start_recording(self, token: int) -> None:
        assert self._recorder is not None
        async with self._audio_lock:
            if token != self._recording_token:
                return
            try:
                await self._recorder.start()
            except Exception as exc:  # noqa: BLE001 — reported as OperationFailed
                await self._recorder.cancel()
                if token == self._recording_token:
                    self._recording_token += 1
                    self._leave_recording()
                logger.warning("ConversationStateMachine: recording failed to start: %s", exc)
                self._signals.emit(OperationFailed(operation="start_recording", reason=str(exc)))
                return
            if token == self._recording_token:
                self._ticker = asyncio.create_task(self._tick_recording(token))

    async def _run_stop_recording(self, auto_send: bool) -> None:
        assert self._recorder is not None
        async with self._audio_lock:
            if not self._recorder.is_recording:
                return
            try:
                handle = await self._recorder.stop()
            except Exception:
                await self._recorder.cancel()
                raise
        logger.debug("ConversationStateMachine: recorded %.1fs to %s", handle.duration, handle.path)
        if auto_send and (handle.transcript or handle.path):
            self.dispatch(
                SendMessage(
                    text=handle.transcript or "",
                    message_type=MessageType.VOICE,
                    audio_path=handle.path,
                    audio_duration=handle.duration,
                )
            )

    async def _run_cancel_recording(self) -> None:
        assert self._recorder is not None
        async with self._audio_lock:
            await self._recorder.cancel()

    async def _tick_recording(self, token: int) -> None:
        assert self._recorder is not None
        loop = asyncio.get_running_loop()
        started = loop.time()
        while True:
            await asyncio.sleep(self._tick_seconds)
            state = self._state
            if token != self._recording_token or not isinstance(state, Recording):
                return
            try:
                level = self._recorder.level()
            except Exception:  # noqa: BLE001 — a missing sample renders as silence
                level = 0.0
            waveform = (state.waveform + (level,))[-self._waveform_bars :]
            self._commit(Recording(elapsed=loop.time() - started, waveform=waveform))

    def _stop_ticker(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    def _leave_recording(self) -> None:
        self._stop_ticker()
        view = self._suspended or Ready(language=self._language)
        self._suspended = None
        self._commit(self._derive(view))

    def _discard_recording(self) -> None:
        """Cancel capture and drop the suspended view; the caller commits next."""
        self._recording_token += 1
        self._stop_ticker()
        self._suspended = None
        self._spawn("cancel_recording", self._run_cancel_recording())

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------

    def _on_play_voice(self, intent: PlayVoiceMessage) -> None:
        view = self._require_ready()
        player = self._require_player()
        if not intent.path:
            raise ValidationError("audio path is empty")
        self._start_playback(view, functools.partial(player.play, intent.path), voice=True)

    def _on_play_text(self, intent: PlayTextToSpeech) -> None:
        view = self._require_ready()
        player = self._require_player()
        if not intent.text.strip():
            raise ValidationError("nothing to speak")
        language = intent.language or view.language
        speak = functools.partial(player.play_text, intent.text, language)
        self._start_playback(view, speak, voice=False)

    def _on_stop_playback(self) -> None:
        view = self._require_ready()
        player = self._require_player()
        self._playback_token += 1
        self._update_view(replace(view, is_playing_voice=False, is_playing_tts=False))
        self._spawn("stop_playback", player.stop())

    def _require_player(self) -> SpeechPlayer:
        if self._player is None:
            raise ValidationError("no speech player configured")
        return self._player

    def _start_playback(
        self, view: Ready, play: Callable[[], Awaitable[None]], voice: bool
    ) -> None:
        interrupt = view.is_playing_voice or view.is_playing_tts
        self._playback_token += 1
        self._update_view(replace(view, is_playing_voice=voice, is_playing_tts=not voice))
        operation = "play_voice" if voice else "play_text_to_speech"
        self._spawn(operation, self._run_playback(self._playback_token, play, interrupt))

    async def _run_playback(
        self, token: int, play: Callable[[], Awaitable[None]], interrupt: bool
    ) -> None:
        assert self._player is not None
        try:
            if interrupt:
                await self._player.stop()
            await play()
        finally:
            if token == self._playback_token:
                view = self._chat_view()
                if view is not None:
                    self._update_view(replace(view, is_playing_voice=False, is_playing_tts=False))

    # ------------------------------------------------------------------
    # Search and message flags
    # ------------------------------------------------------------------

    def _on_search(self, intent: SearchMessages) -> None:
        view = self._require_ready()
        self._search_token += 1
        query = intent.query.strip()
        if not query:
            self._update_view(replace(view, search_results=None))
            return
        needle = query.casefold()
        local = tuple(m for m in view.messages if needle in m.text.casefold())
        self._update_view(replace(view, search_results=local))
        session_id = self._lifecycle.current_session_id
        if session_id is not None:
            self._spawn("search_messages", self._run_search(session_id, query, self._search_token))

    async def _run_search(self, session_id: str, query: str, token: int) -> None:
        found = await self._repository.search(session_id, query)
        if token != self._search_token:
            logger.debug("ConversationStateMachine: discarded stale search %r", query)
            return
        view = self._chat_view()
        if view is None or view.search_results is None:
            return
        merged = {m.message_id: m for m in found}
        merged.update((m.message_id, m) for m in view.search_results)
        self._update_view(replace(view, search_results=tuple(sort_messages(list(merged.values())))))

    def _on_toggle_favorite(self, intent: ToggleFavorite) -> None:
        view = self._require_ready()
        message = self._require_message(view, intent.message_id)
        updated = message.model_copy(update={"is_favorite": not message.is_favorite})
        self._update_view(self._with_message(view, updated))
        self._write_through(updated)

    def _on_save_as_faq(self, intent: SaveAsFaq) -> None:
        view = self._require_ready()
        message = self._require_message(view, intent.message_id)
        if message.is_saved_as_faq:
            raise ValidationError("message already saved as FAQ")
        updated = message.model_copy(update={"is_saved_as_faq": True})
        self._update_view(self._with_message(view, updated))
        self._write_through(updated)

    def _require_message(self, view: Ready, message_id: str) -> Message:
        message = view.find(message_id)
        if message is None:
            raise ValidationError(f"unknown message {message_id!r}")
        return message

    def _write_through(self, message: Message) -> None:
        session_id = self._lifecycle.current_session_id
        if session_id is None or message.status is not MessageStatus.SENT:
            return
        self._spawn("update_message", self._run_update(session_id, message))

    async def _run_update(self, session_id: str, message: Message) -> None:
        try:
            await self._repository.update(session_id, message)
        except (MessageNotFoundError, PersistenceError) as exc:
            logger.warning("ConversationStateMachine: flag update not persisted: %s", exc)

    # ------------------------------------------------------------------
    # Export, clearing, language, suggestions, history paging
    # ------------------------------------------------------------------

    def _on_export(self, intent: ExportHistory) -> None:
        view = self._require_ready()
        if not view.messages:
            raise ValidationError("no messages to export")
        if self._exporter is None:
            raise ValidationError("no exporter configured")
        if intent.format not in _EXPORT_FORMATS:
            raise ValidationError(f"unsupported export format {intent.format!r}")
        self._spawn("export_history", self._run_export(list(view.messages), intent.format))

    async def _run_export(self, messages: list[Message], format: ExportFormat) -> None:
        assert self._exporter is not None
        path = await self._exporter.export(self._lifecycle.current_session, messages, format)
        self._signals.emit(ExportSuccess(path=str(path)))

    def _on_clear_chat(self, intent: ClearChat) -> None:
        view = self._require_ready()
        self._search_token += 1
        self._update_view(replace(view, messages=(), search_results=None, has_more_history=False))
        if intent.delete_session:
            self._spawn("clear_chat", self._run_delete_session())

    async def _run_delete_session(self) -> None:
        await self._lifecycle.clear_current(delete_backend=True)
        self._refresh()

    def _on_change_language(self, intent: ChangeLanguage) -> None:
        view = self._require_ready()
        language = intent.language.strip()
        if not language:
            raise ValidationError("language code is empty")
        self._language = language
        quick = (
            tuple(self._suggestions.texts(language))
            if self._suggestions is not None
            else view.quick_suggestions
        )
        self._update_view(replace(view, language=language, quick_suggestions=quick))

    def _on_load_suggestions(self, intent: LoadQuickSuggestions) -> None:
        self._require_ready()
        self._spawn(
            "load_quick_suggestions",
            self._run_load_suggestions(intent.category, self._load_token),
        )

    async def _run_load_suggestions(self, category: str, token: int) -> None:
        session_id = self._lifecycle.current_session_id
        suggestions = await self._gateway.get_suggestions(session_id, category)
        if token != self._load_token:
            return
        self._suggestions = suggestions
        view = self._chat_view()
        if view is not None:
            self._update_view(
                replace(view, quick_suggestions=tuple(suggestions.texts(self._language)))
            )

    def _on_load_older(self) -> None:
        view = self._require_ready()
        session_id = self._lifecycle.current_session_id
        if session_id is None or not view.has_more_history or not view.messages:
            raise ValidationError("no older messages")
        if self._loading_older:
            raise ValidationError("older messages are already loading")
        self._loading_older = True
        before = view.messages[0].timestamp
        self._spawn(
            "load_older_messages", self._run_load_older(session_id, before, self._load_token)
        )

    async def _run_load_older(self, session_id: str, before: datetime, token: int) -> None:
        page_size = self._lifecycle.page_size
        try:
            page = await self._repository.fetch_page(session_id, page_size, before=before)
        finally:
            self._loading_older = False
        if token != self._load_token or self._lifecycle.current_session_id != session_id:
            return
        view = self._chat_view()
        if view is None:
            return
        known = {m.message_id for m in view.messages}
        older = tuple(m for m in page if m.message_id not in known)
        self._update_view(
            replace(view, messages=older + view.messages, has_more_history=len(page) >= page_size)
        )

    # ------------------------------------------------------------------
    # State plumbing
    # ------------------------------------------------------------------

    def _commit(self, state: ConversationState) -> None:
        """Publish ``state``.  The only place ``_state`` is assigned."""
        previous = self._state
        if state == previous:
            return
        self._state = state
        if type(state) is not type(previous):
            logger.debug(
                "ConversationStateMachine: %s -> %s", type(previous).__name__, type(state).__name__
            )
        for listener in list(self._subscribers):
            try:
                listener(state)
            except Exception as exc:  # noqa: BLE001 — listener errors are logged
                logger.warning("ConversationStateMachine: state listener failed: %s", exc)

    def _chat_view(self) -> Ready | None:
        """Return the chat view, including the one suspended behind Recording."""
        if isinstance(self._state, Ready):
            return self._state
        if isinstance(self._state, Recording):
            return self._suspended
        return None

    def _derive(self, view: Ready) -> Ready:
        return replace(
            view,
            session_id=self._lifecycle.current_session_id,
            is_typing=self._sends_in_flight + self._sends_held > 0,
            is_online=self._online,
            is_recording=False,
            queued_count=len(self._lifecycle.offline_queue),
        )

    def _update_view(self, view: Ready) -> None:
        view = self._derive(view)
        if isinstance(self._state, Recording):
            self._suspended = view
        elif isinstance(self._state, Ready):
            self._commit(view)

    def _refresh(self) -> None:
        view = self._chat_view()
        if view is not None:
            self._update_view(view)

    @staticmethod
    def _with_message(view: Ready, message: Message) -> Ready:
        return replace(
            view,
            messages=tuple(
                message if m.message_id == message.message_id else m for m in view.messages
            ),
        )

    def _spawn(self, operation: str, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(self._guard(operation, coro), name=operation)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _guard(self, operation: str, coro: Coroutine[Any, Any, None]) -> None:
        try:
            await coro
        except Exception as exc:  # noqa: BLE001 — effect boundary
            logger.warning("ConversationStateMachine: %s failed: %s", operation, exc)
            self._signals.emit(OperationFailed(operation=operation, reason=str(exc)))

    def __repr__(self) -> str:
        return (
            f"ConversationStateMachine(state={type(self._state).__name__}, "
            f"tasks={len(self._tasks)})"
        )
