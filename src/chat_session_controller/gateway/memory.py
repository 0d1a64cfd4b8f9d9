"""In-memory backend gateway.

A self-contained stand-in for the chat backend.  Sessions live in a dict,
replies are canned per topic and language, and failures can be scripted.
Primarily useful for tests and the demo CLI.

Classes
-------
- InMemoryGateway  — dict-backed gateway with canned replies
"""
from __future__ import annotations

import asyncio
import logging
from collections import Counter, deque
from uuid import uuid4

from chat_session_controller.gateway.base import (
    BackendGateway,
    FailureKind,
    GatewayError,
    SendResult,
)
from chat_session_controller.session.state import (
    Message,
    MessageSender,
    PersonalizedSuggestions,
    QuickSuggestion,
    Session,
    UserContext,
    derive_title,
)

logger = logging.getLogger(__name__)

_REPLIES: dict[str, dict[str, str]] = {
    "lesson": {
        "en": "I can help you create a lesson plan! Please tell me what subject and grade level you're planning for.",
        "hi": "मैं आपके लिए एक पाठ योजना तैयार करने में मदद कर सकता हूं। कृपया बताएं कि यह किस विषय और कक्षा के लिए है?",
        "te": "నేను మీ కోసం పాఠ ప్రణాళికను తయారు చేయడంలో సహాయం చేయగలను. దయచేసి ఇది ఏ విషయం మరియు తరగతి కోసం అని చెప్పండి?",
    },
    "quiz": {
        "en": "I can create a quiz for you! Please specify the subject, grade level, and number of questions you need.",
        "hi": "मैं आपके लिए एक प्रश्नोत्तरी बना सकता हूं। कृपया विषय, कक्षा स्तर और प्रश्नों की संख्या बताएं।",
        "te": "నేను మీ కోసం క్విజ్ను రూపొందించగలను. దయచేసి విషయం, తరగతి స్థాయి మరియు ప్రశ్నల సంఖ్యను చెప్పండి.",
    },
    "story": {
        "en": "I can create an educational story for you! What topic or moral value would you like the story to focus on?",
        "hi": "मैं आपके लिए एक शिक्षाप्रद कहानी बना सकता हूं। आप किस विषय या नैतिक मूल्य पर कहानी चाहते हैं?",
        "te": "నేను మీ కోసం ఒక విద్యాసంబంధమైన కథను రూపొందించగలను. మీరు ఏ విషయం లేదా నైతిక విలువపై కథ కావాలి?",
    },
    "general": {
        "en": "I'm here to help with your teaching needs! Please let me know what kind of assistance you're looking for.",
        "hi": "मैं आपकी शिक्षण आवश्यकताओं में मदद करने के लिए यहां हूं। कृपया बताएं कि आपको किस प्रकार की सहायता चाहिए?",
        "te": "నేను మీ బోధనా అవసరాలతో సహాయం చేయడానికి ఇక్కడ ఉన్నాను. దయచేసి మీకు ఏ రకమైన సహాయం కావాలో చెప్పండి?",
    },
}

_TOPIC_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("lesson", ("lesson", "plan")),
    ("quiz", ("quiz", "test")),
    ("story", ("story",)),
)

_DEFAULT_SUGGESTIONS: tuple[QuickSuggestion, ...] = (
    QuickSuggestion(
        text="Create a lesson plan",
        category="planning",
        translations={"hi": "पाठ योजना बनाएं", "te": "పాఠ ప్రణాళిక రూపొందించండి"},
    ),
    QuickSuggestion(
        text="Make a quiz",
        category="assessment",
        translations={"hi": "प्रश्नोत्तरी बनाएं", "te": "క్విజ్ తయారు చేయండి"},
    ),
    QuickSuggestion(
        text="Tell a story",
        category="content",
        translations={"hi": "एक कहानी सुनाओ", "te": "ఒక కథ చెప్పండి"},
    ),
)


def canned_reply(text: str, language: str = "en") -> str:
    """Return the canned assistant reply for ``text`` in ``language``."""
    lowered = text.lower()
    topic = "general"
    for name, keywords in _TOPIC_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            topic = name
            break
    replies = _REPLIES[topic]
    return replies.get(language, replies["en"])


class InMemoryGateway(BackendGateway):
    """Ephemeral backend with canned replies and scriptable failures.

    Parameters
    ----------
    latency:
        Seconds to sleep inside every ``send`` call.
    user_context:
        Context returned by ``get_user_context``.
    suggestions:
        Suggestions returned by ``get_suggestions``; defaults to a small
        built-in set.
    """

    def __init__(
        self,
        latency: float = 0.0,
        user_context: UserContext | None = None,
        suggestions: list[QuickSuggestion] | None = None,
    ) -> None:
        self.latency = latency
        self.calls: Counter[str] = Counter()
        self.sent_texts: list[str] = []
        self._sessions: dict[str, Session] = {}
        self._failures: deque[FailureKind] = deque()
        self._user_context = user_context or UserContext(user_id="local-user")
        self._suggestions = list(suggestions) if suggestions is not None else list(_DEFAULT_SUGGESTIONS)

    # ------------------------------------------------------------------
    # Scripting
    # ------------------------------------------------------------------

    def fail_next(self, kind: FailureKind = FailureKind.NETWORK, times: int = 1) -> None:
        """Make the next ``times`` sends raise ``GatewayError(kind)``."""
        self._failures.extend([kind] * times)

    def add_session(self, session: Session) -> None:
        """Register an existing session, e.g. one created in a previous run."""
        self._sessions[session.session_id] = session

    @property
    def sessions(self) -> dict[str, Session]:
        return dict(self._sessions)

    # ------------------------------------------------------------------
    # BackendGateway interface
    # ------------------------------------------------------------------

    async def send(
        self,
        session_id: str | None,
        text: str,
        context: dict[str, str] | None = None,
    ) -> SendResult:
        self.calls["send"] += 1
        context = context or {}
        if self.latency:
            await asyncio.sleep(self.latency)
        if self._failures:
            kind = self._failures.popleft()
            raise GatewayError(kind, f"scripted {kind.value} failure")

        if session_id is None:
            session = self._new_session(context.get("session_title") or derive_title(text))
        else:
            session = self._sessions.get(session_id)
            if session is None:
                raise GatewayError(FailureKind.NOT_FOUND, f"unknown session {session_id!r}")

        language = context.get("language", session.language)
        session.touch(2)
        self.sent_texts.append(text)
        reply = Message(
            text=canned_reply(text, language),
            sender=MessageSender.ASSISTANT,
            language=language,
        )
        logger.debug("InMemoryGateway: replied in session %r", session.session_id)
        return SendResult(
            session_id=session.session_id,
            reply=reply,
            user_message_id=f"msg-{uuid4().hex[:12]}",
        )

    async def create_session(self, title: str) -> Session:
        self.calls["create_session"] += 1
        return self._new_session(title).model_copy()

    async def get_session(self, session_id: str) -> Session:
        self.calls["get_session"] += 1
        session = self._sessions.get(session_id)
        if session is None:
            raise GatewayError(FailureKind.NOT_FOUND, f"unknown session {session_id!r}")
        return session.model_copy()

    async def list_sessions(self, limit: int = 50) -> list[Session]:
        self.calls["list_sessions"] += 1
        ordered = sorted(
            self._sessions.values(), key=lambda s: s.last_activity_at, reverse=True
        )
        return [s.model_copy() for s in ordered[:limit]]

    async def get_suggestions(
        self, session_id: str | None, category: str = ""
    ) -> PersonalizedSuggestions:
        self.calls["get_suggestions"] += 1
        chosen = [s for s in self._suggestions if not category or s.category == category]
        return PersonalizedSuggestions(session_id=session_id, suggestions=chosen)

    async def get_user_context(self) -> UserContext:
        self.calls["get_user_context"] += 1
        return self._user_context.model_copy()

    async def delete_session(self, session_id: str) -> None:
        self.calls["delete_session"] += 1
        if self._sessions.pop(session_id, None) is None:
            raise GatewayError(FailureKind.NOT_FOUND, f"unknown session {session_id!r}")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _new_session(self, title: str) -> Session:
        self.calls["session_created"] += 1
        session = Session(session_id=f"sess-{uuid4().hex[:12]}", title=title)
        self._sessions[session.session_id] = session
        logger.debug("InMemoryGateway: created session %r", session.session_id)
        return session

    def __repr__(self) -> str:
        return f"InMemoryGateway(sessions={len(self._sessions)})"


__all__ = ["InMemoryGateway", "canned_reply"]
