"""Abstract backend gateway.

The gateway is the single RPC-style boundary between the controller and the
chat backend.  Every operation either returns pydantic models or raises a
``GatewayError`` whose ``kind`` tells the caller how to react.

Classes
-------
- FailureKind   — enum: NETWORK, AUTH, SERVER_REJECTED, NOT_FOUND
- GatewayError  — typed failure raised by every gateway operation
- SendResult    — outcome of a successful send
- BackendGateway — abstract base for all gateways
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum

from pydantic import BaseModel

from chat_session_controller.session.state import (
    Message,
    PersonalizedSuggestions,
    Session,
    UserContext,
)


class FailureKind(str, Enum):
    """Classification of a gateway failure.

    Only NETWORK failures are transient: they are retried and feed the
    offline queue.  The others are terminal for the action that raised them.
    """

    NETWORK = "network"
    AUTH = "auth"
    SERVER_REJECTED = "server_rejected"
    NOT_FOUND = "not_found"


class GatewayError(Exception):
    """Raised by gateway operations.

    Parameters
    ----------
    kind:
        The failure classification.
    message:
        Human-readable reason.
    """

    def __init__(self, kind: FailureKind, message: str = "") -> None:
        self.kind = kind
        self.message = message or kind.value.replace("_", " ")
        super().__init__(f"{kind.value}: {self.message}")

    @property
    def retryable(self) -> bool:
        return self.kind is FailureKind.NETWORK


class SendResult(BaseModel):
    """Outcome of ``BackendGateway.send``.

    Parameters
    ----------
    session_id:
        The session the message landed in.  When the send was issued without
        a session this is the id of the session the backend just created.
    reply:
        The assistant's answer.
    user_message_id:
        Backend id assigned to the user's message, if the backend issues one.
    """

    session_id: str
    reply: Message
    user_message_id: str | None = None


class BackendGateway(ABC):
    """Protocol for the chat backend."""

    @abstractmethod
    async def send(
        self,
        session_id: str | None,
        text: str,
        context: dict[str, str] | None = None,
    ) -> SendResult:
        """Send a user message and return the assistant's reply.

        Parameters
        ----------
        session_id:
            Target session, or None to let the backend create one as part
            of this send.
        text:
            Message body.
        context:
            Extra key-value data forwarded to the backend.
        """

    @abstractmethod
    async def create_session(self, title: str) -> Session:
        """Create a session immediately and return its metadata."""

    @abstractmethod
    async def get_session(self, session_id: str) -> Session:
        """Return metadata for ``session_id``.

        Raises
        ------
        GatewayError
            With ``FailureKind.NOT_FOUND`` when the id is unknown.
        """

    @abstractmethod
    async def list_sessions(self, limit: int = 50) -> list[Session]:
        """Return up to ``limit`` sessions, most recently active first."""

    @abstractmethod
    async def get_suggestions(
        self, session_id: str | None, category: str = ""
    ) -> PersonalizedSuggestions:
        """Return personalised suggestions for ``session_id``."""

    @abstractmethod
    async def get_user_context(self) -> UserContext:
        """Return the current user's context."""

    @abstractmethod
    async def delete_session(self, session_id: str) -> None:
        """Delete ``session_id`` and its backend history."""


__all__ = ["BackendGateway", "FailureKind", "GatewayError", "SendResult"]
