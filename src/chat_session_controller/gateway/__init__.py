"""Backend gateway subpackage.

Public surface
--------------
- BackendGateway   — abstract base class
- InMemoryGateway  — canned-reply gateway (useful for testing and demos)
- GatewayError     — typed failure raised by gateway operations
- FailureKind      — enum: NETWORK, AUTH, SERVER_REJECTED, NOT_FOUND
- SendResult       — outcome of a successful send
"""
from __future__ import annotations

from chat_session_controller.gateway.base import (
    BackendGateway,
    FailureKind,
    GatewayError,
    SendResult,
)
from chat_session_controller.gateway.memory import InMemoryGateway

__all__ = [
    "BackendGateway",
    "FailureKind",
    "GatewayError",
    "InMemoryGateway",
    "SendResult",
]
