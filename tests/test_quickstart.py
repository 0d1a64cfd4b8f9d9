"""Test that the quickstart API works for chat-session-controller."""
from __future__ import annotations

import pytest


def test_quickstart_import() -> None:
    import chat_session_controller

    assert chat_session_controller.__version__ == "0.1.0"


def test_quickstart_controller_starts_uninitialized() -> None:
    from chat_session_controller import Uninitialized, create_controller

    controller = create_controller()
    assert isinstance(controller.state, Uninitialized)


@pytest.mark.asyncio
async def test_quickstart_send() -> None:
    from chat_session_controller import MessageStatus, Ready, SendMessage, create_controller

    controller = create_controller()
    controller.dispatch(SendMessage("Hello"))
    await controller.wait_idle()

    state = controller.state
    assert isinstance(state, Ready)
    assert [m.status for m in state.messages] == [MessageStatus.SENT, MessageStatus.SENT]
    await controller.close()


@pytest.mark.asyncio
async def test_quickstart_config_is_applied() -> None:
    from chat_session_controller import ControllerConfig, create_controller

    config = ControllerConfig(page_size=5, default_language="te", max_send_attempts=2)
    controller = create_controller(config)

    assert controller.language == "te"
    assert controller.lifecycle.page_size == 5
    assert controller.lifecycle.offline_queue.max_attempts == 2
    await controller.close()


@pytest.mark.asyncio
async def test_quickstart_remembers_last_session() -> None:
    from chat_session_controller import (
        InMemoryGateway,
        InMemoryKeyValueStore,
        InMemoryMessageRepository,
        Initialize,
        Ready,
        SendMessage,
        create_controller,
    )

    gateway = InMemoryGateway()
    repository = InMemoryMessageRepository()
    store = InMemoryKeyValueStore()

    first = create_controller(gateway=gateway, repository=repository, store=store)
    first.dispatch(SendMessage("Create a lesson plan"))
    await first.wait_idle()
    await first.close()

    second = create_controller(gateway=gateway, repository=repository, store=store)
    second.dispatch(Initialize())
    await second.wait_idle()

    state = second.state
    assert isinstance(state, Ready)
    assert state.session_id == first.state.session_id  # type: ignore[union-attr]
    assert [m.text for m in state.messages][0] == "Create a lesson plan"
    await second.close()
