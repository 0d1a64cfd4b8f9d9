#!/usr/bin/env python3
"""Example: Quickstart — chat-session-controller

Minimal working example: start a controller against the in-memory backend,
send a message, and print the reconciled conversation.

Usage:
    python examples/01_quickstart.py

Requirements:
    pip install chat-session-controller
"""
from __future__ import annotations

import asyncio

import chat_session_controller
from chat_session_controller import Initialize, Ready, SendMessage, create_controller


async def main() -> None:
    print(f"chat-session-controller version: {chat_session_controller.__version__}")

    # Step 1: Build a controller; every collaborator defaults to in-memory
    controller = create_controller()
    controller.dispatch(Initialize())
    await controller.wait_idle()
    print(f"State after Initialize: {type(controller.state).__name__}")

    # Step 2: Send a message; it shows up at once as PENDING
    controller.dispatch(SendMessage("Create a lesson plan about fractions"))
    pending = controller.state
    assert isinstance(pending, Ready)
    print(f"Optimistic: {pending.messages[0].text!r} ({pending.messages[0].status.value})")

    # Step 3: Wait for the backend; the session was created by the send
    await controller.wait_idle()
    state = controller.state
    assert isinstance(state, Ready)
    print(f"\nSession: {state.session_id}")
    for message in state.messages:
        print(f"  [{message.sender.value}] {message.text}")

    await controller.close()


if __name__ == "__main__":
    asyncio.run(main())
