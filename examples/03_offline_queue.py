#!/usr/bin/env python3
"""Example: Offline Queue

Simulates two sends lost to a network outage, then flushes the offline
queue once the connection is back.  Queued messages are delivered in the
order they were written.

Usage:
    python examples/03_offline_queue.py

Requirements:
    pip install chat-session-controller
"""
from __future__ import annotations

import asyncio

from chat_session_controller import (
    FailureKind,
    InMemoryGateway,
    Initialize,
    ProcessOfflineQueue,
    Ready,
    SendMessage,
    create_controller,
)


def show(state: object) -> None:
    assert isinstance(state, Ready)
    for message in state.messages:
        print(f"  [{message.sender.value}/{message.status.value}] {message.text[:60]}")
    print(f"  queued: {state.queued_count}")


async def main() -> None:
    gateway = InMemoryGateway()
    controller = create_controller(gateway=gateway)
    controller.dispatch(Initialize())
    await controller.wait_idle()

    print("Network down:")
    gateway.fail_next(FailureKind.NETWORK, times=2)
    for text in ("Tell a story about kindness", "Make it suitable for grade 3"):
        controller.dispatch(SendMessage(text))
        await controller.wait_idle()
    show(controller.state)
    for signal in controller.drain_signals():
        print(f"  signal: {signal}")

    print("\nNetwork back, flushing:")
    controller.dispatch(ProcessOfflineQueue())
    await controller.wait_idle()
    show(controller.state)
    for signal in controller.drain_signals():
        print(f"  signal: {signal}")

    await controller.close()


if __name__ == "__main__":
    asyncio.run(main())
