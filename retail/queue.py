"""
Queue abstraction for the notification side-channel.

Supports an in-memory fallback for tests/local runs, Azure Queue Storage and
a Redis list. Receiving pops a message; peeking leaves the queue untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Protocol

import redis
from azure.core.exceptions import ResourceExistsError
from azure.storage.queue import QueueClient
from redis import exceptions as redis_exceptions

logger = logging.getLogger(__name__)

DEFAULT_PEEK_COUNT = 10
# Azure Queue Storage returns at most 32 messages per peek.
AZURE_MAX_PEEK = 32


def format_message(
    message: str, message_type: str = "General", *, now: Optional[datetime] = None
) -> str:
    """Prefix a message with a UTC timestamp and a bracketed type tag."""
    stamp = (now or datetime.now(timezone.utc)).strftime("%Y-%m-%d %H:%M:%S UTC")
    return f"[{stamp}] [{message_type}] {message}"


class MessageQueue(Protocol):
    """Minimal queue interface for notification strings."""

    def ensure_exists(self) -> None:
        ...

    def send(self, message: str) -> None:
        ...

    def receive(self) -> Optional[str]:
        ...

    def peek(self, max_messages: int = DEFAULT_PEEK_COUNT) -> list[str]:
        ...


@dataclass
class InMemoryMessageQueue:
    """Simple FIFO queue for testing/dev."""

    items: list[str] = field(default_factory=list)

    def ensure_exists(self) -> None:
        return None

    def send(self, message: str) -> None:
        self.items.append(message)

    def receive(self) -> Optional[str]:
        if not self.items:
            return None
        return self.items.pop(0)

    def peek(self, max_messages: int = DEFAULT_PEEK_COUNT) -> list[str]:
        if max_messages <= 0:
            return []
        return list(self.items[:max_messages])

    def reset(self) -> None:
        self.items.clear()


class AzureMessageQueue:
    """Azure Queue Storage implementation."""

    def __init__(self, connection_string: str, queue_name: str):
        if not connection_string:
            raise ValueError("A storage connection string is required")
        self.queue_name = queue_name
        self._client = QueueClient.from_connection_string(
            connection_string, queue_name
        )

    def ensure_exists(self) -> None:
        try:
            self._client.create_queue()
            logger.info(f"Created queue: {self.queue_name}")
        except ResourceExistsError:
            logger.debug(f"Queue already exists: {self.queue_name}")

    def send(self, message: str) -> None:
        self._client.send_message(message)

    def receive(self) -> Optional[str]:
        message = self._client.receive_message()
        if message is None:
            return None
        self._client.delete_message(message.id, message.pop_receipt)
        return message.content

    def peek(self, max_messages: int = DEFAULT_PEEK_COUNT) -> list[str]:
        if max_messages <= 0:
            return []
        count = min(max_messages, AZURE_MAX_PEEK)
        return [
            message.content
            for message in self._client.peek_messages(max_messages=count)
        ]


@dataclass
class RedisMessageQueue:
    """Redis-backed queue using list push/pop operations."""

    url: str
    queue_key: str = "retail:notifications"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def ensure_exists(self) -> None:
        self.client.ping()

    def send(self, message: str) -> None:
        self.client.rpush(self.queue_key, message)

    def receive(self) -> Optional[str]:
        try:
            message = self.client.lpop(self.queue_key)
        except redis_exceptions.ConnectionError:
            # Managed Redis drops idle connections; reconnect for the next call.
            self.client = redis.Redis.from_url(self.url)
            raise
        if message is None:
            return None
        return message.decode("utf-8")

    def peek(self, max_messages: int = DEFAULT_PEEK_COUNT) -> list[str]:
        if max_messages <= 0:
            return []
        items = self.client.lrange(self.queue_key, 0, max_messages - 1)
        return [item.decode("utf-8") for item in items]
