"""MongoDB connection lifecycle.

`ConnectionManager` opens the Motor client used by the API and keeps it
alive without ever crashing the process:

- a failed attempt is retried after 2 seconds, up to 3 consecutive
  failures, after which the manager gives up and reports no handle;
- when an established connection drops, a reconnect is scheduled after
  5 seconds as long as fewer than 3 failures have accumulated since the
  last success.

Callers never see connection errors. They ask for the current handle with
`get_database()` and treat `None` as "database unavailable".
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import monitoring

from .config import Settings, settings
from .utils.scheduler import AsyncioScheduler, ScheduledTask

logger = logging.getLogger("campus_api.database")

MAX_RETRIES = 3
RETRY_DELAY_SECONDS = 2
RECONNECT_DELAY_SECONDS = 5
DEFAULT_DATABASE = "students"
CONNECT_OPTIONS = {
    "retryWrites": True,
    "w": "majority",
    "serverSelectionTimeoutMS": 5000,
}


class ConnectionFailure(Exception):
    """A single connection attempt failed; retried while attempts remain."""


class ConnectionExhausted(ConnectionFailure):
    """Retries are used up; no further automatic attempts are made."""


class DatabaseUnavailable(RuntimeError):
    """Raised to request handlers when no live connection handle exists."""


class ConnectionStatus(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"


@dataclass
class ConnectionState:
    """Mutable connection bookkeeping owned by one `ConnectionManager`.

    `retries` counts consecutive failures since the last success and is
    reset to zero whenever a connection succeeds.
    """
    retries: int = 0
    status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    handle: Any = None
    last_error: Optional[str] = None


class _TopologyWatcher(monitoring.TopologyListener):
    """Report loss of the last writable server back to the event loop.

    pymongo publishes topology events from its monitor threads, so the
    notification is handed to the loop thread-safely.
    """

    def __init__(self, manager: "ConnectionManager", loop: asyncio.AbstractEventLoop, generation: int):
        self._manager = manager
        self._loop = loop
        self._generation = generation

    def opened(self, event):
        pass

    def closed(self, event):
        pass

    def description_changed(self, event):
        if not event.previous_description.has_writable_server():
            return
        if event.new_description.has_writable_server():
            return
        if self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._manager._topology_lost, self._generation)


def _redact(uri: str) -> str:
    return re.sub(r"//[^@/]+@", "//***@", uri)


def _host_of(client, uri: str) -> str:
    address = getattr(client, "address", None)
    if address:
        return f"{address[0]}:{address[1]}"
    return uri.split("//", 1)[-1].split("/", 1)[0].rsplit("@", 1)[-1]


class ConnectionManager:
    """Own the database connection and its retry state machine.

    `client_factory` and `scheduler` default to Motor and the asyncio
    scheduler; tests inject doubles for both.
    """

    def __init__(
        self,
        config: Settings,
        client_factory: Optional[Callable[..., Any]] = None,
        scheduler=None,
    ):
        self.state = ConnectionState()
        self._settings = config
        self._client_factory = client_factory or AsyncIOMotorClient
        self._scheduler = scheduler or AsyncioScheduler()
        self._client = None
        self._client_generation: Optional[int] = None
        self._generation = 0
        self._pending: List[ScheduledTask] = []
        self._connect_hooks: List[Callable[[Any], Awaitable[None]]] = []

    def add_connect_hook(self, hook: Callable[[Any], Awaitable[None]]) -> None:
        """Register a coroutine run with the handle after every successful connect."""
        self._connect_hooks.append(hook)

    def get_database(self):
        """Return the live database handle, or None when not connected."""
        if self.state.status is not ConnectionStatus.CONNECTED:
            return None
        return self.state.handle

    async def connect(self):
        """Attempt one connection.

        Returns the database handle on success. On failure returns None,
        either after scheduling a retry or, once retries are exhausted,
        for good.
        """
        uri = self._settings.MONGODB_URI
        self.state.status = ConnectionStatus.CONNECTING
        if self.state.retries < MAX_RETRIES:
            logger.info(
                "Connecting to MongoDB at %s (attempt %d/%d)",
                _redact(uri), self.state.retries + 1, MAX_RETRIES,
            )
        else:
            logger.info("Connecting to MongoDB at %s (retries exhausted, manual attempt)", _redact(uri))
        try:
            client, generation = await self._open(uri)
        except ConnectionFailure as exc:
            return self._attempt_failed(exc)

        previous = self._client
        self._client = client
        self._client_generation = generation
        handle = client.get_default_database(DEFAULT_DATABASE)
        self.state.handle = handle
        self.state.status = ConnectionStatus.CONNECTED
        self.state.retries = 0
        self.state.last_error = None
        logger.info("MongoDB connected: %s", _host_of(client, uri))
        if previous is not None and previous is not client:
            previous.close()
        for hook in self._connect_hooks:
            try:
                await hook(handle)
            except Exception:
                logger.exception("post-connect hook %r failed", hook)
        return handle

    def on_disconnected(self) -> None:
        """Handle a dropped connection.

        Reconnects after a delay only while fewer than MAX_RETRIES failures
        have accumulated. The counter is reset by a successful connect alone,
        so once it reaches the maximum, drops are no longer acted on.
        """
        logger.warning("MongoDB disconnected!")
        self.state.handle = None
        if self.state.retries < MAX_RETRIES:
            self.state.status = ConnectionStatus.DISCONNECTED
            self._schedule(RECONNECT_DELAY_SECONDS)
        else:
            self.state.status = ConnectionStatus.FAILED

    async def close(self) -> None:
        """Cancel pending retries and close the client at shutdown."""
        for task in self._pending:
            task.cancel()
        self._pending = []
        cancel_running = getattr(self._scheduler, "cancel_running", None)
        if cancel_running is not None:
            cancel_running()
        self._client_generation = None
        if self._client is not None:
            self._client.close()
            self._client = None
        self.state.handle = None
        self.state.status = ConnectionStatus.DISCONNECTED
        logger.info("MongoDB connection closed")

    async def _open(self, uri: str):
        self._generation += 1
        generation = self._generation
        watcher = _TopologyWatcher(self, asyncio.get_running_loop(), generation)
        client = None
        try:
            client = self._client_factory(uri, event_listeners=[watcher], **CONNECT_OPTIONS)
            await client.admin.command("ping")
        except asyncio.CancelledError:
            if client is not None:
                client.close()
            raise
        except Exception as exc:
            if client is not None:
                client.close()
            raise ConnectionFailure(str(exc)) from exc
        return client, generation

    def _attempt_failed(self, exc: ConnectionFailure):
        self.state.retries += 1
        self.state.last_error = str(exc)
        self.state.handle = None
        if self.state.retries >= MAX_RETRIES:
            self.state.status = ConnectionStatus.FAILED
            exhausted = ConnectionExhausted(f"gave up after {self.state.retries} attempts: {exc}")
            self.state.last_error = str(exhausted)
            logger.error("DB connection failed after retries: %s", exhausted)
            return None
        logger.warning("Retrying connection... (%d/%d): %s", self.state.retries, MAX_RETRIES, exc)
        self._schedule(RETRY_DELAY_SECONDS)
        return None

    def _schedule(self, delay: float) -> None:
        self._pending = [t for t in self._pending if not (t.fired or t.cancelled)]
        self._pending.append(self._scheduler.call_later(delay, self.connect))

    def _topology_lost(self, generation: int) -> None:
        # events from a client that has since been replaced or closed
        if generation != self._client_generation:
            return
        if self.state.status is not ConnectionStatus.CONNECTED:
            return
        self.on_disconnected()


connection_manager = ConnectionManager(settings)


def get_database():
    """Return the database handle for FastAPI dependency injection.

    Raises `DatabaseUnavailable` (served as 503) when not connected.
    """
    db = connection_manager.get_database()
    if db is None:
        raise DatabaseUnavailable("Database unavailable")
    return db
