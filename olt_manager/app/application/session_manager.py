# Copyright 2026 icecake0141
# SPDX-License-Identifier: Apache-2.0
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# This file was created or modified with the assistance of an AI (Large Language Model).
# Review required for correctness, security, and licensing.
"""Device session lifecycle with retry policy and FIFO command serialization."""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future
from contextlib import contextmanager
from dataclasses import dataclass
from threading import Condition, Lock, get_ident
from typing import Callable, Iterator, Optional, Protocol

from olt_manager.app.domain.errors import (
    CommandError,
    CommandTimeoutError,
    DeviceConnectionError,
    FatalConnectionError,
)
from olt_manager.app.domain.models import DeviceEndpoint, SessionSnapshot, SessionState

logger = logging.getLogger(__name__)

# Huawei user, privileged and config prompts end with '>' or '#'.
DEFAULT_PROMPT_PATTERN = r"[>#]\s*$"


class TransportChannel(Protocol):
    """Single stateful connection to one device endpoint."""

    def connect(self) -> None:
        """Open the connection or raise DeviceConnectionError."""

    def send(self, command: str, terminator: Optional[str], timeout: float) -> str:
        """Send one command and return its raw output."""

    def disconnect(self) -> None:
        """Release the connection. Must not raise."""


@dataclass(frozen=True)
class SessionConfig:
    """Retry and timeout policy for a session."""

    command_timeout: float = 30.0
    max_connect_attempts: int = 3
    backoff_seconds: float = 1.0


class FifoLock:
    """Reentrant lock granted to waiters strictly in request order."""

    def __init__(self) -> None:
        self._cond = Condition()
        self._next_ticket = 0
        self._now_serving = 0
        self._owner: Optional[int] = None
        self._depth = 0

    def acquire(self) -> None:
        me = get_ident()
        with self._cond:
            if self._owner == me:
                self._depth += 1
                return
            ticket = self._next_ticket
            self._next_ticket += 1
            while self._now_serving != ticket:
                self._cond.wait()
            self._owner = me
            self._depth = 1

    def release(self) -> None:
        with self._cond:
            if self._owner != get_ident():
                raise RuntimeError("FifoLock released by a thread that does not own it")
            self._depth -= 1
            if self._depth == 0:
                self._owner = None
                self._now_serving += 1
                self._cond.notify_all()

    def waiting(self) -> int:
        """Number of threads queued behind the current owner."""
        with self._cond:
            held = 1 if self._owner is not None else 0
            return self._next_ticket - self._now_serving - held


class SessionManager:
    """Owns one transport channel and serializes all traffic on it."""

    def __init__(
        self,
        endpoint: DeviceEndpoint,
        channel: TransportChannel,
        config: SessionConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.endpoint = endpoint
        self.channel = channel
        self.config = config or SessionConfig()
        self._sleep = sleep
        self._state_lock = Lock()
        self._queue = FifoLock()
        self._inflight: Optional[Future[None]] = None
        self._failures = 0
        self._last_error: Optional[str] = None
        self._state = (
            SessionState.CONNECTED if endpoint.simulation else SessionState.DISCONNECTED
        )

    @property
    def state(self) -> SessionState:
        with self._state_lock:
            return self._state

    @property
    def consecutive_failures(self) -> int:
        with self._state_lock:
            return self._failures

    def snapshot(self) -> SessionSnapshot:
        with self._state_lock:
            return SessionSnapshot(
                endpoint=self.endpoint.key,
                state=self._state,
                consecutive_failures=self._failures,
                last_error=self._last_error,
            )

    def queued(self) -> int:
        """Callers waiting for the channel."""
        return self._queue.waiting()

    def _set_state_locked(self, new_state: SessionState) -> None:
        if new_state != self._state:
            logger.info(
                "Session %s: %s -> %s",
                self.endpoint.key,
                self._state.value,
                new_state.value,
            )
            self._state = new_state

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        """Hold the channel for a multi-command sequence."""
        self._queue.acquire()
        try:
            yield
        finally:
            self._queue.release()

    def connect(self) -> None:
        """Make one connection attempt unless already connected.

        Concurrent callers share the attempt already in flight and see
        its outcome instead of opening a second physical connection.
        """
        if self.endpoint.simulation:
            return
        with self._state_lock:
            if self._state == SessionState.CONNECTED:
                return
            if self._inflight is not None:
                attempt = self._inflight
                owner = False
            else:
                attempt = Future()
                self._inflight = attempt
                owner = True
                self._set_state_locked(SessionState.CONNECTING)

        if not owner:
            attempt.result()
            return

        try:
            self.channel.connect()
        except DeviceConnectionError as exc:
            error = self._connect_failed(exc)
            self._finish_attempt(attempt, error)
            raise error from exc
        except Exception as exc:
            with self._state_lock:
                self._last_error = str(exc)
                self._set_state_locked(SessionState.DISCONNECTED)
            self._finish_attempt(attempt, exc)
            raise

        with self._state_lock:
            self._failures = 0
            self._last_error = None
            self._set_state_locked(SessionState.CONNECTED)
        self._finish_attempt(attempt, None)

    def _connect_failed(self, exc: DeviceConnectionError) -> DeviceConnectionError:
        limit = self.config.max_connect_attempts
        with self._state_lock:
            self._failures = min(self._failures + 1, limit)
            self._last_error = exc.message
            failures = self._failures
            if failures >= limit:
                self._set_state_locked(SessionState.FAILED)
            else:
                self._set_state_locked(SessionState.DISCONNECTED)
        if failures >= limit:
            logger.error(
                "Connection to %s failed after %s attempts: %s",
                self.endpoint.key,
                failures,
                exc.message,
            )
            return FatalConnectionError(
                f"Connection to {self.endpoint.key} failed after "
                f"{failures} attempts: {exc.message}"
            )
        logger.warning(
            "Connection to %s failed (attempt %s/%s): %s",
            self.endpoint.key,
            failures,
            limit,
            exc.message,
        )
        return DeviceConnectionError(
            f"Connection to {self.endpoint.key} failed "
            f"(attempt {failures}/{limit}): {exc.message}"
        )

    def _finish_attempt(
        self, attempt: Future[None], error: Optional[BaseException]
    ) -> None:
        with self._state_lock:
            self._inflight = None
        if error is None:
            attempt.set_result(None)
        else:
            attempt.set_exception(error)

    def _ensure_connected(self) -> None:
        while True:
            try:
                self.connect()
                return
            except FatalConnectionError:
                raise
            except DeviceConnectionError:
                delay = self.config.backoff_seconds * (
                    2 ** max(0, self.consecutive_failures - 1)
                )
                if delay > 0:
                    logger.info(
                        "Retrying connection to %s in %.1fs", self.endpoint.key, delay
                    )
                    self._sleep(delay)

    def _send(self, command: str, terminator: Optional[str], timeout: Optional[float]) -> str:
        effective_timeout = self.config.command_timeout if timeout is None else timeout
        logger.debug("Sending to %s: %s", self.endpoint.key, command)
        try:
            return self.channel.send(command, terminator, effective_timeout)
        except CommandTimeoutError:
            logger.error(
                "Command timed out on %s after %.1fs: %s",
                self.endpoint.key,
                effective_timeout,
                command,
            )
            raise
        except CommandError as exc:
            logger.error(
                "Command failed on %s: %s (%s)", self.endpoint.key, command, exc.message
            )
            raise
        except DeviceConnectionError as exc:
            with self._state_lock:
                self._last_error = exc.message
                self._set_state_locked(SessionState.DISCONNECTED)
            logger.error(
                "Channel to %s dropped while sending %r: %s",
                self.endpoint.key,
                command,
                exc.message,
            )
            raise

    def execute_command(
        self,
        command: str,
        terminator: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> str:
        """Run one command, connecting first if needed."""
        with self.exclusive():
            self._ensure_connected()
            return self._send(command, terminator, timeout)

    def execute_sequence(
        self,
        commands: list[str],
        terminator: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> list[str]:
        """Run commands back to back without yielding the channel."""
        with self.exclusive():
            self._ensure_connected()
            return [self._send(command, terminator, timeout) for command in commands]

    def disconnect(self) -> None:
        """Release the channel. Safe to call repeatedly."""
        if self.endpoint.simulation:
            return
        with self.exclusive():
            with self._state_lock:
                was_connected = self._state == SessionState.CONNECTED
                self._set_state_locked(SessionState.DISCONNECTED)
            if was_connected:
                self.channel.disconnect()
                logger.info("Disconnected from %s", self.endpoint.key)
