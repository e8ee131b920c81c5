"""Connection verification: proves Figma has attached to the MCP server.

Two channels are supported.

Bridge channel
    A temporary listener is bound to the first free bridge port.  The Figma
    Desktop Bridge plugin scans the same ports and opens a WebSocket; one
    completed upgrade handshake is proof enough, after which the connection is
    dropped.  The wait races three events (handshake, timeout, Escape key) and
    settles a single future exactly once.

Debug-port channel
    Figma relaunched with ``--remote-debugging-port`` serves HTTP on a fixed
    port; any HTTP response means it is reachable.
"""

from __future__ import annotations

import asyncio
import base64
import hashlib
import logging
import os
import sys
from collections.abc import Callable, Iterator, Sequence
from contextlib import ExitStack, contextmanager
from enum import Enum
from typing import TextIO

import httpx

logger = logging.getLogger("figsetup.verifier")

DEBUG_PORT = 9222
BRIDGE_PORTS: list[int] = list(range(DEBUG_PORT + 1, DEBUG_PORT + 11))
BRIDGE_TIMEOUT = 60.0

WEBSOCKET_MAGIC = "258EAFA5-E914-47DA-95CA-5AB5E34B13E5"
_ESCAPE = b"\x1b"
_MAX_REQUEST_BYTES = 16 * 1024

_BAD_REQUEST = (
    b"HTTP/1.1 400 Bad Request\r\n"
    b"Connection: close\r\n"
    b"Content-Length: 0\r\n"
    b"\r\n"
)


class VerificationOutcome(str, Enum):
    CONNECTED = "connected"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


def compute_accept_token(key: str) -> str:
    """Sec-WebSocket-Accept value for a client's Sec-WebSocket-Key (RFC 6455 §4.2.2)."""
    digest = hashlib.sha1((key + WEBSOCKET_MAGIC).encode("ascii")).digest()
    return base64.b64encode(digest).decode("ascii")


def build_upgrade_response(key: str) -> bytes:
    return (
        "HTTP/1.1 101 Switching Protocols\r\n"
        "Upgrade: websocket\r\n"
        "Connection: Upgrade\r\n"
        f"Sec-WebSocket-Accept: {compute_accept_token(key)}\r\n"
        "\r\n"
    ).encode("ascii")


def parse_headers(request: bytes) -> dict[str, str]:
    """Parse the header block of an HTTP request into a lower-cased dict."""
    text = request.decode("latin-1")
    headers: dict[str, str] = {}
    for line in text.split("\r\n")[1:]:
        if not line:
            break
        name, sep, value = line.partition(":")
        if sep:
            headers[name.strip().lower()] = value.strip()
    return headers


@contextmanager
def raw_terminal(stream: TextIO | None) -> Iterator[bool]:
    """Switch *stream*'s terminal to unbuffered key input for the duration of the block.

    Yields True if the mode was changed, False when *stream* is not a terminal
    (or the platform has no termios).  The previous mode is always restored.
    """
    if stream is None or sys.platform == "win32" or not stream.isatty():
        yield False
        return

    import termios
    import tty

    fd = stream.fileno()
    saved = termios.tcgetattr(fd)
    try:
        tty.setcbreak(fd)
        yield True
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, saved)


class BridgeVerifier:
    """Waits for the Desktop Bridge plugin to complete a WebSocket handshake."""

    def __init__(
        self,
        ports: Sequence[int] = BRIDGE_PORTS,
        host: str = "127.0.0.1",
        timeout: float = BRIDGE_TIMEOUT,
        key_input: TextIO | None = None,
    ) -> None:
        self.ports = list(ports)
        self.host = host
        self.timeout = timeout
        self.key_input = key_input
        self.bound_port: int | None = None
        self.listening = asyncio.Event()
        self._outcome: asyncio.Future[VerificationOutcome] | None = None
        self._clients: set[asyncio.StreamWriter] = set()

    def cancel(self) -> None:
        """Operator cancellation. No-op unless a wait is in progress and unsettled."""
        self._settle(VerificationOutcome.CANCELLED)

    async def wait(self) -> VerificationOutcome:
        """Bind, then wait for a handshake, the timeout, or cancellation.

        If every candidate port is taken, a bridge listener from an earlier
        run is assumed to be serving and CONNECTED is returned without
        binding anything.  The listener never outlives this call.
        """
        if self._outcome is not None:
            raise RuntimeError("BridgeVerifier.wait() is already running")

        server = await self._bind()
        if server is None:
            logger.warning(
                "All bridge ports %d-%d are in use; assuming the bridge is already connected",
                self.ports[0], self.ports[-1],
            )
            return VerificationOutcome.CONNECTED

        loop = asyncio.get_running_loop()
        self._outcome = loop.create_future()
        timer = loop.call_later(self.timeout, self._settle, VerificationOutcome.TIMED_OUT)
        self.listening.set()
        try:
            with ExitStack() as stack:
                self._watch_keyboard(stack, loop)
                outcome = await self._outcome
        finally:
            timer.cancel()
            self.listening.clear()
            self._outcome = None
            server.close()
            for writer in list(self._clients):
                writer.close()
            await server.wait_closed()

        logger.info("Bridge wait on port %d finished: %s", self.bound_port, outcome.value)
        return outcome

    async def _bind(self) -> asyncio.AbstractServer | None:
        for port in self.ports:
            try:
                server = await asyncio.start_server(
                    self._handle, self.host, port, limit=_MAX_REQUEST_BYTES
                )
            except OSError as exc:
                logger.debug("Bridge port %d unavailable: %s", port, exc)
                continue
            self.bound_port = port
            logger.debug("Bridge listener bound to %s:%d", self.host, port)
            return server
        self.bound_port = None
        return None

    def _settle(self, outcome: VerificationOutcome) -> None:
        # First writer wins; later handshakes, timers and keys are ignored.
        if self._outcome is not None and not self._outcome.done():
            self._outcome.set_result(outcome)

    def _watch_keyboard(self, stack: ExitStack, loop: asyncio.AbstractEventLoop) -> None:
        if not stack.enter_context(raw_terminal(self.key_input)):
            return
        fd = self.key_input.fileno()

        def _on_key() -> None:
            data = os.read(fd, 32)
            # a lone ESC; arrow keys arrive as ESC-prefixed sequences
            if data == _ESCAPE:
                self._settle(VerificationOutcome.CANCELLED)

        loop.add_reader(fd, _on_key)
        stack.callback(loop.remove_reader, fd)

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._clients.add(writer)
        try:
            request = await reader.readuntil(b"\r\n\r\n")
            headers = parse_headers(request)
            if headers.get("upgrade", "").lower() != "websocket":
                writer.write(_BAD_REQUEST)
                await writer.drain()
                return
            if self._outcome is None or self._outcome.done():
                return

            key = headers.get("sec-websocket-key")
            if key:
                writer.write(build_upgrade_response(key))
                await writer.drain()
            logger.debug("Bridge handshake received on port %s", self.bound_port)
            self._settle(VerificationOutcome.CONNECTED)
        except (asyncio.IncompleteReadError, asyncio.LimitOverrunError, ConnectionError) as exc:
            logger.debug("Dropped bridge connection: %s", exc)
        finally:
            self._clients.discard(writer)
            writer.close()


class DebugPortVerifier:
    """Checks that Figma's remote debugging endpoint answers HTTP."""

    def __init__(self, url: str = f"http://localhost:{DEBUG_PORT}", attempt_timeout: float = 3.0) -> None:
        self.url = url
        self.attempt_timeout = attempt_timeout

    def check(self) -> bool:
        """One attempt. Any HTTP response, even an error status, counts as reachable."""
        try:
            httpx.get(self.url, timeout=self.attempt_timeout)
        except httpx.HTTPError as exc:
            logger.debug("Debug port %s not reachable: %s", self.url, exc)
            return False
        return True

    def poll(self, should_retry: Callable[[], bool]) -> VerificationOutcome:
        """Check until reachable or *should_retry* declines another attempt."""
        while True:
            if self.check():
                return VerificationOutcome.CONNECTED
            if not should_retry():
                return VerificationOutcome.CANCELLED
