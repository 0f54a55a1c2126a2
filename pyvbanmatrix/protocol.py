import asyncio
import itertools
import logging
import socket
import time
from typing import Optional

from pyvbanmatrix.exceptions import QueryTimeoutError, ReplyParseError, TransportError
from pyvbanmatrix.packet import decode_text_packet, encode_text_packet

DEFAULT_PORT = 6980
DEFAULT_STREAM_NAME = "Command1"
DEFAULT_QUERY_TIMEOUT = 1.5  # seconds
# How long a fire-and-forget endpoint stays open to drain unsolicited replies
SEND_GRACE_DELAY = 0.1


class _ReplyProtocol(asyncio.DatagramProtocol):
    """Datagram protocol owned by exactly one query or send.

    When a reply future is given, the first VBAN packet received from the
    matrix host resolves it. Without one, received packets are logged and
    dropped.
    """

    def __init__(self, host: str, reply: Optional[asyncio.Future] = None):
        self._logger = logging.getLogger(__name__)
        self._host = host
        self._reply = reply

    def datagram_received(self, data, addr):
        """Method from asyncio.DatagramProtocol"""
        if addr[0] != self._host:
            self._logger.debug(f"Ignoring datagram from unexpected host {addr}")
            return
        try:
            _stream_name, text = decode_text_packet(data)
        except ReplyParseError as e:
            self._logger.debug(f"Ignoring datagram from {addr}: {e}")
            return
        if self._reply is None:
            self._logger.debug(f"RECV (discarded) from {addr}: {text.strip()}")
            return
        if not self._reply.done():
            self._reply.set_result(text)

    def error_received(self, exc):
        """Method from asyncio.DatagramProtocol"""
        if self._reply is None:
            self._logger.warning(f"UDP error on fire-and-forget endpoint: {exc}")
        elif not self._reply.done():
            self._reply.set_exception(TransportError(f"UDP error: {exc}"))


class VBANTransport:
    """Sends VBAN-TEXT commands to a matrix and correlates replies.

    Every call opens its own ephemeral UDP endpoint, so any number of
    queries can be in flight at once without a shared receive loop: the
    reply that arrives on an endpoint belongs to the command sent from it.
    """

    def __init__(
        self,
        hostname: str,
        port: int = DEFAULT_PORT,
        stream_name: str = DEFAULT_STREAM_NAME,
        timeout: float = DEFAULT_QUERY_TIMEOUT,
        grace_delay: float = SEND_GRACE_DELAY,
    ):
        """Initialize transport.

        Args:
            hostname: Matrix host name or IP
            port: Matrix VBAN port (usually 6980)
            stream_name: Stream tag for outgoing commands
            timeout: Seconds to wait for a query reply
            grace_delay: Seconds a fire-and-forget endpoint stays open
        """
        self._logger = logging.getLogger(__name__)
        self._hostname = hostname
        self._port = port
        self._stream_name = stream_name
        self._timeout = timeout
        self._grace_delay = grace_delay
        self._frame_counter = itertools.count()
        self._address: Optional[tuple[str, int]] = None

    @property
    def hostname(self) -> str:
        return self._hostname

    @property
    def port(self) -> int:
        return self._port

    @property
    def stream_name(self) -> str:
        return self._stream_name

    async def _resolve(self) -> tuple[str, int]:
        """Resolve the matrix address once; later calls reuse it."""
        if self._address is None:
            loop = asyncio.get_running_loop()
            try:
                infos = await loop.getaddrinfo(
                    self._hostname, self._port, family=socket.AF_INET, type=socket.SOCK_DGRAM
                )
            except OSError as e:
                raise TransportError(f"Could not resolve {self._hostname}: {e}") from e
            if not infos:
                raise TransportError(f"Could not resolve {self._hostname}")
            self._address = infos[0][4][:2]
            self._logger.debug(f"Resolved {self._hostname} to {self._address[0]}")
        return self._address

    async def _open_endpoint(self, reply: Optional[asyncio.Future] = None):
        address = await self._resolve()
        loop = asyncio.get_running_loop()
        try:
            # Port 0: the OS picks an unused ephemeral port
            transport, _ = await loop.create_datagram_endpoint(
                lambda: _ReplyProtocol(address[0], reply), local_addr=("0.0.0.0", 0)
            )
        except OSError as e:
            raise TransportError(f"Could not open UDP endpoint: {e}") from e
        return transport, address

    def _transmit(self, transport, address, command: str, stream_name: Optional[str]):
        packet = encode_text_packet(
            command, stream_name or self._stream_name, next(self._frame_counter)
        )
        try:
            transport.sendto(packet, address)
        except OSError as e:
            raise TransportError(f"Could not send to {self._hostname}:{self._port}: {e}") from e

    async def query(
        self,
        command: str,
        stream_name: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> str:
        """Send a command and return the first reply from the matrix, trimmed.

        Raises:
            TransportError: the host could not be resolved, the endpoint could
                not be opened or the send failed
            QueryTimeoutError: no reply within the timeout
        """
        loop = asyncio.get_running_loop()
        reply: asyncio.Future = loop.create_future()
        transport, address = await self._open_endpoint(reply)
        sent_at = time.monotonic()
        try:
            self._transmit(transport, address, command, stream_name)
            self._logger.debug(f"SEND: {command}")
            try:
                # Timeout starts after the packet is out
                answer = await asyncio.wait_for(
                    reply, self._timeout if timeout is None else timeout
                )
            except asyncio.TimeoutError:
                raise QueryTimeoutError(
                    f"No reply from {self._hostname}:{self._port} to '{command}'"
                ) from None
        finally:
            transport.close()
        answer = answer.strip()
        self._logger.debug(f"RECV ({(time.monotonic() - sent_at) * 1000:.0f}ms): {answer}")
        return answer

    async def send(self, command: str, stream_name: Optional[str] = None):
        """Fire a command without waiting for acknowledgment.

        The endpoint is closed after the grace delay; anything the matrix
        sends back in the meantime is discarded.
        """
        loop = asyncio.get_running_loop()
        transport, address = await self._open_endpoint()
        try:
            self._transmit(transport, address, command, stream_name)
        except TransportError:
            transport.close()
            raise
        self._logger.info(f"SEND: to {self._hostname}:{self._port} -> {command}")
        loop.call_later(self._grace_delay, transport.close)
