"""
ZeroMQ request/reply transport for task-space commands.

Wire format: both messages are raw little-endian float64 arrays. The client
sends the current end-effector position and expects exactly `size` values
back. The request side uses REQ_RELAXED + REQ_CORRELATE so a timed-out
request does not leave the socket stuck in the send/recv state machine.
"""

import threading
from typing import Callable, Optional
import numpy as np
import zmq

from ..core.errors import StreamError, StreamTimeoutError

DEFAULT_ADDRESS = "tcp://localhost:5511"
_WIRE_DTYPE = np.dtype("<f8")


def encode(values: np.ndarray) -> bytes:
    return np.asarray(values, dtype=_WIRE_DTYPE).reshape(-1).tobytes()


def decode(buffer: bytes, size: Optional[int] = None) -> np.ndarray:
    if len(buffer) % _WIRE_DTYPE.itemsize:
        raise StreamError(f"Reply of {len(buffer)} bytes is not a float64 array")
    values = np.frombuffer(buffer, dtype=_WIRE_DTYPE).astype(float)
    if size is not None and values.size != size:
        raise StreamError(f"Expected {size} values in reply, got {values.size}")
    return values


class Requester:
    """
    Bounded-wait REQ client implementing the ReferenceStream port.

    Example:
        stream = Requester("tcp://localhost:5511", timeout_ms=5)
        velocity = stream.request(position, 3)
    """

    def __init__(
        self,
        address: str = DEFAULT_ADDRESS,
        timeout_ms: int = 5,
        context: Optional[zmq.Context] = None,
    ):
        """
        Args:
            address: Endpoint of the reply server
            timeout_ms: Maximum wait for both send and receive
            context: ZeroMQ context (None = process-wide instance)
        """
        self.address = address
        self.timeout_ms = int(timeout_ms)
        self.context = context or zmq.Context.instance()

        self.socket = self.context.socket(zmq.REQ)
        self.socket.setsockopt(zmq.RCVTIMEO, self.timeout_ms)
        self.socket.setsockopt(zmq.SNDTIMEO, self.timeout_ms)
        self.socket.setsockopt(zmq.REQ_RELAXED, 1)
        self.socket.setsockopt(zmq.REQ_CORRELATE, 1)
        self.socket.setsockopt(zmq.LINGER, 0)
        self.socket.connect(address)
        print(f"✓ Reference stream connected to {address} (timeout {self.timeout_ms} ms)")

    def request(self, value: np.ndarray, size: int) -> np.ndarray:
        """
        Send value and wait for a reply of `size` float64 values.

        Raises:
            StreamTimeoutError: no reply within timeout_ms
            StreamError: transport failure or malformed reply
        """
        try:
            self.socket.send(encode(value))
            reply = self.socket.recv()
        except zmq.Again:
            raise StreamTimeoutError(self.address, self.timeout_ms) from None
        except zmq.ZMQError as e:
            raise StreamError(f"Request to {self.address} failed: {e}") from e
        return decode(reply, size)

    def close(self):
        if not self.socket.closed:
            self.socket.close(linger=0)


class Replier:
    """
    REP server answering each request with handler(values).

    Runs in the foreground with serve_forever() or in a daemon thread with
    start(); poll_ms bounds how long stop() takes to be noticed.
    """

    def __init__(
        self,
        address: str,
        handler: Callable[[np.ndarray], np.ndarray],
        context: Optional[zmq.Context] = None,
        poll_ms: int = 100,
    ):
        self.address = address
        self.handler = handler
        self.context = context or zmq.Context.instance()
        self.poll_ms = poll_ms
        self.request_count = 0

        self.socket = self.context.socket(zmq.REP)
        self.socket.setsockopt(zmq.LINGER, 0)
        self.socket.bind(address)

        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def serve_once(self, timeout_ms: Optional[int] = None) -> bool:
        """Answer one request if one arrives within timeout_ms."""
        timeout = self.poll_ms if timeout_ms is None else timeout_ms
        if not self.socket.poll(timeout, zmq.POLLIN):
            return False
        # REP must answer every request; an empty reply is rejected by the requester
        try:
            values = decode(self.socket.recv())
        except StreamError as e:
            print(f"[STREAM] ✗ Malformed request: {e}")
            self.socket.send(b"")
            return True
        try:
            reply = encode(self.handler(values))
        except Exception as e:
            print(f"[STREAM] ✗ Handler failed on {values}: {e!r}")
            self.socket.send(b"")
            return True
        self.socket.send(reply)
        self.request_count += 1
        return True

    def serve_forever(self):
        print(f"✓ Serving on {self.address}")
        while not self._stop.is_set():
            self.serve_once()

    def start(self) -> "Replier":
        self._thread = threading.Thread(target=self.serve_forever, daemon=True)
        self._thread.start()
        return self

    def stop(self):
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None

    def close(self):
        self.stop()
        if not self.socket.closed:
            self.socket.close(linger=0)
