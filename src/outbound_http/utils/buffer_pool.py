"""Reusable byte buffers for request bodies.

Buffers are handed out per call and returned when the call finishes.
A buffer is owned by exactly one in-flight call at a time, and every
attempt of that call rebuilds its payload in the same buffer from the
descriptor's original bytes.
"""

import io
import threading
from contextlib import contextmanager
from typing import Iterator, List


class BufferPool:
    """Thread-safe pool of :class:`io.BytesIO` buffers.

    Buffers are emptied when they are released, so idle buffers never
    pin the contents of past request bodies.

    :param max_size: Maximum number of idle buffers kept for reuse
    :type max_size: int
    """

    def __init__(self, max_size: int = 64):
        self._free: List[io.BytesIO] = []
        self._lock = threading.Lock()
        self.max_size = max_size

    def acquire(self) -> io.BytesIO:
        """Take a buffer from the pool, or allocate a new one.

        :return: A buffer exclusively owned by the caller until released
        :rtype: io.BytesIO
        """
        with self._lock:
            if self._free:
                return self._free.pop()
        return io.BytesIO()

    def release(self, buffer: io.BytesIO) -> None:
        """Empty a buffer and return it to the pool.

        Closed buffers and buffers beyond ``max_size`` are dropped.

        :param buffer: Buffer previously obtained from :meth:`acquire`
        :type buffer: io.BytesIO
        """
        if buffer.closed:
            return
        buffer.seek(0)
        buffer.truncate(0)
        with self._lock:
            if len(self._free) < self.max_size:
                self._free.append(buffer)

    @contextmanager
    def borrow(self) -> Iterator[io.BytesIO]:
        """Acquire a buffer for the duration of a ``with`` block.

        The buffer is released on every exit path, including errors and
        task cancellation.

        :return: Context manager yielding the borrowed buffer
        :rtype: Iterator[io.BytesIO]
        """
        buffer = self.acquire()
        try:
            yield buffer
        finally:
            self.release(buffer)

    @property
    def idle_count(self) -> int:
        """Number of buffers waiting in the pool."""
        with self._lock:
            return len(self._free)


def load_body(buffer: io.BytesIO, body: bytes) -> bytes:
    """Reset ``buffer`` and fill it with a copy of ``body``.

    The returned payload is an independent ``bytes`` snapshot, since
    httpx only accepts ``bytes`` content and the buffer is rewritten on
    the next attempt. The pool guarantees each attempt starts from the
    original bytes; it does not avoid that final copy.

    :param buffer: Borrowed buffer
    :type buffer: io.BytesIO
    :param body: Original request body, never modified
    :type body: bytes
    :return: The payload to send for this attempt
    :rtype: bytes
    """
    buffer.seek(0)
    buffer.truncate(0)
    if body:
        buffer.write(body)
    return buffer.getvalue()


default_buffer_pool = BufferPool()
