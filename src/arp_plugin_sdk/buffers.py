"""Owned response buffers and the arena that tracks them.

Every response a plugin hands to its host is a NUL-terminated byte buffer
registered in the module's ``BufferArena``. The caller owns it from the
moment it is returned and must release it exactly once:

- ``handle.release()`` (or ``module.free(handle)``) releases it;
- leaving a ``with handle:`` block releases it;
- a handle that is garbage collected without being released is released by
  its finalizer.

Releasing a handle twice raises ``BufferAlreadyReleasedError``; passing a
handle from another arena raises ``ForeignBufferError``.
"""

from __future__ import annotations

import itertools
import threading
import weakref

from .core.exceptions import BufferAlreadyReleasedError, ForeignBufferError

NUL = b"\x00"


class ResponseHandle:
    """Caller-owned reference to one response buffer."""

    __slots__ = ("__weakref__", "_arena", "_finalizer", "_id", "_media_type")

    def __init__(self, arena: BufferArena, handle_id: int, media_type: str | None = None) -> None:
        self._arena = arena
        self._id = handle_id
        self._media_type = media_type
        self._finalizer = weakref.finalize(self, arena._discard, handle_id)

    def __repr__(self) -> str:
        state = "released" if self.released else "live"
        return f"ResponseHandle(id={self._id}, {state})"

    def __enter__(self) -> ResponseHandle:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if not self.released:
            self.release()

    @property
    def id(self) -> int:
        return self._id

    @property
    def media_type(self) -> str | None:
        return self._media_type

    @property
    def released(self) -> bool:
        return not self._finalizer.alive

    @property
    def data(self) -> bytes:
        """The raw buffer, NUL terminator included."""
        if self.released:
            raise BufferAlreadyReleasedError(self._id)
        return self._arena._read(self._id)

    @property
    def content(self) -> bytes:
        """The buffer without its NUL terminator."""
        return self.data[:-1]

    def text(self) -> str:
        return self.content.decode("utf-8")

    def release(self) -> None:
        """Give the buffer back to the arena. Consumes the handle."""
        if self.released:
            raise BufferAlreadyReleasedError(self._id)
        self._finalizer()

    def belongs_to(self, arena: BufferArena) -> bool:
        return self._arena is arena


class BufferArena:
    """Registry of the live response buffers one plugin module has handed out.

    Thread-safe: hosts may call handlers and ``free`` from several threads.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._buffers: dict[int, bytes] = {}
        self._ids = itertools.count(1)

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffers)

    def live_ids(self) -> list[int]:
        with self._lock:
            return sorted(self._buffers)

    def adopt(self, payload: str | bytes, media_type: str | None = None) -> ResponseHandle:
        """Copy ``payload`` into a new NUL-terminated buffer and return its handle.

        Raises:
            ValueError: if the payload contains an interior NUL byte, which
                would silently truncate the buffer for C callers.
        """
        data = payload.encode("utf-8") if isinstance(payload, str) else bytes(payload)
        if NUL in data:
            raise ValueError("response contains an interior NUL byte")
        with self._lock:
            handle_id = next(self._ids)
            self._buffers[handle_id] = data + NUL
        return ResponseHandle(self, handle_id, media_type)

    def free(self, handle: ResponseHandle | None) -> None:
        """Release ``handle``. ``None`` is a no-op.

        Raises:
            ForeignBufferError: if ``handle`` was not issued by this arena.
            BufferAlreadyReleasedError: if ``handle`` was already released.
        """
        if handle is None:
            return
        if not isinstance(handle, ResponseHandle) or not handle.belongs_to(self):
            raise ForeignBufferError(getattr(handle, "id", handle))
        handle.release()

    def _read(self, handle_id: int) -> bytes:
        with self._lock:
            try:
                return self._buffers[handle_id]
            except KeyError:
                raise BufferAlreadyReleasedError(handle_id) from None

    def _discard(self, handle_id: int) -> None:
        with self._lock:
            self._buffers.pop(handle_id, None)
