"""C-compatible function-pointer table for a ``PluginModule``.

Hosts written in C (or anything speaking the C ABI) receive plain function
pointers::

    char *routes(void);
    char *<handler>(const char *headers, const char *body);
    void  free(char *ptr);

``headers`` is an HTTP/1.1 style header block, one ``Name: value`` per line
(CRLF or LF). Passing NULL for ``headers`` or ``body`` returns NULL.

Every non-NULL pointer returned is a NUL-terminated buffer owned by the
caller until it is passed to ``free``. ``free(NULL)`` is a no-op. Calling
``free`` twice with the same pointer, or with a pointer this table did not
return, is a caller error: it is logged and ignored, since no exception can
cross the C boundary.

The ``CExports`` object owns the ctypes callbacks and the live buffers; keep
it referenced for as long as the host may call into it.

Each handler pointer drives its coroutine to completion with ``asyncio.run``,
so it must be called from a thread with no running event loop. Called from
inside one it returns NULL, indistinguishable from the missing-input case,
and logs the ``RuntimeError``. Hosts that own a loop call through a worker
thread (``loop.run_in_executor``) or use ``PluginModule.acall`` directly.
"""

from __future__ import annotations

import ctypes
import re
import threading

import httpx

from .buffers import ResponseHandle
from .core.exceptions import BufferReleaseError
from .core.logging import get_logger
from .module import PluginModule

logger = get_logger(__name__)

ROUTES_FUNC = ctypes.CFUNCTYPE(ctypes.c_void_p)
HANDLER_FUNC = ctypes.CFUNCTYPE(ctypes.c_void_p, ctypes.c_char_p, ctypes.c_char_p)
FREE_FUNC = ctypes.CFUNCTYPE(None, ctypes.c_void_p)

RESERVED_SYMBOLS = frozenset({"routes", "free"})

_LINE_BREAK = re.compile(r"\r?\n")


def parse_header_block(raw: bytes) -> httpx.Headers:
    """Parse a ``Name: value`` header block. Malformed lines are skipped."""
    pairs: list[tuple[str, str]] = []
    for line in _LINE_BREAK.split(raw.decode("utf-8", errors="replace")):
        name, sep, value = line.partition(":")
        if not sep or not name.strip():
            continue
        pairs.append((name.strip(), value.strip()))
    return httpx.Headers(pairs, encoding="utf-8")


class CExports:
    """Exported symbol table for one plugin module."""

    def __init__(self, module: PluginModule) -> None:
        clashes = RESERVED_SYMBOLS.intersection(module.handler_names)
        if clashes:
            raise ValueError(f"Handler names clash with reserved symbols: {sorted(clashes)}")
        self._module = module
        self._lock = threading.Lock()
        # address -> (handle, ctypes buffer); the buffer must outlive the caller's use
        self._live: dict[int, tuple[ResponseHandle, ctypes.Array]] = {}
        self._symbols: dict[str, ctypes._CFuncPtr] = {
            "routes": ROUTES_FUNC(self._routes),
            "free": FREE_FUNC(self._free),
        }
        for name in module.handler_names:
            self._symbols[name] = HANDLER_FUNC(self._make_handler(name))

    def __len__(self) -> int:
        with self._lock:
            return len(self._live)

    def symbols(self) -> list[str]:
        return list(self._symbols)

    def __getitem__(self, name: str) -> ctypes._CFuncPtr:
        return self._symbols[name]

    def address_of(self, name: str) -> int:
        """Raw function pointer value for ``name``, as a host would dlsym() it."""
        return ctypes.cast(self._symbols[name], ctypes.c_void_p).value or 0

    def _export(self, handle: ResponseHandle | None) -> int | None:
        if handle is None:
            return None
        buf = ctypes.create_string_buffer(handle.content)
        address = ctypes.addressof(buf)
        with self._lock:
            self._live[address] = (handle, buf)
        return address

    def _routes(self) -> int | None:
        try:
            return self._export(self._module.routes())
        except Exception:  # noqa: BLE001
            logger.exception("routes() failed", extra={"plugin": self._module.name})
            return None

    def _make_handler(self, name: str):
        def _handler(headers: bytes | None, body: bytes | None) -> int | None:
            if headers is None or body is None:
                return None
            try:
                handle = self._module.call(name, parse_header_block(headers), body)
                return self._export(handle)
            except Exception:  # noqa: BLE001
                logger.exception("Exported handler failed", extra={"plugin": self._module.name, "function": name})
                return None

        _handler.__name__ = name
        return _handler

    def _free(self, address: int | None) -> None:
        if not address:
            return
        with self._lock:
            entry = self._live.pop(address, None)
        if entry is None:
            logger.error(
                "free() called with a pointer this plugin does not own",
                extra={"plugin": self._module.name, "address": hex(address)},
            )
            return
        handle, _buf = entry
        try:
            self._module.free(handle)
        except BufferReleaseError as e:
            logger.error("free() failed: %s", e.message, extra={"plugin": self._module.name})
