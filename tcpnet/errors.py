"""
Errors and Results - How every operation reports its outcome.

Non-blocking sockets fail in two very different ways:

Transient:
- The operation would have blocked (EWOULDBLOCK/EAGAIN) or is still running
  (EINPROGRESS). Nothing happened; the caller simply polls again later.

Fatal:
- Everything else: resets, broken pipes, hang-ups, bad descriptors. The
  affected socket is torn down.

Each operation returns an IOResult describing its own outcome, so nothing is
lost when the next call fails. An ErrorState slot per endpoint additionally
remembers the most recent failure for diagnostics.
"""

import errno
import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional


logger = logging.getLogger(__name__)


class ErrorKind(Enum):
    """Classification of a failed (or not yet completed) operation."""

    # Would block / in progress - retry on the next poll
    TRANSIENT = auto()

    # Peer went away: zero-length read, reset, broken pipe, hang-up
    DISCONNECTED = auto()

    # Any other syscall failure
    FATAL = auto()

    # Caller passed something unusable (zero-size read, bad address)
    USAGE = auto()

    # The OS returned something impossible
    PROTOCOL = auto()

    # send() accepted fewer bytes than requested
    PARTIAL_WRITE = auto()

    # No socket to operate on
    NOT_CONNECTED = auto()

    def tears_down(self) -> bool:
        """Check if an error of this kind releases the affected socket."""
        return self in (ErrorKind.DISCONNECTED, ErrorKind.FATAL)


TRANSIENT_ERRNOS = frozenset({
    errno.EWOULDBLOCK,
    errno.EAGAIN,
    errno.EINPROGRESS,
    errno.EALREADY,
    errno.EINTR,
})

DISCONNECT_ERRNOS = frozenset({
    errno.ECONNRESET,
    errno.EPIPE,
    errno.ECONNABORTED,
    errno.ENOTCONN,
})


def classify_errno(code: Optional[int]) -> ErrorKind:
    """Map an errno value to an ErrorKind."""
    if code in TRANSIENT_ERRNOS:
        return ErrorKind.TRANSIENT
    if code in DISCONNECT_ERRNOS:
        return ErrorKind.DISCONNECTED
    return ErrorKind.FATAL


@dataclass(frozen=True)
class NetError:
    """A single failure with a human-readable message."""
    kind: ErrorKind
    message: str
    errno: Optional[int] = None

    @classmethod
    def from_os_error(cls, exc: OSError, message: str) -> "NetError":
        """Build an error from an OSError, keeping its errno and strerror."""
        detail = exc.strerror or str(exc)
        return cls(
            kind=classify_errno(exc.errno),
            message=f"{message} {detail}".strip(),
            errno=exc.errno,
        )

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class IOResult:
    """
    Outcome of one operation.

    ok:      the operation did not fail (truthiness follows this)
    data:    bytes received, for reads
    count:   bytes transferred
    pending: a transient condition stopped the call; nothing was done
    error:   what went wrong when ok is False
    """
    ok: bool
    data: bytes = b""
    count: int = 0
    pending: bool = False
    error: Optional[NetError] = None

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def success(cls, data: bytes = b"", count: Optional[int] = None) -> "IOResult":
        return cls(ok=True, data=data, count=len(data) if count is None else count)

    @classmethod
    def would_block(cls) -> "IOResult":
        return cls(ok=True, pending=True)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str,
                err_no: Optional[int] = None, count: int = 0) -> "IOResult":
        return cls(ok=False, count=count, error=NetError(kind, message, err_no))

    @classmethod
    def from_os_error(cls, exc: OSError, message: str) -> "IOResult":
        """Failure result for an OSError, or a pending one if it was transient."""
        error = NetError.from_os_error(exc, message)
        if error.kind is ErrorKind.TRANSIENT:
            return cls.would_block()
        return cls(ok=False, error=error)


class ErrorState:
    """
    Last-error slot of an endpoint.

    Failing operations overwrite it, successful ones leave it alone. It is a
    diagnostic only; callers detect failure from the returned IOResult.
    """

    def __init__(self, owner: str = ""):
        self._owner = owner
        self._last: Optional[NetError] = None

    @property
    def last(self) -> Optional[NetError]:
        return self._last

    @property
    def message(self) -> str:
        """Last recorded message, empty if nothing failed yet."""
        if self._last is None:
            return ""
        if self._owner:
            return f"{self._owner} error: {self._last.message}"
        return self._last.message

    def record(self, error: NetError) -> NetError:
        self._last = error
        # Polling loops hit "not connected" every idle iteration
        if error.kind is ErrorKind.NOT_CONNECTED:
            logger.debug(self.message)
        else:
            logger.warning(self.message)
        return error

    def record_result(self, result: IOResult) -> IOResult:
        """Record the error of a failed result, pass it through unchanged."""
        if not result.ok and result.error is not None:
            self.record(result.error)
        return result

    def __str__(self) -> str:
        return self.message
