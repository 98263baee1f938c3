"""Native backend availability latch.

The OpenCV-backed stages are preferred, but any failure in them disables the
backend for the rest of the process lifetime and every later call is served
by the numpy implementation. The state only ever moves from ready to
disabled.
"""

import enum
import logging
import threading


logger = logging.getLogger(__name__)


class BackendState(str, enum.Enum):
    """States of the native backend latch."""

    NATIVE_READY = "native_ready"
    NATIVE_DISABLED = "native_disabled"


def _probe_native() -> bool:
    """Return True if OpenCV imports and reports a version."""
    try:
        import cv2

        version = cv2.getVersionString()
    except Exception as e:
        logger.warning(f"Native image backend unavailable: {str(e)}")
        return False
    logger.debug(f"Native image backend OpenCV {version} ready")
    return True


class NativeBackend:
    """One-way ready/disabled latch guarding the native pipeline stages.

    Args:
        state: Initial state. When omitted the backend probes OpenCV on
            first use and starts ready only if the probe succeeds.
    """

    def __init__(self, state: BackendState | None = None):
        self._lock = threading.Lock()
        self._state = state
        self._reason = ""

    @property
    def state(self) -> BackendState:
        with self._lock:
            if self._state is None:
                self._state = (
                    BackendState.NATIVE_READY
                    if _probe_native()
                    else BackendState.NATIVE_DISABLED
                )
                if self._state is BackendState.NATIVE_DISABLED:
                    self._reason = "initialization failed"
            return self._state

    @property
    def is_ready(self) -> bool:
        return self.state is BackendState.NATIVE_READY

    @property
    def reason(self) -> str:
        """Why the backend was disabled, or an empty string."""
        return self._reason

    def disable(self, reason: str = "") -> None:
        """Permanently switch to the fallback implementation."""
        with self._lock:
            if self._state is BackendState.NATIVE_DISABLED:
                return
            self._state = BackendState.NATIVE_DISABLED
            self._reason = reason
        logger.warning(f"Native image backend disabled: {reason}")


_default_backend: NativeBackend | None = None
_default_lock = threading.Lock()


def get_default_backend() -> NativeBackend:
    """Return the process-wide backend shared by processors built without one."""
    global _default_backend
    with _default_lock:
        if _default_backend is None:
            _default_backend = NativeBackend()
        return _default_backend
