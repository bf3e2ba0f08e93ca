"""Output capture — per-thread stdout/stderr capture for in-process calls.

While a capture is active, ``sys.stdout`` and ``sys.stderr`` are replaced by
routing proxies.  A write from a thread that is currently capturing lands in
that thread's buffer; writes from every other thread pass through to the
stream that was installed before capture started.  This keeps parallel
trials from seeing each other's text, which ``contextlib.redirect_stdout``
alone cannot do because it swaps a process-wide global.

Usage::

    capturer = OutputCapturer()
    with capturer.capture() as captured:
        print("hello")
    captured.stdout   # "hello\\n"

Pure Python. No third-party dependency.
"""

import io
import logging
import sys
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional, TextIO

logger = logging.getLogger(__name__)


# ── Data Classes ──


@dataclass
class CapturedOutput:
    """Text collected during one capture.

    Only final once the ``capture()`` block has exited.

    Attributes:
        stdout: Text written to ``sys.stdout``, in emission order.
        stderr: Text written to ``sys.stderr``, in emission order.
    """

    stdout: str = ""
    stderr: str = ""


# ── Routing Stream ──


class _RoutingStream(io.TextIOBase):
    """Text stream that routes writes to the active per-thread buffer."""

    def __init__(self, original: TextIO, local: threading.local, attr: str):
        super().__init__()
        self._original = original
        self._local = local
        self._attr = attr

    @property
    def original(self) -> TextIO:
        return self._original

    def _target(self) -> TextIO:
        stack = getattr(self._local, self._attr, None)
        if stack:
            return stack[-1]
        return self._original

    def write(self, text: str) -> int:
        return self._target().write(text)

    def writelines(self, lines) -> None:
        target = self._target()
        for line in lines:
            target.write(line)

    def flush(self) -> None:
        target = self._target()
        if not getattr(target, "closed", False):
            target.flush()

    def writable(self) -> bool:
        return True

    def isatty(self) -> bool:
        return False

    @property
    def encoding(self) -> Optional[str]:
        return getattr(self._original, "encoding", "utf-8")

    def fileno(self) -> int:
        return self._original.fileno()


# ── Capturer ──


class OutputCapturer:
    """Captures stdout/stderr written by the current thread.

    Proxies are installed on the first active capture and removed when the
    last one exits.  Captures nest: an inner capture collects only what is
    written while it is active, then the outer capture resumes.
    """

    # Process-wide install state shared by every capturer instance
    _install_lock = threading.Lock()
    _active_count = 0
    _stdout_proxy: Optional[_RoutingStream] = None
    _stderr_proxy: Optional[_RoutingStream] = None
    _local = threading.local()

    @contextmanager
    def capture(self) -> Iterator[CapturedOutput]:
        """Capture everything this thread writes inside the block."""
        result = CapturedOutput()
        out_buf = io.StringIO()
        err_buf = io.StringIO()

        self._install()
        out_stack = self._stack("stdout")
        err_stack = self._stack("stderr")
        out_stack.append(out_buf)
        err_stack.append(err_buf)
        try:
            yield result
        finally:
            out_stack.pop()
            err_stack.pop()
            result.stdout = out_buf.getvalue()
            result.stderr = err_buf.getvalue()
            self._uninstall()

    @classmethod
    def _stack(cls, attr: str) -> list:
        stack = getattr(cls._local, attr, None)
        if stack is None:
            stack = []
            setattr(cls._local, attr, stack)
        return stack

    @classmethod
    def _install(cls) -> None:
        with cls._install_lock:
            if cls._active_count == 0:
                cls._stdout_proxy = _RoutingStream(sys.stdout, cls._local, "stdout")
                cls._stderr_proxy = _RoutingStream(sys.stderr, cls._local, "stderr")
                sys.stdout = cls._stdout_proxy
                sys.stderr = cls._stderr_proxy
                logger.debug("Installed output routing proxies")
            cls._active_count += 1

    @classmethod
    def _uninstall(cls) -> None:
        with cls._install_lock:
            cls._active_count -= 1
            if cls._active_count > 0:
                return
            # Someone else may have swapped the streams while we were active
            if sys.stdout is cls._stdout_proxy:
                sys.stdout = cls._stdout_proxy.original
            if sys.stderr is cls._stderr_proxy:
                sys.stderr = cls._stderr_proxy.original
            cls._stdout_proxy = None
            cls._stderr_proxy = None
            logger.debug("Removed output routing proxies")
