"""Interrupt handling for long-running batch commands."""

import signal
import sys
from datetime import datetime as dt

from rich.console import Console

from docport.core.progress import CancellationToken
from docport.utils.logging import get_logger

log = get_logger(__name__)


class SignalHandler:
    """Context manager that turns the first interrupt into a cancellation.

    The running batch finishes its current group and reports the rest as
    cancelled. A second interrupt exits immediately with status 130.
    """

    def __init__(
        self,
        console: Console,
        token: CancellationToken,
        context_info: dict | None = None,
    ):
        self.console = console
        self.token = token
        self.context_info = context_info or {}
        self.interrupted = False
        self._original_sigint = None
        self._original_sigterm = None

    def __enter__(self) -> "SignalHandler":
        self._original_sigint = signal.signal(signal.SIGINT, self._handler)
        if hasattr(signal, "SIGTERM"):
            self._original_sigterm = signal.signal(signal.SIGTERM, self._handler)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        signal.signal(signal.SIGINT, self._original_sigint)
        if self._original_sigterm is not None:
            signal.signal(signal.SIGTERM, self._original_sigterm)
        return False

    def _handler(self, signum: int, frame) -> None:  # noqa: ARG002
        if self.interrupted:
            sys.exit(130)

        self.interrupted = True
        sig_name = signal.Signals(signum).name

        log.warning(
            "Task Interrupted",
            signal=sig_name,
            interrupted_at=dt.now().isoformat(),
            **self.context_info,
        )
        self.console.print(
            f"\n[yellow]Interrupted by {sig_name}. Finishing current files, "
            "press Ctrl+C again to abort.[/yellow]"
        )
        self.token.cancel(f"interrupted by {sig_name}")
