"""Bridge stdlib logging to the host's log channels.

Serverless runtimes collect output through ``context.log`` and
``context.error`` rather than stdout. While an invocation runs, records
reaching the root logger are forwarded there: ``ERROR`` and above to
``error``, everything else to ``log``.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from wren._internal.types import LogFn


class HostLogHandler(logging.Handler):
    """A ``logging.Handler`` writing formatted records to host callables."""

    def __init__(
        self,
        log: LogFn,
        error: LogFn,
        level: int = logging.NOTSET,
    ) -> None:
        super().__init__(level)
        self._log = log
        self._error = error
        self.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
            if record.levelno >= logging.ERROR:
                self._error(message)
            else:
                self._log(message)
        except Exception:
            self.handleError(record)


@contextmanager
def forward_logging(
    log: LogFn,
    error: LogFn,
    *,
    enabled: bool = True,
) -> Iterator[HostLogHandler | None]:
    """Attach a ``HostLogHandler`` to the root logger for the block."""
    if not enabled:
        yield None
        return

    handler = HostLogHandler(log, error)
    root = logging.getLogger()
    root.addHandler(handler)
    try:
        yield handler
    finally:
        root.removeHandler(handler)
