"""Logging formatters for machine-scoped output."""

import logging


class MachineFormatter(logging.Formatter):
    """Logging formatter that prepends the machine correlation id.

    Records carry a ``machine_id`` attribute when they were emitted inside
    a driver operation (see ``MachineContextFilter``). Remote command output
    tagged with an ``extra={"stream": ...}`` is prefixed as well.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with machine and stream prefixes if present.

        Parameters
        ----------
        record : logging.LogRecord
            Log record to format

        Returns
        -------
        str
            Formatted log message
        """
        msg = super().format(record)

        stream = getattr(record, "stream", None)
        if stream in ("stdout", "stderr"):
            msg = f"[{stream}] {msg}"

        machine_id = getattr(record, "machine_id", None)
        if machine_id:
            msg = f"[{machine_id[:8]}] {msg}"

        return msg
