"""Python logging formatter adapter for ldapmetrics.

The scraper attaches context (filter, attr, value, base_dn, addr, ...)
through ``extra=``. This formatter renders those fields next to the
message, either as logfmt-style ``key=value`` pairs or as one JSON object
per line.
"""

import json
import logging
import sys
import traceback
from typing import Any

# Standard LogRecord attributes that should not be treated as extra fields
_STANDARD_LOGRECORD_ATTRS = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
    }
)


def _logfmt_value(value: Any) -> str:
    text = str(value)
    if not text or any(ch in text for ch in ' ="'):
        return json.dumps(text)
    return text


def record_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Collect the extra fields attached to a log record.

    Args:
        record: The log record to inspect.

    Returns:
        Mapping of every non-standard attribute with a scalar value,
        plus exception details when exc_info is set.
    """
    fields: dict[str, Any] = {
        key: value
        for key, value in record.__dict__.items()
        if key not in _STANDARD_LOGRECORD_ATTRS
        and isinstance(value, (str, int, float, bool))
    }
    if record.exc_info:
        exc_type, exc_value, exc_tb = record.exc_info
        if exc_type is not None:
            fields["exc_type"] = exc_type.__name__
        if exc_value is not None:
            fields["exc_message"] = str(exc_value)
        if exc_tb is not None:
            fields["exc_traceback"] = "".join(
                traceback.format_exception(exc_type, exc_value, exc_tb)
            )
    return fields


class StructuredFormatter(logging.Formatter):
    """Formatter rendering a record's message together with its extra fields.

    Example:
        ```python
        handler = logging.StreamHandler()
        handler.setFormatter(StructuredFormatter())
        logging.getLogger().addHandler(handler)
        ```
    """

    def __init__(self, json_output: bool = False) -> None:
        """Initialize the formatter.

        Args:
            json_output: Render one JSON object per line instead of
                logfmt-style key=value pairs.
        """
        super().__init__()
        self._json_output = json_output

    def format(self, record: logging.LogRecord) -> str:
        fields = record_fields(record)
        timestamp = self.formatTime(record, "%Y-%m-%dT%H:%M:%S%z")
        if self._json_output:
            return json.dumps(
                {
                    "time": timestamp,
                    "level": record.levelname.lower(),
                    "logger": record.name,
                    "msg": record.getMessage(),
                    **fields,
                },
                default=str,
            )
        traceback_text = fields.pop("exc_traceback", None)
        parts = [
            f"time={timestamp}",
            f"level={record.levelname.lower()}",
            f"msg={_logfmt_value(record.getMessage())}",
        ]
        parts.extend(f"{key}={_logfmt_value(value)}" for key, value in fields.items())
        line = " ".join(parts)
        if traceback_text:
            line = f"{line}\n{traceback_text.rstrip()}"
        return line


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Install a StructuredFormatter handler on the root logger.

    Replaces handlers previously installed by this function, so calling
    it twice does not duplicate output.
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler.formatter, StructuredFormatter):
            root.removeHandler(handler)
    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setFormatter(StructuredFormatter(json_output=json_output))
    root.addHandler(handler)
    root.setLevel(level.upper())
