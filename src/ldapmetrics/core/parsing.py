"""Conversion of raw attribute strings into metric observations.

Two strategies are selected per query descriptor:

- set_value: plain numeric attributes, one point per entry DN.
- set_replication_value: replication tokens ("T#C#S#M"), up to three
  points per originating server id, published field by field.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Protocol

from ldapmetrics.core.errors import TokenParseError
from ldapmetrics.core.models import Entry, QueryDescriptor, ReplicationToken

logger = logging.getLogger(__name__)

TOKEN_SEPARATOR = "#"
TOKEN_FIELD_COUNT = 4

# 14 digits, optional fractional seconds, literal Z
_GENERALIZED_TIME = re.compile(r"^(\d{14})(?:\.(\d+))?Z$")
_GENERALIZED_TIME_FORMAT = "%Y%m%d%H%M%S"


class ObservationSink(Protocol):
    """The part of MetricSink the parsers write to."""

    def set(self, metric: str, labels: tuple[str, ...], value: float) -> None: ...


def parse_float(value: str) -> float | None:
    """Parse a numeric attribute value, returning None when it is not a number."""
    try:
        return float(value)
    except ValueError:
        return None


def parse_generalized_time(value: str) -> float:
    """Convert a generalized time string to epoch seconds.

    Fractional seconds are accepted but truncated, so the result is
    always a whole number of seconds.

    Raises:
        TokenParseError: If value is not in YYYYmmddHHMMSS[.ffffff]Z form.
    """
    match = _GENERALIZED_TIME.match(value)
    if match is None:
        raise TokenParseError("gt", value, "not a generalized time")
    try:
        moment = datetime.strptime(match.group(1), _GENERALIZED_TIME_FORMAT)
    except ValueError as exc:
        raise TokenParseError("gt", value, str(exc)) from exc
    return float(int(moment.replace(tzinfo=timezone.utc).timestamp()))


def _parse_number(field: str, value: str) -> float:
    number = parse_float(value)
    if number is None:
        raise TokenParseError(field, value, "not a number")
    return number


def split_token(value: str) -> list[str]:
    """Split a replication token into its four raw fields.

    Raises:
        TokenParseError: If the token does not have exactly four fields.
    """
    fields = value.split(TOKEN_SEPARATOR)
    if len(fields) != TOKEN_FIELD_COUNT:
        raise TokenParseError(
            "layout", value, f"expected {TOKEN_FIELD_COUNT} fields, got {len(fields)}"
        )
    return fields


def decode_replication_token(value: str) -> ReplicationToken:
    """Decode a complete replication token.

    Args:
        value: Raw token, e.g. "20211001120000.123456Z#000005#001#000002".

    Returns:
        ReplicationToken with every field decoded.

    Raises:
        TokenParseError: On the first field that fails to decode.
    """
    gt, count, sid, mod = split_token(value)
    return ReplicationToken(
        timestamp=parse_generalized_time(gt),
        count=_parse_number("count", count),
        sid=sid,
        mod=_parse_number("mod", mod),
    )


def decode_token_time(value: str) -> tuple[float, str]:
    """Decode only the timestamp and server id of a replication token."""
    fields = split_token(value)
    return parse_generalized_time(fields[0]), fields[2]


def set_value(
    entries: list[Entry], query: QueryDescriptor, sink: ObservationSink
) -> None:
    """Publish the numeric value of query.attribute for every entry."""
    for entry in entries:
        raw = entry.get(query.attribute)
        if not raw:
            # not every entry carries the attribute
            continue
        number = parse_float(raw)
        if number is None:
            # some monitor attributes are free text
            continue
        sink.set(query.metric, (entry.dn,), number)


def set_replication_value(
    entries: list[Entry], query: QueryDescriptor, sink: ObservationSink
) -> None:
    """Publish the decoded replication token fields of every entry.

    Fields are written as soon as they decode, so a bad count or mod
    still leaves the "gt" point of that server id in place. The decoded
    timestamp is cached on the descriptor for the primary delay check.
    """
    for entry in entries:
        raw = entry.get(query.attribute)
        if not raw:
            continue
        context = {"filter": query.search_filter, "attr": query.attribute, "value": raw}
        try:
            gt, count, sid, mod = split_token(raw)
            timestamp = parse_generalized_time(gt)
            query.cached_timestamp = timestamp
            sink.set(query.metric, (sid, "gt"), timestamp)
            sink.set(query.metric, (sid, "count"), _parse_number("count", count))
            sink.set(query.metric, (sid, "mod"), _parse_number("mod", mod))
        except TokenParseError as exc:
            logger.warning(
                "unexpected %s value", exc.field, extra={**context, "error": str(exc)}
            )
