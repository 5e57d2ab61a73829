"""Flow correlation id allocation and recognition."""

import re
import secrets
import string
import time
from typing import Any, Mapping, Optional

from pydantic import BaseModel

_ALPHABET = string.digits + string.ascii_lowercase
_SUFFIX_LEN = 7
_FLOW_ID_RE = re.compile(r"^flow-\d{10,}-[0-9a-z]{%d}$" % _SUFFIX_LEN)


class CorrelationRegistry:
    """
    Allocates flow ids of the form ``flow-<epoch-millis>-<7 base36 chars>``.

    Stateless apart from the clock: uniqueness is best-effort, not
    cryptographically guaranteed, which is enough to group one
    conversation's spans.
    """

    prefix = "flow"

    def new_id(self) -> str:
        millis = int(time.time() * 1000)
        suffix = "".join(secrets.choice(_ALPHABET) for _ in range(_SUFFIX_LEN))
        return f"{self.prefix}-{millis}-{suffix}"

    @staticmethod
    def is_flow_id(value: Any) -> bool:
        return isinstance(value, str) and bool(_FLOW_ID_RE.match(value))

    @staticmethod
    def extract(obj: Any) -> Optional[str]:
        """
        Find a correlation id on an envelope, a raw envelope dict, or
        an event wrapper ({"data": {...}} / {"event": {"data": {...}}}).
        """
        if obj is None:
            return None
        if isinstance(obj, BaseModel):
            value = getattr(obj, "correlation_id", None)
            return value if isinstance(value, str) and value else None
        if not isinstance(obj, Mapping):
            return None

        value = obj.get("correlation_id")
        if isinstance(value, str) and value:
            return value
        data = obj.get("data")
        if isinstance(data, Mapping):
            return CorrelationRegistry.extract(data)
        event = obj.get("event")
        if isinstance(event, Mapping):
            return CorrelationRegistry.extract(event)
        return None
