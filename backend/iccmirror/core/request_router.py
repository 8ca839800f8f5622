"""
Request Router - maps store paths and methods onto ICC operations
"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from iccmirror.core.exceptions import (InvalidArgumentError,
                                       UnknownStoreError,
                                       UnsupportedOperationError)
from iccmirror.core.logging_config import LoggingConfig
from iccmirror.models.icc_message import CONTENT_AUTHORITY, IccSlot

logger = LoggingConfig.get_logger(__name__)

_STORE_SEGMENTS = {
    "icc": IccSlot.NONE,
    "sim": IccSlot.NONE,  # legacy alias
    "icc1": IccSlot.A,
    "sim1": IccSlot.A,
    "icc2": IccSlot.B,
    "sim2": IccSlot.B,
}

_INDEX_PATTERN = re.compile(r"^[+-]?\d+$")
RESYNC_SEGMENT = "resync"


class IccOperation(str, Enum):
    """Kind of request against an ICC store"""
    LIST_ALL = "list_all"
    GET_ONE = "get_one"
    INSERT = "insert"
    DELETE_ONE = "delete_one"
    DELETE_ALL = "delete_all"
    RESYNC = "resync"


@dataclass(frozen=True)
class IccRoute:
    operation: IccOperation
    slot: IccSlot
    index: Optional[int] = None


def resolve_store(segment: str) -> IccSlot:
    """Slot named by a store path segment, legacy ``sim`` aliases included"""
    slot = _STORE_SEGMENTS.get(segment.strip().lower()) if segment else None
    if slot is None:
        raise UnknownStoreError(segment)
    return slot


def parse_index(text: str) -> int:
    """
    Parse a message index from a path segment

    Raises:
        InvalidArgumentError: If the text is not a decimal integer
    """
    if text is None or not _INDEX_PATTERN.match(text.strip()):
        raise InvalidArgumentError(f"Bad SMS ICC ID: {text}")
    return int(text.strip())


def match(method: str, path: str) -> IccRoute:
    """
    Route ``method`` on ``path`` to an ICC operation

    ``path`` may be a full ``content://sms/...`` URI or the part after the
    authority, e.g. ``icc1/4``.
    """
    if path.startswith(CONTENT_AUTHORITY):
        path = path[len(CONTENT_AUTHORITY):]
    segments = [s for s in path.split("/") if s]
    if not segments or len(segments) > 2:
        raise UnknownStoreError(path)

    slot = resolve_store(segments[0])
    verb = method.upper()
    if verb == "POST" and segments[1:] == [RESYNC_SEGMENT]:
        return IccRoute(operation=IccOperation.RESYNC, slot=slot)
    index = parse_index(segments[1]) if len(segments) == 2 else None

    if verb == "GET":
        operation = IccOperation.LIST_ALL if index is None else IccOperation.GET_ONE
    elif verb == "DELETE":
        operation = IccOperation.DELETE_ALL if index is None else IccOperation.DELETE_ONE
    elif verb == "POST" and index is None:
        operation = IccOperation.INSERT
    else:
        raise UnsupportedOperationError(f"{verb} is not supported on {path}")

    logger.debug(
        f"Routed {verb} {path} to {operation.value}",
        extra={"slot": slot.value, "operation": operation.value, "index": index},
    )
    return IccRoute(operation=operation, slot=slot, index=index)
