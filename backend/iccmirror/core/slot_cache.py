"""
Per-slot "already imported" flags
"""
import threading
from typing import Dict

from iccmirror.core.logging_config import LoggingConfig
from iccmirror.core.metrics import icc_slot_imported
from iccmirror.models.icc_message import IccSlot

logger = LoggingConfig.get_logger(__name__)


class SlotCacheState:
    """
    Tracks which slots have been mirrored in this process

    A flag only moves to imported after an enumeration that returned at least
    one message; it never moves back except through :meth:`invalidate`.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._imported: Dict[IccSlot, bool] = {slot: False for slot in IccSlot}
        for slot in IccSlot:
            icc_slot_imported.labels(slot=slot.value).set(0)

    def should_import(self, slot: IccSlot) -> bool:
        with self._lock:
            return not self._imported[slot]

    def is_imported(self, slot: IccSlot) -> bool:
        with self._lock:
            return self._imported[slot]

    def mark_imported(self, slot: IccSlot) -> None:
        with self._lock:
            self._imported[slot] = True
        icc_slot_imported.labels(slot=slot.value).set(1)
        logger.debug(f"Slot {slot.value} marked as imported")

    def invalidate(self, slot: IccSlot) -> None:
        """Force the next read of ``slot`` to enumerate the hardware again"""
        with self._lock:
            self._imported[slot] = False
        icc_slot_imported.labels(slot=slot.value).set(0)
        logger.info(f"Slot {slot.value} import flag invalidated")
