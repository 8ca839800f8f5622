"""
Coordinator for the ICC stores

Owns the slot cache flags, one lock per slot and the hardware gateway, and
dispatches each store operation to the import, write or delete service.
Every operation on a slot runs start to finish under that slot's lock, so
the flag check, capacity check, card write and mirror upsert of one request
never interleave with another request on the same slot.
"""
import threading
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional, Tuple

from sqlalchemy.orm import Session, sessionmaker

from iccmirror.core.config import get_settings
from iccmirror.core.database import get_session_local
from iccmirror.core.hardware import (HardwareGateway, SlotTopology,
                                     build_hardware)
from iccmirror.core.logging_config import LoggingConfig
from iccmirror.core.notifications import NotificationHub
from iccmirror.core.request_router import parse_index
from iccmirror.core.slot_cache import SlotCacheState
from iccmirror.models.icc_message import IccMessage, IccSlot
from iccmirror.services.icc_delete_service import IccDeleteService
from iccmirror.services.icc_import_service import (IccImportService,
                                                   wall_clock_millis)
from iccmirror.services.icc_write_service import (IccWriteService,
                                                  OutgoingMessage,
                                                  WriteOutcome)

logger = LoggingConfig.get_logger(__name__)

_LOCK_ORDER = list(IccSlot)


class IccMirrorService:
    """Store operations for every slot of one device"""

    def __init__(
        self,
        session_factory: sessionmaker,
        gateway: HardwareGateway,
        hub: Optional[NotificationHub] = None,
        cache: Optional[SlotCacheState] = None,
        clock: Callable[[], int] = wall_clock_millis,
    ):
        self.session_factory = session_factory
        self.gateway = gateway
        self.hub = hub or NotificationHub()
        self.cache = cache or SlotCacheState()
        self.clock = clock
        self._locks = {slot: threading.Lock() for slot in IccSlot}

    @property
    def topology(self) -> SlotTopology:
        return self.gateway.topology

    @contextmanager
    def _slot_scope(self, slot: IccSlot, allow_aggregate: bool = True) -> Iterator[Tuple[IccSlot, ...]]:
        """Hold the locks of every hardware slot ``slot`` covers"""
        if not allow_aggregate:
            self.topology.ensure_hardware_slot(slot)
        slots = self.topology.covered_slots(slot)
        locks = [self._locks[s] for s in sorted(slots, key=_LOCK_ORDER.index)]
        for lock in locks:
            lock.acquire()
        try:
            yield slots
        finally:
            for lock in reversed(locks):
                lock.release()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self.session_factory()
        try:
            yield db
        finally:
            db.close()

    def _importer(self, db: Session) -> IccImportService:
        return IccImportService(db, self.gateway, self.cache, self.hub, clock=self.clock)

    def list_messages(self, slot: IccSlot) -> List[IccMessage]:
        """Import lazily, then return the slot's mirror rows, newest first"""
        with self._slot_scope(slot) as slots:
            with self._session() as db:
                importer = self._importer(db)
                for hardware_slot in slots:
                    importer.import_slot(hardware_slot)
                query = db.query(IccMessage)
                if slot is not IccSlot.NONE:
                    query = query.filter(IccMessage.sub_id == slot.sub_id)
                return query.order_by(IccMessage.date.desc(), IccMessage.id.desc()).all()

    def get_message(self, slot: IccSlot, index: int) -> Optional[IccMessage]:
        """Mirror row stored at card index ``index``, or None"""
        with self._slot_scope(slot, allow_aggregate=False):
            with self._session() as db:
                self._importer(db).import_slot(slot)
                return (
                    db.query(IccMessage)
                    .filter(IccMessage.sub_id == slot.sub_id, IccMessage.index_on_icc == index)
                    .first()
                )

    def insert_message(self, slot: IccSlot, message: OutgoingMessage) -> WriteOutcome:
        with self._slot_scope(slot, allow_aggregate=False):
            with self._session() as db:
                return IccWriteService(db, self.gateway, self.cache, self.hub).write_to_hardware(slot, message)

    def delete_message(self, slot: IccSlot, index: int) -> bool:
        with self._slot_scope(slot, allow_aggregate=False):
            with self._session() as db:
                return IccDeleteService(db, self.gateway, self.hub).delete_from_hardware(slot, index)

    def delete_all(self, slot: IccSlot) -> int:
        """Clear mirror rows only; the card keeps its records"""
        with self._slot_scope(slot):
            with self._session() as db:
                return IccDeleteService(db, self.gateway, self.hub).clear_slot(slot)

    def resync(self, slot: IccSlot) -> int:
        """Forget the import flag and enumerate the card again"""
        with self._slot_scope(slot) as slots:
            with self._session() as db:
                importer = self._importer(db)
                imported = 0
                for hardware_slot in slots:
                    self.cache.invalidate(hardware_slot)
                    imported += importer.import_slot(hardware_slot)
                logger.info(
                    f"Resynced slot {slot.value}: {imported} rows imported",
                    extra={"slot": slot.value, "rows": imported},
                )
                return imported

    @staticmethod
    def parse_index(text: str) -> int:
        return parse_index(text)

    def shutdown(self) -> None:
        self.gateway.shutdown()


# Global service instance
_service: Optional[IccMirrorService] = None
_service_lock = threading.Lock()


def get_icc_service() -> IccMirrorService:
    """
    Get the process-wide IccMirrorService

    Returns:
        IccMirrorService singleton built from settings
    """
    global _service
    if _service is None:
        with _service_lock:
            if _service is None:
                settings = get_settings()
                gateway = HardwareGateway(
                    build_hardware(settings),
                    timeout_seconds=settings.hardware_timeout_seconds,
                    max_workers=settings.hardware_max_workers,
                )
                _service = IccMirrorService(get_session_local(), gateway)
    return _service


def shutdown_icc_service() -> None:
    global _service
    with _service_lock:
        if _service is not None:
            _service.shutdown()
            _service = None
