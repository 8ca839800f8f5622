"""
Service that imports card-resident messages into the mirror
"""
import time
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from iccmirror.core.hardware import HardwareGateway, HardwareMessage
from iccmirror.core.logging_config import LoggingConfig
from iccmirror.core.metrics import (icc_imported_messages_total,
                                    icc_skipped_messages_total)
from iccmirror.core.notifications import NotificationHub
from iccmirror.core.slot_cache import SlotCacheState
from iccmirror.models.icc_message import (IccMessage, IccSlot, IccStatus,
                                          Mailbox, mailbox_for_status)

logger = LoggingConfig.get_logger(__name__)


def wall_clock_millis() -> int:
    return int(time.time() * 1000)


class IccImportService:
    """Lazily mirrors a slot's card contents, once per process unless the card is empty"""

    def __init__(
        self,
        db: Session,
        gateway: HardwareGateway,
        cache: SlotCacheState,
        hub: NotificationHub,
        clock: Callable[[], int] = wall_clock_millis,
    ):
        self.db = db
        self.gateway = gateway
        self.cache = cache
        self.hub = hub
        self.clock = clock

    def import_slot(self, slot: IccSlot) -> int:
        """
        Import ``slot`` if it has not been imported yet

        Returns:
            Number of mirror rows written (0 when nothing was enumerated)
        """
        if not self.cache.should_import(slot):
            return 0

        try:
            messages = self.gateway.enumerate(slot)
            if messages is None:
                logger.warning(
                    f"Enumeration of slot {slot.value} failed, serving existing mirror rows",
                    extra={"slot": slot.value},
                )
                return 0
            if not messages:
                logger.info(f"Slot {slot.value} is empty, will enumerate again on next read")
                return 0

            rows = self._build_rows(slot, messages)
            self._replace_slot_rows(slot, rows)
            self.cache.mark_imported(slot)
            icc_imported_messages_total.labels(slot=slot.value).inc(len(rows))
            logger.info(
                f"Imported {len(rows)} of {len(messages)} messages from slot {slot.value}",
                extra={"slot": slot.value, "imported": len(rows), "enumerated": len(messages)},
            )
            return len(rows)
        finally:
            self.hub.notify(slot.channel)

    def _build_rows(self, slot: IccSlot, messages: List[HardwareMessage]) -> List[IccMessage]:
        rows = []
        seen = set()
        for message in messages:
            row = self.to_row(slot, message)
            if row is None:
                continue
            if message.index_on_icc in seen:
                logger.warning(f"Slot {slot.value} reported index {message.index_on_icc} twice, keeping the first")
                continue
            seen.add(message.index_on_icc)
            rows.append(row)
        return rows

    def to_row(self, slot: IccSlot, message: HardwareMessage) -> Optional[IccMessage]:
        """Mirror row for an enumerated message, or None if its status is not recognized"""
        try:
            status = IccStatus(message.status)
        except ValueError:
            icc_skipped_messages_total.labels(slot=slot.value).inc()
            logger.error(
                f"Skipping message at index {message.index_on_icc} on slot {slot.value}: "
                f"unrecognized status {message.status}",
                extra={"slot": slot.value, "index_on_icc": message.index_on_icc, "status": message.status},
            )
            return None
        if message.index_on_icc < 0:
            logger.warning(f"Skipping message with negative index on slot {slot.value}")
            return None

        mailbox = mailbox_for_status(status)
        if mailbox == Mailbox.INBOX:
            address = message.originating_address
        else:
            address = message.recipient_address

        return IccMessage(
            service_center_address=message.service_center_address,
            address=address,
            message_class=message.message_class,
            body=message.body,
            date=message.timestamp_millis or self.clock(),
            status=int(status),
            read=0 if status == IccStatus.UNREAD else 1,
            is_status_report=1 if message.is_status_report else 0,
            transport_type="sms",
            type=int(mailbox),
            locked=0,
            error_code=0,
            sub_id=slot.sub_id,
            index_on_icc=message.index_on_icc,
            status_on_icc=int(status),
        )

    def _replace_slot_rows(self, slot: IccSlot, rows: List[IccMessage]) -> None:
        try:
            self.db.query(IccMessage).filter(IccMessage.sub_id == slot.sub_id).delete(
                synchronize_session=False
            )
            self.db.add_all(rows)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
