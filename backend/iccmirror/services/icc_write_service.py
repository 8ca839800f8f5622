"""
Service that writes outgoing messages onto the card and records them in the mirror
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy.orm import Session

from iccmirror.core.exceptions import InvalidArgumentError
from iccmirror.core.hardware import HardwareGateway
from iccmirror.core.logging_config import LoggingConfig
from iccmirror.core.metrics import icc_write_outcomes_total
from iccmirror.core.notifications import NotificationHub
from iccmirror.core.pdu_codec import encode_outgoing
from iccmirror.core.slot_cache import SlotCacheState
from iccmirror.models.icc_message import (IccMessage, IccSlot, IccStatus,
                                          Mailbox, mailbox_for_status)

logger = LoggingConfig.get_logger(__name__)

# Result URIs reported to legacy callers
SIM_WRITTEN_URI = "content://sms/sim"
SIM_FULL_SUCCESS_URI = "content://sms/sim/full/success"
SIM_FULL_FAILURE_URI = "content://sms/sim/full/failure"


@dataclass
class OutgoingMessage:
    """A locally composed message to be stored on the card"""
    address: str
    body: str
    date: int  # epoch millis
    type: Mailbox = Mailbox.DRAFT
    read: bool = True
    service_center: Optional[str] = None


class WriteStatus(str, Enum):
    WRITTEN = "written"
    WRITTEN_LAST_SLOT = "written_last_slot"  # this write filled the card
    SLOT_FULL = "slot_full"  # card already full, nothing written
    REJECTED = "rejected"


@dataclass
class WriteOutcome:
    status: WriteStatus
    index_on_icc: Optional[int] = None
    row_id: Optional[int] = None
    remaining: Optional[int] = None
    reason: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status in (WriteStatus.WRITTEN, WriteStatus.WRITTEN_LAST_SLOT)

    @property
    def uri(self) -> Optional[str]:
        return {
            WriteStatus.WRITTEN: SIM_WRITTEN_URI,
            WriteStatus.WRITTEN_LAST_SLOT: SIM_FULL_SUCCESS_URI,
            WriteStatus.SLOT_FULL: SIM_FULL_FAILURE_URI,
        }.get(self.status)


def pdu_timestamp(message: OutgoingMessage) -> Optional[datetime]:
    """
    Service-center timestamp a message is encoded with, None for drafts

    Raises:
        InvalidArgumentError: If the date is not a representable point in time
    """
    if message.type not in (Mailbox.INBOX, Mailbox.SENT):
        return None
    try:
        return datetime.fromtimestamp(message.date / 1000)
    except (ValueError, OverflowError, OSError):
        raise InvalidArgumentError(f"Message date out of range: {message.date}")


def status_for(message: OutgoingMessage) -> IccStatus:
    """Card status a message is stored with"""
    if message.type == Mailbox.INBOX:
        return IccStatus.READ if message.read else IccStatus.UNREAD
    if message.type == Mailbox.SENT:
        return IccStatus.SENT
    return IccStatus.UNSENT


class IccWriteService:
    """Capacity-checked writes to one slot of the card"""

    def __init__(
        self,
        db: Session,
        gateway: HardwareGateway,
        cache: SlotCacheState,
        hub: NotificationHub,
    ):
        self.db = db
        self.gateway = gateway
        self.cache = cache
        self.hub = hub

    def count_slot_rows(self, slot: IccSlot) -> int:
        return self.db.query(IccMessage).filter(IccMessage.sub_id == slot.sub_id).count()

    def write_to_hardware(self, slot: IccSlot, message: OutgoingMessage) -> WriteOutcome:
        """
        Store ``message`` on the card and mirror it

        The caller must hold the slot's lock: the count, capacity check,
        card write and mirror upsert form one unit.
        """
        timestamp = pdu_timestamp(message)
        try:
            outcome = self._write(slot, message, timestamp)
        finally:
            self.hub.notify(slot.channel)

        icc_write_outcomes_total.labels(slot=slot.value, outcome=outcome.status.value).inc()
        log = logger.warning if outcome.status == WriteStatus.REJECTED else logger.info
        log(
            f"Write to slot {slot.value}: {outcome.status.value}"
            + (f" ({outcome.reason})" if outcome.reason else ""),
            extra={
                "slot": slot.value,
                "outcome": outcome.status.value,
                "index_on_icc": outcome.index_on_icc,
                "remaining": outcome.remaining,
            },
        )
        return outcome

    def _write(self, slot: IccSlot, message: OutgoingMessage, timestamp: Optional[datetime]) -> WriteOutcome:
        if not self.cache.is_imported(slot):
            return WriteOutcome(WriteStatus.REJECTED, reason="slot has not been imported")

        count = self.count_slot_rows(slot)
        # No mirror transaction stays open across card I/O
        self.db.rollback()

        capacity = self.gateway.capacity(slot)
        if capacity <= 0:
            return WriteOutcome(WriteStatus.REJECTED, reason="card capacity unavailable")
        if count >= capacity:
            return WriteOutcome(WriteStatus.SLOT_FULL, remaining=0)

        status = status_for(message)
        encoded = encode_outgoing(
            message.type,
            message.address,
            message.body,
            timestamp=timestamp,
            service_center=message.service_center,
        )
        if encoded is None:
            return WriteOutcome(WriteStatus.REJECTED, reason="message cannot be encoded as a single PDU")

        index = self.gateway.write_raw(slot, encoded.to_raw(), status)
        if index < 0:
            return WriteOutcome(WriteStatus.REJECTED, reason="card write failed")

        row = self._upsert(slot, index, message, status)
        after = self.count_slot_rows(slot)
        self.db.commit()
        remaining = max(capacity - after, 0)
        return WriteOutcome(
            WriteStatus.WRITTEN_LAST_SLOT if after >= capacity else WriteStatus.WRITTEN,
            index_on_icc=index,
            row_id=row.id,
            remaining=remaining,
        )

    def _upsert(self, slot: IccSlot, index: int, message: OutgoingMessage, status: IccStatus) -> IccMessage:
        try:
            row = (
                self.db.query(IccMessage)
                .filter(IccMessage.sub_id == slot.sub_id, IccMessage.index_on_icc == index)
                .first()
            )
            if row is None:
                row = IccMessage(sub_id=slot.sub_id, index_on_icc=index)
                self.db.add(row)
            else:
                logger.debug(f"Replacing mirror row {row.id} at index {index} on slot {slot.value}")

            row.service_center_address = message.service_center
            row.address = message.address
            row.message_class = "UNKNOWN"
            row.body = message.body
            row.date = message.date
            row.status = int(status)
            row.read = 1 if message.read else 0
            row.is_status_report = 0
            row.transport_type = "sms"
            row.type = int(mailbox_for_status(status))
            row.locked = 0
            row.error_code = 0
            row.status_on_icc = int(status)
            self.db.flush()
            return row
        except Exception:
            self.db.rollback()
            raise
