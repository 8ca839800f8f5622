"""
SQLAlchemy model for the ICC message mirror and the enumerations it is keyed on
"""
from enum import Enum, IntEnum

from sqlalchemy import BigInteger, Column, Index, Integer, String, Text

from iccmirror.core.database import Base

CONTENT_AUTHORITY = "content://sms"


class IccSlot(str, Enum):
    """Hardware slot; the value is the store's path segment"""
    NONE = "icc"  # Single-card device, no subscription selected
    A = "icc1"  # Dual-card device, slot one
    B = "icc2"  # Dual-card device, slot two

    @property
    def sub_id(self) -> int:
        """Subscription id persisted in iccsms.sub_id"""
        return {IccSlot.NONE: -1, IccSlot.A: 0, IccSlot.B: 1}[self]

    @property
    def channel(self) -> str:
        """Notification channel for this slot's query results"""
        return f"{CONTENT_AUTHORITY}/{self.value}"


class IccStatus(IntEnum):
    """Record status on the ICC (TS 51.011 10.5.3)"""
    FREE = 0
    READ = 1
    UNREAD = 3
    SENT = 5
    UNSENT = 7


class Mailbox(IntEnum):
    """Mailbox classification stored in iccsms.type"""
    ALL = 0
    INBOX = 1
    SENT = 2
    DRAFT = 3
    OUTBOX = 4


def mailbox_for_status(status: IccStatus) -> Mailbox:
    """Map a hardware status to its mailbox"""
    mapping = {
        IccStatus.READ: Mailbox.INBOX,
        IccStatus.UNREAD: Mailbox.INBOX,
        IccStatus.SENT: Mailbox.SENT,
        IccStatus.UNSENT: Mailbox.DRAFT,
        IccStatus.FREE: Mailbox.DRAFT,
    }
    return mapping[IccStatus(status)]


class IccMessage(Base):
    """
    A message resident on an ICC slot, mirrored locally
    """
    __tablename__ = "iccsms"

    id = Column("_id", Integer, primary_key=True, autoincrement=True)

    service_center_address = Column(String(64), nullable=True)
    address = Column(String(64), nullable=True)
    message_class = Column(String(32), nullable=True)
    body = Column(Text, nullable=True)
    date = Column(BigInteger, nullable=False)  # epoch millis
    status = Column(Integer, nullable=False, default=int(IccStatus.FREE))
    read = Column(Integer, nullable=False, default=1)
    is_status_report = Column(Integer, nullable=False, default=0)
    transport_type = Column(String(8), nullable=False, default="sms")
    type = Column(Integer, nullable=False, default=int(Mailbox.ALL))
    locked = Column(Integer, nullable=False, default=0)
    error_code = Column(Integer, nullable=False, default=0)

    # Hardware placement
    sub_id = Column(Integer, nullable=False, default=-1, index=True)
    index_on_icc = Column(Integer, nullable=True)  # NULL only for rows never written to the card
    status_on_icc = Column(Integer, nullable=True)

    __table_args__ = (
        Index("idx_iccsms_slot_index", "sub_id", "index_on_icc"),
    )

    @property
    def mailbox(self) -> Mailbox:
        return Mailbox(self.type)

    def to_dict(self) -> dict:
        """Column values keyed by the persisted column names"""
        return {
            "_id": self.id,
            "service_center_address": self.service_center_address,
            "address": self.address,
            "message_class": self.message_class,
            "body": self.body,
            "date": self.date,
            "status": self.status,
            "read": self.read,
            "is_status_report": self.is_status_report,
            "transport_type": self.transport_type,
            "type": self.type,
            "locked": self.locked,
            "error_code": self.error_code,
            "sub_id": self.sub_id,
            "index_on_icc": self.index_on_icc,
            "status_on_icc": self.status_on_icc,
        }

    def __repr__(self):
        return (
            f"<IccMessage(id={self.id}, sub_id={self.sub_id}, "
            f"index_on_icc={self.index_on_icc}, type={self.type})>"
        )
