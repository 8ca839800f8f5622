"""
SQLAlchemy models
"""
from iccmirror.core.database import Base
from iccmirror.models.icc_message import (IccMessage, IccSlot,  # noqa: F401
                                          IccStatus, Mailbox,
                                          mailbox_for_status)

__all__ = [
    "Base",
    "IccMessage",
    "IccSlot",
    "IccStatus",
    "Mailbox",
    "mailbox_for_status",
]
