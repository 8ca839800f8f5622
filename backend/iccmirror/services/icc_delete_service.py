"""
Service that keeps card and mirror consistent under deletion
"""
from sqlalchemy.orm import Session

from iccmirror.core.hardware import HardwareGateway
from iccmirror.core.logging_config import LoggingConfig
from iccmirror.core.notifications import NotificationHub
from iccmirror.models.icc_message import IccMessage, IccSlot

logger = LoggingConfig.get_logger(__name__)


class IccDeleteService:
    """Deletes card records and their mirror rows"""

    def __init__(self, db: Session, gateway: HardwareGateway, hub: NotificationHub):
        self.db = db
        self.gateway = gateway
        self.hub = hub

    def delete_from_hardware(self, slot: IccSlot, index: int) -> bool:
        """
        Delete the record at ``index`` from the card, then its mirror rows

        Returns:
            True if the card accepted the delete; the mirror is untouched otherwise
        """
        try:
            if not self.gateway.delete_by_index(slot, index):
                logger.warning(
                    f"Card refused delete of index {index} on slot {slot.value}",
                    extra={"slot": slot.value, "index_on_icc": index},
                )
                return False

            try:
                removed = (
                    self.db.query(IccMessage)
                    .filter(IccMessage.sub_id == slot.sub_id, IccMessage.index_on_icc == index)
                    .delete(synchronize_session=False)
                )
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

            logger.info(
                f"Deleted index {index} from slot {slot.value} ({removed} mirror rows)",
                extra={"slot": slot.value, "index_on_icc": index, "rows": removed},
            )
            return True
        finally:
            self.hub.notify(slot.channel)

    def clear_slot(self, slot: IccSlot) -> int:
        """Delete the slot's mirror rows (every row for the slot-less store), card untouched"""
        try:
            query = self.db.query(IccMessage)
            if slot is not IccSlot.NONE:
                query = query.filter(IccMessage.sub_id == slot.sub_id)
            try:
                removed = query.delete(synchronize_session=False)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise
            logger.info(
                f"Cleared {removed} mirror rows for slot {slot.value}",
                extra={"slot": slot.value, "rows": removed},
            )
            return removed
        finally:
            self.hub.notify(slot.channel)
