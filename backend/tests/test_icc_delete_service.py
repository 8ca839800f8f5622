"""
Tests for IccDeleteService
"""
from iccmirror.models.icc_message import IccMessage, IccSlot
from iccmirror.services.icc_delete_service import IccDeleteService
from iccmirror.services.icc_import_service import IccImportService


def _indices(db, sub_id=-1):
    rows = db.query(IccMessage).filter(IccMessage.sub_id == sub_id).all()
    return sorted(row.index_on_icc for row in rows)


def test_delete_removes_card_record_and_mirror_row(db, card, gateway, cache, hub, hw_message, notifications):
    card.seed(IccSlot.NONE, [hw_message(1), hw_message(2)])
    IccImportService(db, gateway, cache, hub).import_slot(IccSlot.NONE)
    notifications.clear()

    assert IccDeleteService(db, gateway, hub).delete_from_hardware(IccSlot.NONE, 1) is True

    assert _indices(db) == [2]
    assert [m.index_on_icc for m in card.records(IccSlot.NONE)] == [2]
    assert notifications.count("content://sms/icc") == 1


def test_failed_delete_leaves_mirror(db, card, gateway, hub, notifications):
    db.add(IccMessage(sub_id=-1, index_on_icc=5, date=1))
    db.commit()

    # Nothing at index 5 on the card
    assert IccDeleteService(db, gateway, hub).delete_from_hardware(IccSlot.NONE, 5) is False

    assert _indices(db) == [5]
    assert notifications.count("content://sms/icc") == 1


def test_unavailable_card_delete_fails(db, card, gateway, hub, hw_message):
    card.seed(IccSlot.NONE, [hw_message(1)])
    db.add(IccMessage(sub_id=-1, index_on_icc=1, date=1))
    db.commit()
    card.available = False

    assert IccDeleteService(db, gateway, hub).delete_from_hardware(IccSlot.NONE, 1) is False
    assert _indices(db) == [1]


def test_clear_slot_only_touches_mirror(db, card, gateway, hub, hw_message, notifications):
    card.seed(IccSlot.NONE, [hw_message(1)])
    db.add_all([
        IccMessage(sub_id=-1, index_on_icc=1, date=1),
        IccMessage(sub_id=0, index_on_icc=1, date=1),
        IccMessage(sub_id=1, index_on_icc=1, date=1),
    ])
    db.commit()
    service = IccDeleteService(db, gateway, hub)

    assert service.clear_slot(IccSlot.A) == 1
    assert _indices(db, 0) == []
    assert _indices(db, 1) == [1]

    assert service.clear_slot(IccSlot.NONE) == 2
    assert db.query(IccMessage).count() == 0
    assert len(card.records(IccSlot.NONE)) == 1
    assert notifications.count("content://sms/icc1") == 1
    assert notifications.count("content://sms/icc") == 1
