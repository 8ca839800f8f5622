"""
Tests for IccImportService
"""
from iccmirror.models.icc_message import (IccMessage, IccSlot, IccStatus,
                                          Mailbox)
from iccmirror.services.icc_import_service import IccImportService


def _importer(db, gateway, cache, hub, now=0):
    return IccImportService(db, gateway, cache, hub, clock=lambda: now)


def _rows(db, slot=IccSlot.NONE):
    return (
        db.query(IccMessage)
        .filter(IccMessage.sub_id == slot.sub_id)
        .order_by(IccMessage.index_on_icc)
        .all()
    )


def test_classification(db, card, gateway, cache, hub, hw_message):
    """Unread imports as unread inbox, sent as sent, unsent and free as draft"""
    card.seed(IccSlot.NONE, [
        hw_message(1, IccStatus.UNREAD, address="+15551111111"),
        hw_message(2, IccStatus.SENT, address="+15552222222"),
        hw_message(3, IccStatus.UNSENT, address="+15553333333"),
        hw_message(4, IccStatus.FREE),
        hw_message(5, IccStatus.READ),
    ])

    imported = _importer(db, gateway, cache, hub).import_slot(IccSlot.NONE)

    assert imported == 5
    rows = _rows(db)
    assert [row.mailbox for row in rows] == [
        Mailbox.INBOX, Mailbox.SENT, Mailbox.DRAFT, Mailbox.DRAFT, Mailbox.INBOX,
    ]
    assert rows[0].read == 0
    assert rows[0].address == "+15551111111"  # originating address
    assert rows[1].address == "+15552222222"  # recipient address
    assert rows[4].read == 1
    assert all(row.sub_id == -1 for row in rows)
    assert [row.status_on_icc for row in rows] == [3, 5, 7, 0, 1]
    assert all(row.transport_type == "sms" and row.locked == 0 and row.error_code == 0 for row in rows)


def test_unknown_status_is_skipped(db, card, gateway, cache, hub, hw_message):
    card.seed(IccSlot.NONE, [hw_message(1, IccStatus.READ), hw_message(2, status=2)])

    imported = _importer(db, gateway, cache, hub).import_slot(IccSlot.NONE)

    assert imported == 1
    assert [row.index_on_icc for row in _rows(db)] == [1]
    assert cache.is_imported(IccSlot.NONE)


def test_zero_timestamp_uses_clock(db, card, gateway, cache, hub, hw_message, fixed_now):
    card.seed(IccSlot.NONE, [hw_message(1, timestamp_millis=0), hw_message(2, timestamp_millis=42)])

    _importer(db, gateway, cache, hub, now=fixed_now).import_slot(IccSlot.NONE)

    assert [row.date for row in _rows(db)] == [fixed_now, 42]


def test_import_is_idempotent(db, card, gateway, cache, hub, hw_message):
    card.seed(IccSlot.NONE, [hw_message(1), hw_message(2)])
    importer = _importer(db, gateway, cache, hub)

    importer.import_slot(IccSlot.NONE)
    assert importer.import_slot(IccSlot.NONE) == 0

    assert card.calls["enumerate"] == 1
    assert len(_rows(db)) == 2


def test_empty_card_is_enumerated_again(db, card, gateway, cache, hub, hw_message):
    importer = _importer(db, gateway, cache, hub)

    assert importer.import_slot(IccSlot.NONE) == 0
    assert cache.should_import(IccSlot.NONE)

    card.seed(IccSlot.NONE, [hw_message(1)])
    assert importer.import_slot(IccSlot.NONE) == 1
    assert card.calls["enumerate"] == 2
    assert not cache.should_import(IccSlot.NONE)


def test_failed_enumeration_keeps_mirror(db, card, gateway, cache, hub):
    db.add(IccMessage(sub_id=-1, index_on_icc=9, date=1, body="kept"))
    db.commit()
    card.available = False

    assert _importer(db, gateway, cache, hub).import_slot(IccSlot.NONE) == 0

    assert cache.should_import(IccSlot.NONE)
    assert [row.body for row in _rows(db)] == ["kept"]


def test_import_replaces_slot_rows(db, card, gateway, cache, hub, hw_message):
    db.add(IccMessage(sub_id=-1, index_on_icc=7, date=1, body="stale"))
    db.add(IccMessage(sub_id=0, index_on_icc=7, date=1, body="other slot"))
    db.commit()
    card.seed(IccSlot.NONE, [hw_message(1, body="fresh")])

    _importer(db, gateway, cache, hub).import_slot(IccSlot.NONE)

    assert [row.body for row in _rows(db)] == ["fresh"]
    assert [row.body for row in _rows(db, IccSlot.A)] == ["other slot"]


def test_notifies_once_per_enumeration(db, card, gateway, cache, hub, notifications, hw_message):
    card.seed(IccSlot.NONE, [hw_message(1)])
    importer = _importer(db, gateway, cache, hub)

    importer.import_slot(IccSlot.NONE)
    importer.import_slot(IccSlot.NONE)

    assert notifications.count("content://sms/icc") == 1


def test_empty_enumeration_still_notifies(db, gateway, cache, hub, notifications):
    _importer(db, gateway, cache, hub).import_slot(IccSlot.NONE)

    assert notifications.count("content://sms/icc") == 1
