"""
Tests for SlotCacheState
"""
from iccmirror.core.slot_cache import SlotCacheState
from iccmirror.models.icc_message import IccSlot


def test_slots_start_not_imported():
    cache = SlotCacheState()

    for slot in IccSlot:
        assert cache.should_import(slot) is True
        assert cache.is_imported(slot) is False


def test_mark_imported_is_per_slot():
    cache = SlotCacheState()

    cache.mark_imported(IccSlot.A)

    assert cache.should_import(IccSlot.A) is False
    assert cache.should_import(IccSlot.B) is True
    assert cache.should_import(IccSlot.NONE) is True


def test_invalidate_restores_import():
    cache = SlotCacheState()
    cache.mark_imported(IccSlot.NONE)

    cache.invalidate(IccSlot.NONE)

    assert cache.should_import(IccSlot.NONE) is True


def test_instances_are_independent():
    first = SlotCacheState()
    second = SlotCacheState()

    first.mark_imported(IccSlot.NONE)

    assert second.should_import(IccSlot.NONE) is True
