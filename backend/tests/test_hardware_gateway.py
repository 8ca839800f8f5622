"""
Tests for the simulated card and the hardware gateway
"""
import threading
from datetime import datetime

import pytest

from iccmirror.core.exceptions import SlotUnavailableError
from iccmirror.core.hardware import (HardwareGateway, IccHardware,
                                     SimulatedIcc, SlotTopology)
from iccmirror.core.pdu_codec import encode_outgoing
from iccmirror.models.icc_message import IccSlot, IccStatus, Mailbox


class HangingIcc(IccHardware):
    """Card whose calls block until released"""

    def __init__(self):
        self.release = threading.Event()

    @property
    def topology(self):
        return SlotTopology.SINGLE

    def enumerate(self, slot):
        self.release.wait(5)
        return []

    def capacity(self, slot):
        self.release.wait(5)
        return 10

    def write_raw(self, slot, data, status):
        raise IOError("card removed")

    def delete_by_index(self, slot, index):
        raise IOError("card removed")


def test_topology_slots():
    assert SlotTopology.SINGLE.slots == (IccSlot.NONE,)
    assert SlotTopology.DUAL.slots == (IccSlot.A, IccSlot.B)
    assert SlotTopology.DUAL.covered_slots(IccSlot.NONE) == (IccSlot.A, IccSlot.B)
    assert SlotTopology.from_flag(True) is SlotTopology.DUAL


def test_topology_rejects_missing_slot():
    with pytest.raises(SlotUnavailableError):
        SlotTopology.SINGLE.ensure_hardware_slot(IccSlot.A)
    with pytest.raises(SlotUnavailableError):
        SlotTopology.DUAL.ensure_hardware_slot(IccSlot.NONE)


def test_simulated_write_takes_lowest_free_index(card, hw_message):
    card.seed(IccSlot.NONE, [hw_message(1), hw_message(3)])
    encoded = encode_outgoing(Mailbox.INBOX, "+15551234567", "hi", timestamp=datetime(2024, 5, 3, 9, 7, 1))

    index = card.write_raw(IccSlot.NONE, encoded.to_raw(), IccStatus.UNREAD)

    assert index == 2
    stored = card.records(IccSlot.NONE)[1]
    assert stored.status == IccStatus.UNREAD
    assert stored.originating_address == "+15551234567"
    assert stored.body == "hi"
    assert stored.timestamp_millis == int(datetime(2024, 5, 3, 9, 7, 1).timestamp() * 1000)


def test_simulated_write_fails_when_full(hw_message):
    card = SimulatedIcc(capacity=1)
    card.seed(IccSlot.NONE, [hw_message(1)])
    encoded = encode_outgoing(Mailbox.DRAFT, "5551234", "hi")

    assert card.write_raw(IccSlot.NONE, encoded.to_raw(), IccStatus.UNSENT) == -1


def test_unavailable_card_returns_sentinels(card, gateway):
    card.available = False

    assert gateway.enumerate(IccSlot.NONE) is None
    assert gateway.capacity(IccSlot.NONE) == -1
    assert gateway.delete_by_index(IccSlot.NONE, 1) is False


def test_timeout_becomes_failure():
    hardware = HangingIcc()
    gateway = HardwareGateway(hardware, timeout_seconds=0.05)
    try:
        assert gateway.enumerate(IccSlot.NONE) is None
        assert gateway.capacity(IccSlot.NONE) == -1
    finally:
        hardware.release.set()
        gateway.shutdown()


def test_hardware_exception_becomes_failure():
    hardware = HangingIcc()
    gateway = HardwareGateway(hardware, timeout_seconds=1.0)
    try:
        assert gateway.write_raw(IccSlot.NONE, b"\x00", IccStatus.UNSENT) == -1
        assert gateway.delete_by_index(IccSlot.NONE, 1) is False
    finally:
        hardware.release.set()
        gateway.shutdown()


def test_wrong_slot_is_reported_as_failure(gateway):
    """The gateway never raises, even for a slot the card does not have"""
    assert gateway.enumerate(IccSlot.A) is None
