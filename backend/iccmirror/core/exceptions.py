"""
Error types raised by the ICC mirror core

Hardware unavailability is not represented here: the hardware gateway reports
it through sentinel results and the services turn those into outcomes.
"""


class IccMirrorError(Exception):
    """Base error for the ICC mirror"""


class InvalidArgumentError(IccMirrorError, ValueError):
    """Malformed caller input, e.g. an index that is not a number"""


class UnknownStoreError(IccMirrorError, LookupError):
    """Path segment that does not name an ICC store"""

    def __init__(self, segment: str):
        super().__init__(f"Unknown ICC store: {segment!r}")
        self.segment = segment


class SlotUnavailableError(IccMirrorError, LookupError):
    """Slot that the configured hardware topology does not provide"""

    def __init__(self, slot, reason: str = "not available on this device"):
        super().__init__(f"ICC slot {slot.value!r} {reason}")
        self.slot = slot


class UnsupportedOperationError(IccMirrorError):
    """Operation the ICC stores do not offer, such as updating a record in place"""
