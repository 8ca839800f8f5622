"""
ICC hardware access

``IccHardware`` is the card-side contract (enumerate, capacity, raw write,
delete by index). ``HardwareGateway`` wraps an implementation with a bounded
timeout and turns every failure into the sentinel results the services
expect: ``None`` for enumeration, ``-1`` for capacity and write, ``False``
for delete.
"""
import threading
import time
from abc import ABC, abstractmethod
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from iccmirror.core.exceptions import SlotUnavailableError
from iccmirror.core.logging_config import LoggingConfig
from iccmirror.core.metrics import (icc_hardware_call_duration_seconds,
                                    icc_hardware_calls_total)
from iccmirror.core.pdu_codec import decode_stored_pdu
from iccmirror.core.tracing import get_tracer
from iccmirror.models.icc_message import IccSlot, IccStatus

logger = LoggingConfig.get_logger(__name__)
tracer = get_tracer(__name__)


@dataclass(frozen=True)
class HardwareMessage:
    """One record as enumerated from the card"""
    index_on_icc: int
    status: int  # raw TS 51.011 status octet, not yet validated
    body: Optional[str] = None
    originating_address: Optional[str] = None
    recipient_address: Optional[str] = None
    service_center_address: Optional[str] = None
    message_class: str = "UNKNOWN"
    timestamp_millis: int = 0  # 0 means unknown
    is_status_report: bool = False


class SlotTopology(Enum):
    """Which hardware slots a device exposes"""
    SINGLE = "single"
    DUAL = "dual"

    @classmethod
    def from_flag(cls, multi_sim_enabled: bool) -> "SlotTopology":
        return cls.DUAL if multi_sim_enabled else cls.SINGLE

    @property
    def slots(self) -> Tuple[IccSlot, ...]:
        if self is SlotTopology.DUAL:
            return (IccSlot.A, IccSlot.B)
        return (IccSlot.NONE,)

    def is_aggregate(self, slot: IccSlot) -> bool:
        """True for the slot-less view of a dual-card device"""
        return self is SlotTopology.DUAL and slot is IccSlot.NONE

    def covered_slots(self, slot: IccSlot) -> Tuple[IccSlot, ...]:
        """Hardware slots an operation on ``slot`` touches"""
        if self.is_aggregate(slot):
            return self.slots
        self.ensure_hardware_slot(slot)
        return (slot,)

    def ensure_hardware_slot(self, slot: IccSlot) -> None:
        if slot not in self.slots:
            if self.is_aggregate(slot):
                raise SlotUnavailableError(slot, "is an aggregate view on a dual-card device")
            raise SlotUnavailableError(slot)


class IccHardware(ABC):
    """Card-side operations; implementations may block and may raise"""

    @property
    @abstractmethod
    def topology(self) -> SlotTopology:
        ...

    @abstractmethod
    def enumerate(self, slot: IccSlot) -> Optional[List[HardwareMessage]]:
        """All records on the slot, or None when the card cannot be read"""

    @abstractmethod
    def capacity(self, slot: IccSlot) -> int:
        """Maximum record count, or a negative number when unknown"""

    @abstractmethod
    def write_raw(self, slot: IccSlot, data: bytes, status: IccStatus) -> int:
        """Store SMSC + PDU octets; the assigned index, or negative on failure"""

    @abstractmethod
    def delete_by_index(self, slot: IccSlot, index: int) -> bool:
        ...


class SimulatedIcc(IccHardware):
    """
    In-memory card

    Records are keyed by 1-based index; a write takes the lowest free index.
    Setting ``available`` to False makes every call fail the way an absent or
    locked card does.
    """

    def __init__(self, topology: SlotTopology = SlotTopology.SINGLE, capacity: int = 20):
        self._topology = topology
        self._lock = threading.Lock()
        self._capacity: Dict[IccSlot, int] = {slot: capacity for slot in topology.slots}
        self._records: Dict[IccSlot, Dict[int, HardwareMessage]] = {slot: {} for slot in topology.slots}
        self.available = True
        self.calls: Counter = Counter()

    @property
    def topology(self) -> SlotTopology:
        return self._topology

    def _check(self, slot: IccSlot) -> None:
        self._topology.ensure_hardware_slot(slot)

    def seed(self, slot: IccSlot, messages: Iterable[HardwareMessage]) -> None:
        self._check(slot)
        with self._lock:
            for message in messages:
                self._records[slot][message.index_on_icc] = message

    def set_capacity(self, slot: IccSlot, capacity: int) -> None:
        self._check(slot)
        with self._lock:
            self._capacity[slot] = capacity

    def records(self, slot: IccSlot) -> List[HardwareMessage]:
        self._check(slot)
        with self._lock:
            return [self._records[slot][i] for i in sorted(self._records[slot])]

    def enumerate(self, slot: IccSlot) -> Optional[List[HardwareMessage]]:
        self._check(slot)
        self.calls["enumerate"] += 1
        if not self.available:
            return None
        return self.records(slot)

    def capacity(self, slot: IccSlot) -> int:
        self._check(slot)
        self.calls["capacity"] += 1
        if not self.available:
            return -1
        with self._lock:
            return self._capacity[slot]

    def write_raw(self, slot: IccSlot, data: bytes, status: IccStatus) -> int:
        self._check(slot)
        self.calls["write_raw"] += 1
        if not self.available:
            return -1
        decoded = decode_stored_pdu(data)
        timestamp_millis = 0
        if decoded.timestamp is not None:
            timestamp_millis = int(datetime(*decoded.timestamp).timestamp() * 1000)

        with self._lock:
            records = self._records[slot]
            free = [i for i in range(1, self._capacity[slot] + 1) if i not in records]
            if not free:
                return -1
            index = free[0]
            records[index] = HardwareMessage(
                index_on_icc=index,
                status=int(status),
                body=decoded.body,
                originating_address=decoded.address if decoded.is_deliver else None,
                recipient_address=None if decoded.is_deliver else decoded.address,
                service_center_address=decoded.service_center,
                timestamp_millis=timestamp_millis,
                is_status_report=decoded.status_report,
            )
            return index

    def delete_by_index(self, slot: IccSlot, index: int) -> bool:
        self._check(slot)
        self.calls["delete_by_index"] += 1
        if not self.available:
            return False
        with self._lock:
            return self._records[slot].pop(index, None) is not None


class HardwareGateway:
    """
    Runs hardware calls on a worker pool with a timeout

    Callers never see exceptions from the card; expiry and errors are logged,
    counted, and returned as the failure sentinel for the operation.
    """

    def __init__(self, hardware: IccHardware, timeout_seconds: float = 5.0, max_workers: int = 2):
        self.hardware = hardware
        self.timeout_seconds = timeout_seconds
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="icc-hw")

    @property
    def topology(self) -> SlotTopology:
        return self.hardware.topology

    def _call(
        self,
        operation: str,
        slot: IccSlot,
        func: Callable[..., Any],
        args: tuple,
        failure: Any,
        is_failure: Callable[[Any], bool],
    ) -> Any:
        start_time = time.time()
        with tracer.start_as_current_span(f"icc.{operation}") as span:
            span.set_attribute("icc.slot", slot.value)
            future = self._executor.submit(func, slot, *args)
            try:
                result = future.result(timeout=self.timeout_seconds)
                outcome = "failed" if is_failure(result) else "ok"
            except FutureTimeoutError:
                future.cancel()
                logger.warning(
                    f"ICC {operation} on slot {slot.value} timed out after {self.timeout_seconds}s",
                    extra={"operation": operation, "slot": slot.value},
                )
                result, outcome = failure, "timeout"
            except Exception as e:
                logger.error(
                    f"ICC {operation} on slot {slot.value} raised: {e}",
                    exc_info=True,
                    extra={"operation": operation, "slot": slot.value, "error_type": type(e).__name__},
                )
                result, outcome = failure, "error"
            span.set_attribute("icc.outcome", outcome)

        icc_hardware_calls_total.labels(operation=operation, slot=slot.value, outcome=outcome).inc()
        icc_hardware_call_duration_seconds.labels(operation=operation).observe(time.time() - start_time)
        if outcome == "failed":
            logger.info(f"ICC {operation} on slot {slot.value} reported failure")
        return result

    def enumerate(self, slot: IccSlot) -> Optional[List[HardwareMessage]]:
        return self._call("enumerate", slot, self.hardware.enumerate, (), None, lambda r: r is None)

    def capacity(self, slot: IccSlot) -> int:
        return self._call("capacity", slot, self.hardware.capacity, (), -1, lambda r: r < 0)

    def write_raw(self, slot: IccSlot, data: bytes, status: IccStatus) -> int:
        return self._call("write_raw", slot, self.hardware.write_raw, (data, status), -1, lambda r: r < 0)

    def delete_by_index(self, slot: IccSlot, index: int) -> bool:
        return self._call("delete_by_index", slot, self.hardware.delete_by_index, (index,), False, lambda r: not r)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False)


def build_hardware(settings) -> IccHardware:
    """Card implementation for the configured topology"""
    topology = SlotTopology.from_flag(settings.multi_sim_enabled)
    logger.info(
        f"Using simulated ICC ({topology.value}, capacity {settings.icc_capacity})",
        extra={"topology": topology.value, "capacity": settings.icc_capacity},
    )
    return SimulatedIcc(topology=topology, capacity=settings.icc_capacity)
