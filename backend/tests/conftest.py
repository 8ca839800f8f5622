"""
Pytest configuration and fixtures
"""
import os
import sys
from pathlib import Path

import pytest

# Add backend directory to path for imports
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

# Test settings must be in place before iccmirror modules read them
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOG_FILE_ENABLED"] = "false"
os.environ["ENABLE_TRACING"] = "false"
os.environ["MULTI_SIM_ENABLED"] = "false"
os.environ["AUTO_CREATE_SCHEMA"] = "true"

from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from iccmirror.core.database import Base, make_session_factory
from iccmirror.core.hardware import (HardwareGateway, HardwareMessage,
                                     SimulatedIcc, SlotTopology)
from iccmirror.core.notifications import AGGREGATE_CHANNELS, NotificationHub
from iccmirror.core.slot_cache import SlotCacheState
from iccmirror.models.icc_message import IccSlot, IccStatus
from iccmirror.services.icc_mirror_service import IccMirrorService

FIXED_NOW = 1_700_000_000_000


@pytest.fixture
def fixed_now() -> int:
    """Wall-clock millis the services see"""
    return FIXED_NOW


@pytest.fixture
def engine():
    """In-memory SQLite shared by every session of one test"""
    import iccmirror.models  # noqa: F401

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def db(session_factory) -> Session:
    """Create a database session for testing"""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def card() -> SimulatedIcc:
    """Single-slot simulated card holding up to 20 records"""
    return SimulatedIcc(topology=SlotTopology.SINGLE, capacity=20)


@pytest.fixture
def dual_card() -> SimulatedIcc:
    return SimulatedIcc(topology=SlotTopology.DUAL, capacity=20)


@pytest.fixture
def gateway(card):
    gateway = HardwareGateway(card, timeout_seconds=2.0)
    yield gateway
    gateway.shutdown()


@pytest.fixture
def dual_gateway(dual_card):
    gateway = HardwareGateway(dual_card, timeout_seconds=2.0)
    yield gateway
    gateway.shutdown()


@pytest.fixture
def hub() -> NotificationHub:
    return NotificationHub()


@pytest.fixture
def cache() -> SlotCacheState:
    return SlotCacheState()


@pytest.fixture
def notifications(hub):
    """Every channel signal delivered by ``hub``, in order"""
    received = []
    for channel in [slot.channel for slot in IccSlot] + list(AGGREGATE_CHANNELS):
        hub.subscribe(channel, received.append)
    return received


@pytest.fixture
def service(session_factory, gateway, hub) -> IccMirrorService:
    return IccMirrorService(session_factory, gateway, hub=hub, clock=lambda: FIXED_NOW)


@pytest.fixture
def dual_service(session_factory, dual_gateway, hub) -> IccMirrorService:
    return IccMirrorService(session_factory, dual_gateway, hub=hub, clock=lambda: FIXED_NOW)


@pytest.fixture
def hw_message():
    """Factory for enumerated card records"""

    def make(index, status=IccStatus.READ, body="hello", address="+15551234567", timestamp_millis=1_600_000_000_000):
        inbox = int(status) in (IccStatus.READ, IccStatus.UNREAD)
        return HardwareMessage(
            index_on_icc=index,
            status=int(status),
            body=body,
            originating_address=address if inbox else None,
            recipient_address=None if inbox else address,
            service_center_address="+15550000000",
            timestamp_millis=timestamp_millis,
        )

    return make
