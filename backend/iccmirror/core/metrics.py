"""
Prometheus metrics configuration
"""
from prometheus_client import (CONTENT_TYPE_LATEST, REGISTRY, Counter, Gauge,
                               Histogram, Info, generate_latest)

# ============================================================================
# Hardware (ICC) Metrics
# ============================================================================

icc_hardware_calls_total = Counter(
    'icc_hardware_calls_total',
    'Total number of calls made to the ICC hardware',
    ['operation', 'slot', 'outcome']  # outcome: 'ok', 'failed', 'timeout', 'error'
)

icc_hardware_call_duration_seconds = Histogram(
    'icc_hardware_call_duration_seconds',
    'ICC hardware call duration in seconds',
    ['operation'],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
)

icc_write_outcomes_total = Counter(
    'icc_write_outcomes_total',
    'Outcomes of writes to the ICC',
    ['slot', 'outcome']  # outcome: 'written', 'written_last_slot', 'slot_full', 'rejected'
)

icc_imported_messages_total = Counter(
    'icc_imported_messages_total',
    'Messages imported from the ICC into the mirror',
    ['slot']
)

icc_skipped_messages_total = Counter(
    'icc_skipped_messages_total',
    'Enumerated messages skipped because of an unrecognized status',
    ['slot']
)

icc_slot_imported = Gauge(
    'icc_slot_imported',
    'Whether the slot has been imported into the mirror (1) or not (0)',
    ['slot']
)

icc_notifications_total = Counter(
    'icc_notifications_total',
    'Change notifications emitted',
    ['channel']
)

icc_api_requests_total = Counter(
    'icc_api_requests_total',
    'HTTP requests against an ICC store',
    ['store', 'method', 'status']
)

# ============================================================================
# Database Metrics
# ============================================================================

db_queries_total = Counter(
    'db_queries_total',
    'Total number of database queries',
    ['operation', 'table']
)

db_query_duration_seconds = Histogram(
    'db_query_duration_seconds',
    'Database query duration in seconds',
    ['operation', 'table'],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0)
)

# ============================================================================
# System Info
# ============================================================================

app_info = Info(
    'app_info',
    'Application information'
)

from iccmirror.core.config import get_settings

settings = get_settings()
app_info.info({
    'app_name': settings.app_name,
    'app_env': settings.app_env,
    'version': '0.1.0',
    'multi_sim': str(settings.multi_sim_enabled).lower(),
})

# ============================================================================
# Helper Functions
# ============================================================================

def get_metrics():
    """
    Get Prometheus metrics in text format

    Returns:
        bytes: Metrics in Prometheus text format
    """
    return generate_latest(REGISTRY)


def get_metrics_content_type():
    """Get content type for Prometheus metrics"""
    return CONTENT_TYPE_LATEST
