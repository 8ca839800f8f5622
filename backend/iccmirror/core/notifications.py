"""
Change notifications for ICC stores

Every notification on a slot channel is also delivered on the aggregate
message and conversation channels.
"""
import threading
from collections import defaultdict
from typing import Callable, Dict, List

from iccmirror.core.logging_config import LoggingConfig
from iccmirror.core.metrics import icc_notifications_total

logger = LoggingConfig.get_logger(__name__)

MMS_SMS_CHANNEL = "content://mms-sms/"
CONVERSATIONS_CHANNEL = "content://mms-sms/conversations/"
AGGREGATE_CHANNELS = (MMS_SMS_CHANNEL, CONVERSATIONS_CHANNEL)

Listener = Callable[[str], None]


class NotificationHub:
    """In-process publish/subscribe keyed by channel URI"""

    def __init__(self):
        self._lock = threading.Lock()
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)

    def subscribe(self, channel: str, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for ``channel``; returns a callable that unregisters it"""
        with self._lock:
            self._listeners[channel].append(listener)

        def unsubscribe() -> None:
            with self._lock:
                listeners = self._listeners.get(channel, [])
                if listener in listeners:
                    listeners.remove(listener)

        return unsubscribe

    def notify(self, channel: str) -> None:
        for target in (channel,) + AGGREGATE_CHANNELS:
            icc_notifications_total.labels(channel=target).inc()
            with self._lock:
                listeners = list(self._listeners.get(target, ()))
            for listener in listeners:
                try:
                    listener(target)
                except Exception as e:
                    logger.warning(
                        f"Notification listener for {target} failed: {e}",
                        exc_info=True,
                        extra={"channel": target},
                    )
        logger.debug(f"Notified {channel}", extra={"channel": channel})
