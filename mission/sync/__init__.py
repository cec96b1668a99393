from __future__ import annotations

from .base import Delivery, Snapshot, Transport, TransportUnavailable
from .host import HostTransport
from .notify import ChangeNotifier
from .peer import PeerTransport
from .polling import PollingTransport
from .realtime import RealtimeTransport
from .store_transport import StoreTransport, apply_action

__all__ = [
    "ChangeNotifier",
    "Delivery",
    "HostTransport",
    "PeerTransport",
    "PollingTransport",
    "RealtimeTransport",
    "Snapshot",
    "StoreTransport",
    "Transport",
    "TransportUnavailable",
    "apply_action",
]
