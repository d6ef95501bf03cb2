"""Client-side synchronization with the scanning daemon.

This package provides:
- NotificationCenter: single live user message with auto-dismiss
- ResourceMirrorLoaders: fetch-and-replace loaders for mirrored resources
- ScanLifecycleStateMachine: scan tracking from polled snapshots
- ConnectionMonitor: liveness probing and recovery
- PollingScheduler: periodic status refresh while connected
- CommandDispatcher: user-triggered mutating operations
- PanelSession: wires the above around one AppState
"""

from avpanel.sync.commands import CommandDispatcher
from avpanel.sync.connection import ConnectionMonitor, ConnectionPhase, ConnectivityReporter
from avpanel.sync.guard import SessionGuard
from avpanel.sync.mirrors import Mirror, ResourceMirrorLoaders
from avpanel.sync.notifications import NotificationCenter
from avpanel.sync.polling import PollingScheduler, StatusFeed
from avpanel.sync.scan_lifecycle import ScanLifecycleStateMachine
from avpanel.sync.session import PanelSession
from avpanel.sync.timers import AsyncioTimers, TimerHandle, Timers

__all__ = [
    "AsyncioTimers",
    "CommandDispatcher",
    "ConnectionMonitor",
    "ConnectionPhase",
    "ConnectivityReporter",
    "Mirror",
    "NotificationCenter",
    "PanelSession",
    "PollingScheduler",
    "ResourceMirrorLoaders",
    "ScanLifecycleStateMachine",
    "SessionGuard",
    "StatusFeed",
    "TimerHandle",
    "Timers",
]
