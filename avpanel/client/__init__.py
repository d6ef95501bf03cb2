"""Transport to the daemon relay."""

from avpanel.client.daemon_client import DaemonClient

__all__ = ["DaemonClient"]
