from .poller import PollerState, StatusPoller

__all__ = ["PollerState", "StatusPoller"]
