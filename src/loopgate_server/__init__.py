"""HTTP control surface for a loopgate controller."""

from loopgate_server.app import EventRecord, LoopStatus, create_app

__all__ = ["create_app", "LoopStatus", "EventRecord"]
