"""Presentation logic built on top of the connection."""

from ils_broker.logic.holds import HoldLogic, RequestSigner

__all__ = ["HoldLogic", "RequestSigner"]
