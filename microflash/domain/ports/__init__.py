"""Domain port protocols for decoupling services from infrastructure."""

from .push_sender import PushMessage, PushResult, PushSender, ReceiptResult

__all__ = ["PushMessage", "PushResult", "PushSender", "ReceiptResult"]
