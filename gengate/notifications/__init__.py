"""
Notifications module.

Contains the completion notifier and its webhook transport.
"""

from gengate.notifications.notifier import CompletionNotifier
from gengate.notifications.transport import WebhookTransport

__all__ = ["CompletionNotifier", "WebhookTransport"]
