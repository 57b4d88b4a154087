"""Notification collaborator for verification events."""

from docverify.notifications.notification_service import NotificationService

__all__ = ["NotificationService"]
