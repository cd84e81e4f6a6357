"""AWS integrations used by the notification service."""
