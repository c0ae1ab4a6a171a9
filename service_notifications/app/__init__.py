"""Notifications service: event subscriber with bounded notification history."""
