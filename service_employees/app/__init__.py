"""Employees service: record store behind a read-through cache."""
