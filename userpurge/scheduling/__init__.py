"""Periodic job scheduling."""
