"""Pydantic schemas for events and API bodies."""
