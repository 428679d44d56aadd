"""Inactive-user purge — role-change tracking and the periodic sweep."""

from userpurge.purge.sweep import purge_sweep
from userpurge.purge.tracker import role_change_tracker

__all__ = ["purge_sweep", "role_change_tracker"]
