"""User directory — users, roles, and role-change notifications."""
