"""userpurge — purge user accounts that stay in an inactive role too long."""
