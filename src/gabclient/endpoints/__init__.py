from . import accounts, notifications, public, statuses

__all__ = ["accounts", "notifications", "public", "statuses"]
