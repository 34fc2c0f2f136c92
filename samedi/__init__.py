"""Learning session tracking against study plans, stored in SQLite."""

__version__ = "0.1.0"
__all__ = ["repository", "service", "session"]