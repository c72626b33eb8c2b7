"""Goal tracking and mastery analysis over rhythm-game play records."""

__version__ = "0.1.0"
