"""Chat-command task tracker: per-conversation tasks with states and due dates."""

__version__ = "0.1.0"
