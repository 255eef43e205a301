"""Active practice session engine, goal progress and calendar math."""

__version__ = "0.1.0"
