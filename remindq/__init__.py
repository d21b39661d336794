"""
remindq - a one-shot reminder queue that pings agent sessions when reminders fall due.
"""

__version__ = "0.1.0"
