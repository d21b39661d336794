"""
Command-line interface for remindq.
"""
