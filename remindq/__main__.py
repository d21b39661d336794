"""
Entry point for running remindq directly.
"""

from remindq.cli.main import run

if __name__ == "__main__":
    run()
