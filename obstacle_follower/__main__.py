"""
Main entry point when running the obstacle_follower module with python -m.
"""

from .client import run

if __name__ == "__main__":
    run()
