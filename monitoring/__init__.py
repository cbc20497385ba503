"""
Monitoring Package
Tracks submitted deployments through block inclusion and finality
"""

from .status_tracker import StatusTracker, TrackerState

__all__ = ['StatusTracker', 'TrackerState']
