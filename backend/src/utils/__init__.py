"""
Utility modules for the LifeTrack backend.

This package contains shared helpers used across the application,
including datetime utilities, local file storage and query helpers.
"""

from utils.query_helpers import filter_by_patients, paginate

__all__ = ['filter_by_patients', 'paginate']
