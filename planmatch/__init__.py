"""
PlanMatch - Floor plan structure indexing and similarity search

Derives normalized geometric descriptors from floor-plan documents,
stores them as structure records and ranks comparable floors and rooms.
"""

__version__ = "0.1.0"
__author__ = "PlanMatch Team"
