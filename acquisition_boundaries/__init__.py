"""Acquisition Boundary Extraction Pipeline.

Offline batch tool that turns an ordered sequence of historical
territorial-boundary snapshots (GeoJSON) into one polygon per
acquisition era, ready for animated reveal.
"""

__version__ = "0.1.0"
