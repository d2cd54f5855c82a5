"""Seismic danger ranking of regions from the USGS earthquake feed."""

__version__ = "0.1.0"
