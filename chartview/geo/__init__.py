"""Projection, footprint and XYZ tile-grid helpers."""
