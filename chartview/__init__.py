"""
Marine chart viewer package.

Entry point: python -m chartview.app

Provides:
- Chart catalog normalisation into projected footprints (geo/)
- Chart selection, resolution banding and adaptive zoom-out (charts/)
- Viewport / display-mode state machine and location overlays (viewer/)
- Chart catalog HTTP client and GPS fix provider (ingest/)
- PyQt5 tile map surface implementing the mapping-engine interface (gui/)
"""
