"""Viewport state machine, controller events and location overlays."""
