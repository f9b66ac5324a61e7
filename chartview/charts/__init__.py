"""
Chart layering engine.

Selects the chart tilesets covering the viewport, stacks them into
contiguous resolution bands and keeps exactly one chart layer visible at
any zoom level, zooming out when a chart has no tiles for the view.
"""
