from __future__ import annotations

from conftest import make_chart

from chartview.charts.allocator import allocate_resolutions
from chartview.charts.selector import select_charts
from chartview.geo.projection import from_lonlat


def test_no_charts_no_bands() -> None:
    assert allocate_resolutions([], 10, 2000) == []


def test_bands_are_contiguous_and_cover_the_range() -> None:
    charts = [make_chart("A_1", 20000), make_chart("B_1", 80000), make_chart("C_1", 1000000)]

    bands = allocate_resolutions(charts, 10, 2000)

    assert [b.ident for b in bands] == ["A_1", "B_1", "C_1"]
    assert bands[0].min_resolution == 10
    assert bands[-1].max_resolution == 2000
    for prev, nxt in zip(bands, bands[1:]):
        assert prev.max_resolution == nxt.min_resolution
    assert all(b.width > 0 for b in bands)


def test_band_width_follows_scale_ratio() -> None:
    charts = [make_chart("A_1", 20000), make_chart("B_1", 1000000)]

    bands = allocate_resolutions(charts, 0, 1000)

    # floor(0 + 1000 * 20000 / 1000000)
    assert (bands[0].min_resolution, bands[0].max_resolution) == (0, 20)
    assert (bands[1].min_resolution, bands[1].max_resolution) == (20, 1000)


def test_single_chart_takes_the_whole_range() -> None:
    bands = allocate_resolutions([make_chart("A_1", 50000)], 10, 2000)

    assert [(b.min_resolution, b.max_resolution) for b in bands] == [(10, 2000)]


def test_charts_past_the_range_end_are_dropped() -> None:
    charts = [make_chart("A_1", 1000), make_chart("B_1", 1000)]

    bands = allocate_resolutions(charts, 10, 2000)

    assert [b.ident for b in bands] == ["A_1"]
    assert (bands[0].min_resolution, bands[0].max_resolution) == (10, 2000)


def test_select_then_allocate_bay_area(bay_charts) -> None:
    cx, cy = from_lonlat(-122.45, 37.8)
    extent = (cx - 5000, cy - 5000, cx + 5000, cy + 5000)

    selected = select_charts(list(reversed(bay_charts)), (cx, cy), extent)
    bands = allocate_resolutions(selected, 10, 2000)

    assert [c.scale for c in selected] == [80000, 500000]
    # floor(10 + 1990 * 80000 / 500000) = 328
    assert [(b.min_resolution, b.max_resolution) for b in bands] == [(10, 328), (328, 2000)]
