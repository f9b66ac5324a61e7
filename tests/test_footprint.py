from __future__ import annotations

import logging

import pytest

from chartview.errors import FootprintError
from chartview.geo.footprint import build_footprint, parse_catalog, parse_chart
from chartview.geo.projection import from_lonlat


def test_lower_upper_record_becomes_closed_rectangle() -> None:
    polygon, height = build_footprint({"lower": [-122.6, 37.7], "upper": [-122.3, 37.9]})

    coords = list(polygon.exterior.coords)
    assert coords[0] == coords[-1]
    assert len(coords) == 5
    x0, y0 = from_lonlat(-122.6, 37.7)
    x1, y1 = from_lonlat(-122.3, 37.9)
    assert polygon.bounds == pytest.approx((x0, y0, x1, y1))
    assert height == pytest.approx(0.2)


def test_poly_vertices_are_latitude_first() -> None:
    record = {"poly": [[37.7, -122.6], [37.9, -122.6], [37.9, -122.3]]}

    polygon, height = build_footprint(record)

    x0, y0 = from_lonlat(-122.6, 37.7)
    x1, y1 = from_lonlat(-122.3, 37.9)
    assert polygon.bounds == pytest.approx((x0, y0, x1, y1))
    assert height == pytest.approx(0.2)


def test_poly_takes_precedence_over_corners() -> None:
    record = {
        "poly": [[10.0, 10.0], [11.0, 10.0], [11.0, 11.0]],
        "lower": [-122.6, 37.7],
        "upper": [-122.3, 37.9],
    }

    polygon, _ = build_footprint(record)

    assert polygon.bounds[0] == pytest.approx(from_lonlat(10.0, 10.0)[0])


@pytest.mark.parametrize(
    "record",
    [
        {},
        {"lower": [-122.6, 37.7]},
        {"poly": [[37.7, -122.6], [37.9, -122.6]]},
        {"lower": ["x", 37.7], "upper": [-122.3, 37.9]},
        {"lower": None, "upper": [-122.3, 37.9]},
    ],
)
def test_malformed_footprint_raises(record: dict) -> None:
    with pytest.raises(FootprintError):
        build_footprint(record)


def test_parse_chart_fields() -> None:
    chart = parse_chart({
        "ident": "US5CA52M_1",
        "scale": "20000",
        "sounding": "FEET",
        "lower": [-122.6, 37.7],
        "upper": [-122.3, 37.9],
    })

    assert chart.ident == "US5CA52M_1"
    assert chart.scale == 20000.0
    assert chart.sounding == "FEET"
    assert chart.label == "US5CA52M"
    assert chart.extent == pytest.approx(chart.footprint.bounds)


def test_parse_chart_rejects_bad_scale() -> None:
    with pytest.raises(FootprintError):
        parse_chart({"ident": "A", "scale": 0, "lower": [0, 0], "upper": [1, 1]})
    with pytest.raises(FootprintError):
        parse_chart({"ident": "A", "lower": [0, 0], "upper": [1, 1]})


def test_parse_catalog_skips_bad_records(caplog: pytest.LogCaptureFixture) -> None:
    records = [
        {"ident": "GOOD_1", "scale": 20000, "lower": [-122.6, 37.7], "upper": [-122.3, 37.9]},
        {"ident": "NOCOORDS_1", "scale": 20000},
        {"ident": "GOOD_2", "scale": 80000, "poly": [[37.7, -122.6], [37.9, -122.6], [37.9, -122.3]]},
        "not a record",
    ]

    with caplog.at_level(logging.WARNING):
        charts = parse_catalog(records)

    assert [c.ident for c in charts] == ["GOOD_1", "GOOD_2"]
    assert "NOCOORDS_1" in caplog.text
