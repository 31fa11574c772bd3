"""
Unit tests for spatial assignment.

Tests first-match assignment, the unassigned bucket, ward fallback and
zone name matching.
"""

import logging
import random
from dataclasses import replace

import pytest

from neighbourhood_pulse.geo.assignment import (
    NameIndex,
    assign_by_name,
    assign_features,
    assign_with_fallback,
)
from neighbourhood_pulse.geo.features import GeometryType, RawFeature
from tests.conftest import make_neighbourhood


def point_feature(feature_id, lat, lon, category="", **attributes):
    return RawFeature(
        feature_id=feature_id,
        geometry_type=GeometryType.POINT,
        coordinates=(lon, lat),
        category=category,
        magnitude=1.0,
        attributes=attributes,
    )


class TestRawFeature:
    """Test cases for representative points."""

    def test_point(self):
        assert point_feature("p", 45.41, -75.69).representative_point == (-75.69, 45.41)

    def test_line_uses_middle_vertex(self):
        feature = RawFeature(
            feature_id="l",
            geometry_type=GeometryType.LINE,
            coordinates=((0.0, 0.0), (1.0, 1.0), (2.0, 2.0)),
        )
        assert feature.representative_point == (1.0, 1.0)

    def test_polygon_uses_vertex_mean(self):
        feature = RawFeature(
            feature_id="t",
            geometry_type=GeometryType.POLYGON,
            coordinates=(((0.0, 0.0), (10.0, 0.0), (10.0, 10.0), (0.0, 10.0)),),
        )
        assert feature.representative_point == (5.0, 5.0)

    def test_missing_coordinates(self):
        feature = RawFeature(feature_id="x", geometry_type=GeometryType.POINT, coordinates=None)
        assert feature.representative_point is None


class TestAssignFeatures:
    """Test cases for assign_features."""

    def test_points_assigned_by_containment(self, neighbourhoods, sample_coordinates):
        features = [
            point_feature(name, *sample_coordinates[name], category="park")
            for name in ("west", "east", "outside")
        ]

        result = assign_features(features, neighbourhoods, dataset="parks")

        assert result.count("west") == 1
        assert result.count("east") == 1
        assert result.unassigned_count == 1
        assert result.unassigned[0].feature_id == "outside"
        assert result.assigned_count == 2

    def test_every_neighbourhood_has_an_entry(self, neighbourhoods):
        result = assign_features([], neighbourhoods)
        assert set(result.by_neighbourhood) == {"east", "west"}
        assert result.count("west") == 0

    def test_overlap_goes_to_smallest_id(self):
        later = make_neighbourhood("beta", -75.70, 45.40)
        earlier = make_neighbourhood("alpha", -75.70, 45.40)

        result = assign_features([point_feature("p", 45.41, -75.69)], [later, earlier])

        assert result.count("alpha") == 1
        assert result.count("beta") == 0
        assert result.assigned_count == 1

    def test_missing_geometry_counted(self, neighbourhoods):
        feature = RawFeature(feature_id="x", geometry_type=GeometryType.POINT, coordinates=None)
        result = assign_features([feature], neighbourhoods)
        assert result.missing_geometry == 1
        assert result.unassigned_count == 0

    def test_category_count_and_total(self, neighbourhoods, sample_coordinates):
        lat, lon = sample_coordinates["west"]
        features = [
            point_feature("a", lat, lon, category="grocery"),
            point_feature("b", lat, lon, category="restaurant"),
            RawFeature(
                feature_id="c",
                geometry_type=GeometryType.POINT,
                coordinates=(lon, lat),
                category="grocery",
                magnitude=2.5,
            ),
        ]

        result = assign_features(features, neighbourhoods)

        assert result.count("west", "grocery") == 2
        assert result.total("west", "grocery") == 3.5
        assert [f.feature_id for f in result.features_for("west")] == ["a", "b", "c"]

    def test_to_dict(self, neighbourhoods, sample_coordinates):
        lat, lon = sample_coordinates["east"]
        summary = assign_features([point_feature("a", lat, lon)], neighbourhoods, "stops").to_dict()
        assert summary["dataset"] == "stops"
        assert summary["assigned"] == 1
        assert summary["neighbourhoods_with_features"] == 1

    @pytest.mark.parametrize("seed", [1, 7, 42])
    def test_repeat_runs_identical(self, neighbourhoods, seed):
        """Test the same input always produces the same assignment."""
        rng = random.Random(seed)
        features = [
            point_feature(f"p{i}", rng.uniform(45.39, 45.43), rng.uniform(-75.71, -75.65))
            for i in range(200)
        ]
        # Points on the shared edge and shared corner
        features += [
            point_feature("edge", 45.41, -75.68),
            point_feature("corner", 45.40, -75.68),
        ]

        first = assign_features(features, neighbourhoods)
        second = assign_features(features, tuple(reversed(neighbourhoods)))

        def snapshot(result):
            return (
                {
                    neighbourhood_id: [a.feature.feature_id for a in assignments]
                    for neighbourhood_id, assignments in result.by_neighbourhood.items()
                },
                [f.feature_id for f in result.unassigned],
            )

        assert snapshot(first) == snapshot(second)
        assert first.assigned_count + first.unassigned_count == len(features)


class TestAssignWithFallback:
    """Test cases for ward fallback assignment."""

    @pytest.fixture
    def ward_lookup(self):
        return {"1": ["west", "east"], "2": ["missing-id"]}

    def test_spatial_match_preferred(self, neighbourhoods, ward_lookup, sample_coordinates):
        lat, lon = sample_coordinates["east"]
        feature = point_feature("a", lat, lon, ward="1")

        result = assign_with_fallback([feature], neighbourhoods, "ward", ward_lookup)

        assert result.count("east") == 1
        assert result.fallback_assigned == 0

    def test_fallback_splits_by_population(self, neighbourhoods, ward_lookup):
        feature = RawFeature(
            feature_id="a",
            geometry_type=GeometryType.POINT,
            coordinates=None,
            magnitude=1.0,
            attributes={"ward": "1"},
        )

        result = assign_with_fallback([feature], neighbourhoods, "ward", ward_lookup)

        assert result.count("west") == pytest.approx(5 / 7)
        assert result.count("east") == pytest.approx(2 / 7)
        assert result.fallback_assigned == 1
        assert result.missing_geometry == 1

    def test_point_outside_falls_back_to_ward(self, neighbourhoods, ward_lookup, sample_coordinates):
        feature = point_feature("a", *sample_coordinates["outside"], ward="1")
        result = assign_with_fallback([feature], neighbourhoods, "ward", ward_lookup)
        assert result.count("west") + result.count("east") == pytest.approx(1.0)

    def test_unknown_ward_unassigned(self, neighbourhoods, ward_lookup, sample_coordinates):
        features = [
            point_feature("a", *sample_coordinates["outside"], ward="99"),
            point_feature("b", *sample_coordinates["outside"], ward="2"),
            point_feature("c", *sample_coordinates["outside"]),
        ]

        result = assign_with_fallback(features, neighbourhoods, "ward", ward_lookup)

        assert result.unassigned_count == 3
        assert result.fallback_assigned == 0

    def test_unresolved_ids_reported(self, neighbourhoods, ward_lookup, caplog):
        """Test fallback ids that name no neighbourhood are listed and logged."""
        with caplog.at_level(logging.WARNING, logger="neighbourhood_pulse.geo.assignment"):
            result = assign_with_fallback([], neighbourhoods, "ward", ward_lookup)

        assert result.unresolved_ids == ["missing-id"]
        assert "match no neighbourhood" in caplog.text

    def test_resolved_lookup_not_reported(self, neighbourhoods, caplog):
        with caplog.at_level(logging.WARNING, logger="neighbourhood_pulse.geo.assignment"):
            result = assign_with_fallback([], neighbourhoods, "ward", {"1": ["west"]})

        assert result.unresolved_ids == []
        assert "match no neighbourhood" not in caplog.text

    def test_zero_population_candidates_unassigned(self, ward_lookup):
        empty = make_neighbourhood("west", -75.70, 45.40, population=None)
        feature = point_feature("a", 45.50, -75.50, ward="1")

        result = assign_with_fallback([feature], [empty], "ward", ward_lookup)

        assert result.unassigned_count == 1



def named(neighbourhood_id, name, zone_name=None):
    neighbourhood = make_neighbourhood(neighbourhood_id, -75.70, 45.40, name=name)
    boundary = replace(neighbourhood.boundaries[0], name=zone_name)
    return replace(neighbourhood, boundaries=(boundary,))


def named_feature(feature_id, area):
    return RawFeature(
        feature_id=feature_id,
        geometry_type=GeometryType.POINT,
        coordinates=None,
        attributes={"area": area},
    )


class TestNameIndex:
    """Test cases for zone name lookup."""

    def test_exact_then_base_name(self):
        index = NameIndex.from_neighbourhoods(
            [named("glebe", "The Glebe", "Glebe - Dows Lake"), named("vanier", "Vanier")]
        )

        assert index.find("Glebe - Dows Lake") == "glebe"
        assert index.find("  glebe - DOWS   lake ") == "glebe"
        assert index.find("Glebe - Annex") == "glebe"
        assert index.find("vanier") == "vanier"
        assert index.find("Lowertown") is None
        assert index.find(None) is None
        assert index.find("") is None

    def test_shared_name_goes_to_smallest_id(self):
        index = NameIndex.from_neighbourhoods(
            [named("zeta", "Zeta", "Shared"), named("alpha", "Alpha", "Shared")]
        )

        assert index.find("Shared") == "alpha"
        assert index.find("Shared - South") == "alpha"
        assert index.find("Zeta") == "zeta"


class TestAssignByName:
    """Test cases for name-based assignment."""

    def test_assigns_by_attribute(self, neighbourhoods, caplog):
        features = [
            named_feature("a", "West"),
            named_feature("b", "east"),
            named_feature("c", "Nowhere"),
            named_feature("d", None),
        ]

        with caplog.at_level(logging.WARNING, logger="neighbourhood_pulse.geo.assignment"):
            result = assign_by_name(features, neighbourhoods, "area", dataset="crime")

        assert result.count("west") == 1
        assert result.count("east") == 1
        assert [f.feature_id for f in result.unassigned] == ["c", "d"]
        assert result.missing_geometry == 0
        assert "matched no neighbourhood name" in caplog.text
