"""Tests for floor and room similarity queries."""

import dataclasses
import math

import pytest

from planmatch.exceptions import NotFoundError
from planmatch.indexing.repositories import FloorStructureRepository, RoomStructureRepository
from planmatch.search.similarity import SimilarityEngine
from planmatch.search.similarity_config import FloorSimilarityConfig, SimilarityConfig
from tests.factories import make_floor, make_room


@pytest.fixture()
def engine(db_manager):
    return SimilarityEngine(db_manager)


def _save_floors(db_manager, *records):
    FloorStructureRepository(db_manager).save_all(list(records))


def _save_rooms(db_manager, *records):
    RoomStructureRepository(db_manager).save_all(list(records))


def _ids(results):
    return [result.record.id for result in results]


class TestSimilarFloors:
    """Floor similarity."""

    def test_reference_scenario(self, engine, db_manager):
        _save_floors(
            db_manager,
            make_floor("p0_f", "p0"),
            make_floor("p1_a", "p1"),
            make_floor("p2_b", "p2", area=80.0),
            make_floor("p3_c", "p3", room_count=7),
        )

        results = engine.find_similar_floors("p0_f")

        assert _ids(results) == ["p1_a", "p3_c"]
        assert results[0].score == pytest.approx(0.0)
        assert results[1].score == pytest.approx(0.2 * 3 / 7)

    def test_area_override_widens_band(self, engine, db_manager):
        _save_floors(
            db_manager,
            make_floor("p0_f", "p0"),
            make_floor("p2_b", "p2", area=80.0),
        )

        results = engine.find_similar_floors("p0_f", area_from=40.0, area_to=90.0)

        assert _ids(results) == ["p2_b"]
        assert results[0].score == pytest.approx(0.3 * 30 / 50)

    def test_band_filters(self, engine, db_manager):
        _save_floors(
            db_manager,
            make_floor("p0_f", "p0"),
            make_floor("p1_aspect", "p1", aspect=1.2),
            make_floor("p2_rect", "p2", rectangularity=0.95),
            make_floor("p3_rooms", "p3", room_count=8),
            make_floor("p4_ok", "p4", area=52.0, aspect=1.1, rectangularity=0.75, room_count=2),
        )

        results = engine.find_similar_floors("p0_f")

        assert _ids(results) == ["p4_ok"]
        expected = 0.3 * 2 / 50 + 0.3 * 0.1 + 0.2 * 0.05 + 0.2 * 2 / 6
        assert results[0].score == pytest.approx(expected)

    def test_reference_project_is_excluded(self, engine, db_manager):
        _save_floors(db_manager, make_floor("p0_f", "p0"), make_floor("p0_g", "p0"))

        assert engine.find_similar_floors("p0_f") == []

    def test_one_floor_per_project(self, engine, db_manager):
        _save_floors(
            db_manager,
            make_floor("p0_f", "p0"),
            make_floor("p1_x", "p1"),
            make_floor("p1_y", "p1", area=52.0),
            make_floor("p2_z", "p2", area=55.0),
        )

        results = engine.find_similar_floors("p0_f")

        assert _ids(results) == ["p1_x", "p2_z"]

    def test_truncation_happens_after_dedup(self, engine, db_manager):
        crowded = [make_floor(f"p1_{i}", "p1", area=50.0 + i * 0.1) for i in range(5)]
        others = [make_floor(f"p{n}_f", f"p{n}", area=53.0 + n) for n in (2, 3, 4)]
        _save_floors(db_manager, make_floor("p0_f", "p0"), *crowded, *others)

        results = engine.find_similar_floors("p0_f", k=3)

        assert _ids(results) == ["p1_0", "p2_f", "p3_f"]

    def test_dedup_can_be_disabled(self, db_manager):
        config = SimilarityConfig(floor=FloorSimilarityConfig(dedup_per_project=False))
        engine = SimilarityEngine(db_manager, config)
        _save_floors(
            db_manager,
            make_floor("p0_f", "p0"),
            make_floor("p1_x", "p1"),
            make_floor("p1_y", "p1", area=52.0),
        )

        assert _ids(engine.find_similar_floors("p0_f")) == ["p1_x", "p1_y"]

    def test_ties_are_broken_by_id(self, engine, db_manager):
        _save_floors(
            db_manager,
            make_floor("p0_f", "p0"),
            make_floor("p9_f", "p9"),
            make_floor("p5_f", "p5"),
            make_floor("p7_f", "p7"),
        )

        first = engine.find_similar_floors("p0_f")
        second = engine.find_similar_floors("p0_f")

        assert _ids(first) == ["p5_f", "p7_f", "p9_f"]
        assert _ids(first) == _ids(second)

    def test_result_size_is_bounded_by_k(self, engine, db_manager):
        _save_floors(
            db_manager,
            make_floor("p0_f", "p0"),
            *[make_floor(f"q{n}_f", f"q{n}", area=50.0 + n * 0.5) for n in range(8)],
        )

        assert len(engine.find_similar_floors("p0_f", k=5)) == 5
        assert engine.find_similar_floors("p0_f", k=0) == []

    def test_degenerate_reference_has_no_matches(self, engine, db_manager):
        reference = dataclasses.replace(make_floor("p0_f", "p0"), bounding_box_aspect=math.inf)
        _save_floors(db_manager, reference, make_floor("p1_a", "p1"))

        assert engine.find_similar_floors("p0_f") == []

    def test_degenerate_candidates_never_match(self, engine, db_manager):
        flat = dataclasses.replace(make_floor("p1_flat", "p1"), bounding_box_aspect=math.inf)
        _save_floors(db_manager, make_floor("p0_f", "p0"), flat)

        assert engine.find_similar_floors("p0_f") == []

    def test_small_reference_uses_area_floor(self, engine, db_manager):
        _save_floors(
            db_manager,
            make_floor("p0_f", "p0", area=10.0),
            make_floor("p1_a", "p1", area=11.0),
        )

        [result] = engine.find_similar_floors("p0_f")

        assert result.score == pytest.approx(0.3 * 1 / 30)

    def test_unknown_reference(self, engine):
        with pytest.raises(NotFoundError):
            engine.find_similar_floors("missing")

    def test_explanation_matches_score(self, engine, db_manager):
        reference = make_floor("p0_f", "p0")
        _save_floors(db_manager, reference, make_floor("p3_c", "p3", room_count=7, area=53.0))

        [result] = engine.find_similar_floors("p0_f")
        explanation = engine.explain_floor(reference, result.record)

        assert explanation["score"] == pytest.approx(result.score)
        assert explanation["terms"][0]["name"] == "room_count"
        assert {t["name"] for t in explanation["terms"]} == {
            "area", "aspect", "rectangularity", "room_count",
        }


class TestSimilarRooms:
    """Room similarity."""

    def test_rooms_are_not_deduplicated(self, engine, db_manager):
        _save_rooms(
            db_manager,
            make_room("p0_r", "p0"),
            make_room("p1_r1", "p1"),
            make_room("p1_r2", "p1", area=12.5e6),
        )

        results = engine.find_similar_rooms("p0_r")

        assert _ids(results) == ["p1_r1", "p1_r2"]
        assert results[0].score == pytest.approx(0.0)
        assert results[1].score == pytest.approx(0.3 * 0.5e6 / 12e6)

    def test_type_filter(self, engine, db_manager):
        _save_rooms(
            db_manager,
            make_room("p0_r", "p0", room_type=1),
            make_room("p1_bath", "p1", room_type=2),
            make_room("p2_bed", "p2", room_type=1, area=12.2e6),
        )

        assert _ids(engine.find_similar_rooms("p0_r")) == ["p2_bed"]
        assert _ids(engine.find_similar_rooms("p0_r", match_type=False)) == ["p1_bath", "p2_bed"]

    def test_band_filters(self, engine, db_manager):
        _save_rooms(
            db_manager,
            make_room("p0_r", "p0"),
            make_room("p1_big", "p1", area=14e6),
            make_room("p2_long", "p2", aspect_ratio_inverted=1.8),
            make_room("p3_irregular", "p3", rectangularity=0.7),
            make_room("p4_ok", "p4", area=11e6, aspect_ratio_inverted=1.6, rectangularity=0.85),
        )

        results = engine.find_similar_rooms("p0_r")

        assert _ids(results) == ["p4_ok"]
        expected = 0.3 * 1e6 / 12e6 + 0.5 * 0.1 + 0.2 * 0.05
        assert results[0].score == pytest.approx(expected)

    def test_area_override(self, engine, db_manager):
        _save_rooms(db_manager, make_room("p0_r", "p0"), make_room("p1_big", "p1", area=20e6))

        assert engine.find_similar_rooms("p0_r") == []
        assert _ids(engine.find_similar_rooms("p0_r", area_from=10e6, area_to=25e6)) == ["p1_big"]

    def test_reference_project_is_excluded(self, engine, db_manager):
        _save_rooms(db_manager, make_room("p0_r", "p0"), make_room("p0_s", "p0"))

        assert engine.find_similar_rooms("p0_r") == []

    def test_degenerate_reference_has_no_matches(self, engine, db_manager):
        reference = dataclasses.replace(
            make_room("p0_r", "p0"), bounding_box_aspect_ratio_inverted=math.inf,
        )
        _save_rooms(db_manager, reference, make_room("p1_r", "p1"))

        assert engine.find_similar_rooms("p0_r") == []

    def test_result_size_is_bounded_by_k(self, engine, db_manager):
        _save_rooms(
            db_manager,
            make_room("p0_r", "p0"),
            *[make_room(f"p1_r{n}", "p1", area=12e6 + n * 1e5) for n in range(6)],
        )

        results = engine.find_similar_rooms("p0_r", k=4)

        assert _ids(results) == ["p1_r0", "p1_r1", "p1_r2", "p1_r3"]

    def test_unknown_reference(self, engine):
        with pytest.raises(NotFoundError):
            engine.find_similar_rooms("missing")
