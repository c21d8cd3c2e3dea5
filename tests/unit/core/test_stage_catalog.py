"""
Unit tests for the stage catalog.
"""
import json

import pytest

from interview_pipeline.core.errors import CatalogError, PipelineValidationError
from interview_pipeline.core.stage_catalog import DEFAULT_STAGES, StageCatalog, load_stage_catalog, stages_from_dicts

from conftest import make_stage


class TestStageCatalog:
    """Test StageCatalog ordering rules and lookups."""

    def test_default_catalog(self):
        catalog = StageCatalog(DEFAULT_STAGES)

        assert len(catalog) == 8
        assert [stage.order for stage in catalog] == list(range(1, 9))
        assert catalog.get_stage(3).stage_id == "technical_assessment"
        assert catalog.get_stage(3).passing_score == 70
        assert catalog.get_stage(3).is_assessed is True
        assert catalog.get_stage(1).is_assessed is False
        assert catalog.get_stage(2).requires_slot_booking is True

    def test_stages_sorted_by_order(self):
        catalog = StageCatalog([make_stage(2), make_stage(1), make_stage(3)])

        assert [stage.order for stage in catalog.get_stages()] == [1, 2, 3]
        assert catalog.last_order == 3

    def test_gap_in_orders_rejected(self):
        with pytest.raises(CatalogError):
            StageCatalog([make_stage(1), make_stage(3)])

    def test_duplicate_order_rejected(self):
        with pytest.raises(CatalogError):
            StageCatalog([make_stage(1), make_stage(1, stage_id="other")])

    def test_duplicate_stage_id_rejected(self):
        with pytest.raises(CatalogError):
            StageCatalog([make_stage(1), make_stage(2, stage_id="stage_1")])

    def test_empty_catalog_rejected(self):
        with pytest.raises(CatalogError):
            StageCatalog([])

    @pytest.mark.parametrize("order", [0, 4, -1, "2", None, True, 2.0])
    def test_get_stage_rejects_invalid_order(self, order):
        catalog = StageCatalog([make_stage(1), make_stage(2), make_stage(3)])

        with pytest.raises(PipelineValidationError):
            catalog.get_stage(order)

    def test_next_stage(self):
        catalog = StageCatalog([make_stage(1), make_stage(2)])

        assert catalog.next_stage(1).order == 2
        assert catalog.next_stage(2) is None

    def test_get_stage_by_id(self):
        catalog = StageCatalog([make_stage(1), make_stage(2)])

        assert catalog.get_stage_by_id("stage_2").order == 2
        assert catalog.get_stage_by_id("unknown") is None

    def test_stage_definitions_are_immutable(self):
        stage = make_stage(1)

        with pytest.raises(Exception):
            stage.passing_score = 10


class TestLoadStageCatalog:
    """Test loading catalogs from JSON files."""

    def test_builtin_catalog_without_path(self, monkeypatch):
        monkeypatch.setattr(
            "interview_pipeline.core.stage_catalog.get_pipeline_config",
            lambda: {"catalog_path": None, "retry_limit": 0, "past_sessions_limit": 10},
        )

        catalog = load_stage_catalog()

        assert len(catalog) == len(DEFAULT_STAGES)

    def test_load_list_file(self, tmp_path):
        path = tmp_path / "stages.json"
        path.write_text(json.dumps([
            {"stage_id": "screening", "name": "Screening", "order": 1, "question_count": 3, "passing_score": 60},
            {"stage_id": "summary", "name": "Summary", "order": 2, "stage_type": "review"},
        ]))

        catalog = load_stage_catalog(str(path))

        assert [stage.stage_id for stage in catalog] == ["screening", "summary"]
        assert catalog.get_stage(1).is_assessed is True
        assert catalog.get_stage(2).is_assessed is False

    def test_load_object_file(self, tmp_path):
        path = tmp_path / "stages.json"
        path.write_text(json.dumps({"stages": [{"stage_id": "only", "name": "Only", "order": 1}]}))

        assert len(load_stage_catalog(str(path))) == 1

    def test_missing_file(self, tmp_path):
        with pytest.raises(CatalogError):
            load_stage_catalog(str(tmp_path / "missing.json"))

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "stages.json"
        path.write_text("{not json")

        with pytest.raises(CatalogError):
            load_stage_catalog(str(path))

    def test_invalid_stage_definition(self):
        with pytest.raises(CatalogError):
            stages_from_dicts([{"name": "No id", "order": 1, "passing_score": 150}])
