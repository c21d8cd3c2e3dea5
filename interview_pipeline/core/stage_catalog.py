"""
Stage catalog for the mock interview pipeline.

The catalog is the ordered, immutable list of stage definitions a session is
measured against. Results reference stages by ``stage_id``; ``order`` is only
used for sequencing and sorting.
"""
import json
import logging
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from interview_pipeline.core.errors import CatalogError, PipelineValidationError
from interview_pipeline.models.pipeline import StageDefinition, StageType
from interview_pipeline.utils.config import get_pipeline_config
from interview_pipeline.utils.profiling import timed_function

logger = logging.getLogger(__name__)

DEFAULT_STAGES: List[StageDefinition] = [
    StageDefinition(
        stage_id="interview_instructions",
        name="Interview Instructions",
        order=1,
        description="Receive detailed interview process instructions and guidelines via email.",
        stage_type=StageType.EMAIL_INFO,
    ),
    StageDefinition(
        stage_id="technical_assessment_slot_booking",
        name="Technical Assessment Slot Booking",
        order=2,
        description="Book your preferred slot for the Technical Assessment round.",
        stage_type=StageType.SLOT_BOOKING,
        requires_slot_booking=True,
    ),
    StageDefinition(
        stage_id="technical_assessment",
        name="Technical Assessment",
        order=3,
        description="Role-specific technical questions to assess your domain knowledge and problem-solving skills.",
        question_count=8,
        time_per_question=150,
        passing_score=70,
        stage_type=StageType.ASSESSMENT,
        auto_progress=False,
    ),
    StageDefinition(
        stage_id="demo_slot_booking",
        name="Demo Slot Booking",
        order=4,
        description="Book your preferred interview slot for the Demo Round.",
        stage_type=StageType.SLOT_BOOKING,
        requires_slot_booking=True,
    ),
    StageDefinition(
        stage_id="demo_round",
        name="Demo Round",
        order=5,
        description="Live teaching demonstration evaluated for teaching clarity, subject knowledge and presentation skills.",
        question_count=1,
        time_per_question=600,
        passing_score=65,
        stage_type=StageType.DEMO,
    ),
    StageDefinition(
        stage_id="demo_feedback",
        name="Demo Feedback",
        order=6,
        description="View detailed feedback metrics and evaluation of your demo teaching performance.",
        stage_type=StageType.FEEDBACK,
    ),
    StageDefinition(
        stage_id="final_review_hr",
        name="Final Review (HR)",
        order=7,
        description="HR round - submit required documents for verification and final review.",
        question_count=4,
        time_per_question=120,
        passing_score=75,
        stage_type=StageType.HR_DOCUMENTS,
    ),
    StageDefinition(
        stage_id="all_reviews",
        name="All Reviews",
        order=8,
        description="View a summary of all interview stages, scores, and the final assessment.",
        stage_type=StageType.REVIEW,
        auto_progress=False,
    ),
]


class StageCatalog:
    """Ordered, validated collection of stage definitions."""

    def __init__(self, stages: Iterable[StageDefinition]):
        ordered = sorted(stages, key=lambda stage: stage.order)
        if not ordered:
            raise CatalogError("Stage catalog must contain at least one stage")

        orders = [stage.order for stage in ordered]
        if orders != list(range(1, len(ordered) + 1)):
            raise CatalogError(f"Stage orders must be contiguous starting at 1, got {orders}")

        stage_ids = [stage.stage_id for stage in ordered]
        if len(set(stage_ids)) != len(stage_ids):
            raise CatalogError(f"Stage ids must be unique, got {stage_ids}")

        self._stages = tuple(ordered)
        self._by_id = {stage.stage_id: stage for stage in ordered}

    def get_stages(self) -> List[StageDefinition]:
        """Return all stages ordered by ``order`` ascending."""
        return list(self._stages)

    @property
    def last_order(self) -> int:
        return len(self._stages)

    def contains(self, order: Any) -> bool:
        return isinstance(order, int) and not isinstance(order, bool) and 1 <= order <= self.last_order

    def get_stage(self, order: Any) -> StageDefinition:
        """Return the stage at ``order`` or raise ``PipelineValidationError``."""
        if not self.contains(order):
            raise PipelineValidationError(f"Invalid stage order {order!r}; expected 1..{self.last_order}")
        return self._stages[order - 1]

    def get_stage_by_id(self, stage_id: str) -> Optional[StageDefinition]:
        return self._by_id.get(stage_id)

    def next_stage(self, order: int) -> Optional[StageDefinition]:
        if order >= self.last_order:
            return None
        return self._stages[order]

    def __len__(self) -> int:
        return len(self._stages)

    def __iter__(self):
        return iter(self._stages)


def stages_from_dicts(raw_stages: List[Dict[str, Any]]) -> List[StageDefinition]:
    """Build stage definitions from plain dictionaries (catalog files)."""
    try:
        return [StageDefinition(**raw) for raw in raw_stages]
    except (TypeError, ValidationError) as e:
        raise CatalogError(f"Invalid stage definition: {e}") from e


@timed_function(log_level=logging.DEBUG)
def load_stage_catalog(path: Optional[str] = None) -> StageCatalog:
    """
    Load the stage catalog.

    Args:
        path: JSON file holding a list of stage definitions, or an object with
            a ``stages`` list. Defaults to the configured catalog path; the
            built-in catalog is used when neither is set.

    Returns:
        StageCatalog instance
    """
    path = path or get_pipeline_config()["catalog_path"]
    if not path:
        logger.info(f"Using built-in stage catalog with {len(DEFAULT_STAGES)} stages")
        return StageCatalog(DEFAULT_STAGES)

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise CatalogError(f"Could not read stage catalog {path}: {e}") from e

    raw_stages = data.get("stages") if isinstance(data, dict) else data
    if not isinstance(raw_stages, list):
        raise CatalogError(f"Stage catalog {path} must contain a list of stages")

    catalog = StageCatalog(stages_from_dicts(raw_stages))
    logger.info(f"Loaded stage catalog from {path} with {len(catalog)} stages")
    return catalog
