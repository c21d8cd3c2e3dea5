"""
Scoring evaluator for mock interview stages.

The evaluator generates questions for a stage and grades a candidate's answers
into an ``EvaluationResult``. Any failure (timeout, provider error, malformed
output) is raised as ``EvaluatorError`` so the caller can retry the stage
without any state having been written.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI
from pydantic import BaseModel, Field, ValidationError

from interview_pipeline.ai.prompts.pipeline_prompts import (
    EVALUATION_SYSTEM_PROMPT,
    QUESTION_SYSTEM_PROMPT,
    build_evaluation_prompt,
    build_question_generation_prompt,
)
from interview_pipeline.core.errors import EvaluatorError
from interview_pipeline.models.pipeline import EvaluationResult, StageDefinition, StageQuestion
from interview_pipeline.utils.config import get_llm_config
from interview_pipeline.utils.constants import QUESTION_GENERATION_TEMPERATURE
from interview_pipeline.utils.profiling import async_timed_function

logger = logging.getLogger(__name__)


class GeneratedQuestions(BaseModel):
    """Structured output schema for question generation."""
    questions: List[StageQuestion] = Field(..., description="Generated interview questions")


class ScoringEvaluator(ABC):
    """Contract for the external question generator and answer grader."""

    @abstractmethod
    async def generate_questions(
        self, stage: StageDefinition, candidate_profile: Optional[Dict[str, Any]] = None
    ) -> List[StageQuestion]:
        """Generate the questions for ``stage``."""

    @abstractmethod
    async def evaluate_answers(
        self,
        stage: StageDefinition,
        questions: List[StageQuestion],
        answers: List[str],
        candidate_profile: Optional[Dict[str, Any]] = None,
    ) -> EvaluationResult:
        """Grade ``answers`` for ``stage``."""


class GeminiScoringEvaluator(ScoringEvaluator):
    """Scoring evaluator backed by Gemini through LangChain structured output."""

    def __init__(
        self,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        timeout_seconds: Optional[float] = None,
        llm: Optional[Any] = None,
        question_llm: Optional[Any] = None,
    ):
        llm_config = get_llm_config()
        self.model = model or llm_config["model"]
        self.timeout_seconds = timeout_seconds or llm_config["timeout_seconds"]

        # Lower temperature for more consistent scoring
        self.llm = llm or ChatGoogleGenerativeAI(
            model=self.model,
            temperature=llm_config["temperature"] if temperature is None else temperature,
        )
        self.question_llm = question_llm or llm or ChatGoogleGenerativeAI(
            model=self.model,
            temperature=QUESTION_GENERATION_TEMPERATURE,
        )

    @async_timed_function(log_level=logging.INFO)
    async def generate_questions(
        self, stage: StageDefinition, candidate_profile: Optional[Dict[str, Any]] = None
    ) -> List[StageQuestion]:
        if not stage.is_assessed:
            return []

        logger.info(f"Generating {stage.question_count} questions for stage '{stage.name}'")
        runnable = self.question_llm.with_structured_output(GeneratedQuestions)
        messages = [
            SystemMessage(content=QUESTION_SYSTEM_PROMPT),
            HumanMessage(content=build_question_generation_prompt(stage, candidate_profile)),
        ]
        output = await self._invoke(runnable, messages, "generate_questions")
        generated = self._coerce(output, GeneratedQuestions, "generate_questions")
        if not generated.questions:
            raise EvaluatorError(f"No questions generated for stage '{stage.name}'")
        return generated.questions

    @async_timed_function(log_level=logging.INFO)
    async def evaluate_answers(
        self,
        stage: StageDefinition,
        questions: List[StageQuestion],
        answers: List[str],
        candidate_profile: Optional[Dict[str, Any]] = None,
    ) -> EvaluationResult:
        logger.info(f"Evaluating {len(answers)} answers for stage '{stage.name}'")
        runnable = self.llm.with_structured_output(EvaluationResult)
        messages = [
            SystemMessage(content=EVALUATION_SYSTEM_PROMPT),
            HumanMessage(content=build_evaluation_prompt(stage, questions, answers, candidate_profile)),
        ]
        output = await self._invoke(runnable, messages, "evaluate_answers")
        return self._coerce(output, EvaluationResult, "evaluate_answers")

    async def _invoke(self, runnable: Any, messages: List[Any], operation: str) -> Any:
        try:
            return await asyncio.wait_for(runnable.ainvoke(messages), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            logger.warning(f"Evaluator {operation} timed out after {self.timeout_seconds}s")
            raise EvaluatorError(f"Evaluator {operation} timed out") from e
        except ValidationError as e:
            logger.warning(f"Evaluator {operation} returned malformed data: {e}")
            raise EvaluatorError(f"Evaluator {operation} returned malformed data") from e
        except Exception as e:
            logger.error(f"Evaluator {operation} failed: {e}")
            raise EvaluatorError(f"Evaluator {operation} failed: {e}") from e

    @staticmethod
    def _coerce(output: Any, schema: type, operation: str) -> Any:
        if isinstance(output, schema):
            return output
        if isinstance(output, dict):
            try:
                return schema(**output)
            except ValidationError as e:
                raise EvaluatorError(f"Evaluator {operation} returned malformed data") from e
        raise EvaluatorError(f"Evaluator {operation} returned no structured output")
