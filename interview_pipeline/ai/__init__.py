"""
AI components for the {SYSTEM_NAME} platform.

This package contains the prompt templates used by the scoring evaluator.
"""

from interview_pipeline.ai.prompts.pipeline_prompts import (
    QUESTION_SYSTEM_PROMPT,
    EVALUATION_SYSTEM_PROMPT,
    build_question_generation_prompt,
    build_evaluation_prompt,
)

__all__ = [
    'QUESTION_SYSTEM_PROMPT',
    'EVALUATION_SYSTEM_PROMPT',
    'build_question_generation_prompt',
    'build_evaluation_prompt',
]
