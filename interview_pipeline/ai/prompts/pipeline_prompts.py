"""
Prompts for the mock interview pipeline.

This module contains prompt templates used to generate stage questions and to
grade a candidate's answers for a stage.
"""
from typing import Any, Dict, List, Optional

from interview_pipeline.models.pipeline import StageDefinition, StageQuestion, StageType

QUESTION_SYSTEM_PROMPT = (
    "You are an expert HR interviewer and technical recruiter. Generate realistic interview "
    "questions based on the stage and candidate profile."
)

EVALUATION_SYSTEM_PROMPT = (
    "You are an expert HR interviewer and technical recruiter. Evaluate candidate answers "
    "objectively and provide constructive feedback."
)

QUESTION_GENERATION_PROMPT = """Generate {question_count} interview questions for the "{stage_name}" stage.

Stage Description: {stage_description}

{profile_info}

IMPORTANT: {subject_focus}

Requirements:
1. Questions should be directly related to the candidate's PRIMARY SUBJECT: {primary_subject}
2. Include subject-specific concepts, theories, and teaching approaches
3. Mix of difficulty levels (easy to challenging)
4. For multiple choice questions, provide 4 options
5. Include expected key points for text answers
6. Make questions specific to the candidate's experience level and background

For "{stage_name}" stage, focus on:
{stage_focus}

Generate exactly {question_count} questions numbered from 1."""

EVALUATION_PROMPT = """Evaluate the following interview answers for the "{stage_name}" stage.

Passing Score Required: {passing_score}%

Candidate Profile:
- Name: {full_name}
- Experience Level: {experience_level}

Questions and Answers:
{qa_pairs}

Evaluation Criteria:
1. Relevance and completeness of answers
2. Communication clarity
3. Technical accuracy (if applicable)
4. Professionalism and confidence
5. Specific examples and experiences mentioned

Provide:
- Overall score (0-100)
- Constructive feedback
- Key strengths (2-4 points)
- Areas for improvement (2-4 points)
- Individual question scores (0-100) and brief feedback"""

STAGE_FOCUS = {
    StageType.ASSESSMENT.value: (
        "- Deep knowledge of {subject} concepts\n"
        "- Problem-solving in {subject} contexts\n"
        "- Teaching methodologies for {subject}\n"
        "- Real classroom scenarios and student engagement\n"
        "- Subject-specific curriculum and exam patterns"
    ),
    StageType.DEMO.value: "- Teaching demonstration, presentation skills, subject knowledge",
    StageType.HR_DOCUMENTS.value: "- HR questions, document verification, future plans, final assessment",
}


def _profile_value(profile: Dict[str, Any], key: str, default: str) -> str:
    value = profile.get(key)
    if isinstance(value, list):
        value = ", ".join(str(item) for item in value)
    return str(value) if value else default


def format_candidate_profile(profile: Optional[Dict[str, Any]]) -> str:
    """Render the candidate profile block used by the question prompt."""
    if not profile:
        return "No profile information available."
    return "\n".join([
        "Candidate Profile:",
        f"- Name: {_profile_value(profile, 'full_name', 'Not specified')}",
        f"- Current Role: {_profile_value(profile, 'preferred_role', 'Not specified')}",
        f"- Experience Level: {_profile_value(profile, 'experience_level', 'Entry Level')}",
        f"- Skills: {_profile_value(profile, 'skills', 'Not specified')}",
        f"- Highest Qualification: {_profile_value(profile, 'highest_qualification', 'Not specified')}",
        f"- Primary Subject: {_profile_value(profile, 'primary_subject', 'General Knowledge')}",
        f"- Classes Handled: {_profile_value(profile, 'classes_handled', 'Not specified')}",
        f"- Segment: {_profile_value(profile, 'segment', 'Education')}",
    ])


def build_question_generation_prompt(stage: StageDefinition, profile: Optional[Dict[str, Any]] = None) -> str:
    """Build the prompt asking for ``stage.question_count`` questions."""
    profile = profile or {}
    subject = profile.get("primary_subject")
    if subject:
        subject_focus = f"Focus questions specifically on {subject} topics, concepts, and teaching methodologies for this subject."
    else:
        subject_focus = "Focus on general teaching aptitude and pedagogical skills."

    stage_focus = STAGE_FOCUS.get(stage.stage_type, "- Skills relevant to the stage description")
    return QUESTION_GENERATION_PROMPT.format(
        question_count=stage.question_count,
        stage_name=stage.name,
        stage_description=stage.description,
        profile_info=format_candidate_profile(profile),
        subject_focus=subject_focus,
        primary_subject=subject or "General",
        stage_focus=stage_focus.format(subject=subject or "the subject"),
    )


def format_qa_pairs(questions: List[StageQuestion], answers: List[str]) -> str:
    """Pair questions with answers by index; answers without a stored question are numbered."""
    blocks = []
    for index, answer in enumerate(answers):
        question = questions[index] if index < len(questions) else None
        lines = [f"Question {index + 1}: {question.question if question else 'Not recorded'}"]
        if question and question.expected_points:
            lines.append(f"Expected Points: {', '.join(question.expected_points)}")
        lines.append(f"Candidate Answer: {answer or 'No answer provided'}")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def build_evaluation_prompt(
    stage: StageDefinition,
    questions: List[StageQuestion],
    answers: List[str],
    profile: Optional[Dict[str, Any]] = None,
) -> str:
    """Build the grading prompt for one stage attempt."""
    profile = profile or {}
    return EVALUATION_PROMPT.format(
        stage_name=stage.name,
        passing_score=f"{stage.passing_score:g}",
        full_name=_profile_value(profile, "full_name", "Not specified"),
        experience_level=_profile_value(profile, "experience_level", "Entry Level"),
        qa_pairs=format_qa_pairs(questions, answers),
    )
