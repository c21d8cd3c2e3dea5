"""
Constants used throughout the mock interview pipeline.
"""

# Score recorded for stages completed without grading
ACKNOWLEDGED_STAGE_SCORE = 100.0

# Default configuration values
DEFAULT_PAST_SESSIONS_LIMIT = 10
MAX_PAST_SESSIONS_LIMIT = 100
QUESTION_GENERATION_TEMPERATURE = 0.7

# Completion reasons
COMPLETION_REASON_ALL_STAGES = "all_stages_passed"
COMPLETION_REASON_STAGE_FAILED = "stage_failed"
COMPLETION_REASON_RESTARTED = "restarted"

# Overall feedback written on terminal sessions
COMPLETED_FEEDBACK = "You have completed all interview stages."
FAILED_FEEDBACK = "The interview ended because a stage score was below its passing score."

# Function-style actions accepted by the process-stage endpoint
class PipelineAction:
    GET_STAGES = "get_stages"
    GENERATE_QUESTIONS = "generate_questions"
    EVALUATE_ANSWERS = "evaluate_answers"
    BOOK_SLOT = "book_slot"
    COMPLETE_STAGE = "complete_stage"
    ALL = (GET_STAGES, GENERATE_QUESTIONS, EVALUATE_ANSWERS, BOOK_SLOT, COMPLETE_STAGE)
