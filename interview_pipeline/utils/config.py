"""
Configuration module for {SYSTEM_NAME}.

This module provides configuration settings and utilities for the mock interview
pipeline service.
"""
import os
import logging
from typing import Dict, Any, List
from dotenv import load_dotenv

from interview_pipeline.utils.constants import DEFAULT_PAST_SESSIONS_LIMIT

# Get the absolute path to the project root directory
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
ENV_FILE_PATH = os.path.join(PROJECT_ROOT, ".env")

# Load environment variables from .env file if it exists
load_dotenv(ENV_FILE_PATH)


# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

# MongoDB configuration
MONGODB_URI = os.environ.get("MONGODB_URI", "mongodb://localhost:27017")
MONGODB_DATABASE = os.environ.get("MONGODB_DATABASE", "mock_interview")
MONGODB_SESSIONS_COLLECTION = os.environ.get("MONGODB_SESSIONS_COLLECTION", "mock_interview_sessions")
MONGODB_STAGE_RESULTS_COLLECTION = os.environ.get("MONGODB_STAGE_RESULTS_COLLECTION", "mock_interview_stage_results")
MONGODB_QUESTION_SETS_COLLECTION = os.environ.get("MONGODB_QUESTION_SETS_COLLECTION", "mock_interview_question_sets")

# LLM configuration
LLM_MODEL = os.environ.get("LLM_MODEL", "gemini-2.5-flash")
LLM_TEMPERATURE = float(os.environ.get("LLM_TEMPERATURE", "0.2"))
EVALUATOR_TIMEOUT_SECONDS = float(os.environ.get("EVALUATOR_TIMEOUT_SECONDS", "60"))

# Pipeline configuration
STAGE_RETRY_LIMIT = int(os.environ.get("STAGE_RETRY_LIMIT", "0"))  # 0 = one failed stage fails the session
STAGE_CATALOG_PATH = os.environ.get("STAGE_CATALOG_PATH", "")
PAST_SESSIONS_LIMIT = int(os.environ.get("PAST_SESSIONS_LIMIT", str(DEFAULT_PAST_SESSIONS_LIMIT)))

# Notification configuration
NOTIFICATION_WEBHOOK_URL = os.environ.get("NOTIFICATION_WEBHOOK_URL", "")
NOTIFICATION_API_KEY = os.environ.get("NOTIFICATION_API_KEY", "")
NOTIFICATION_TIMEOUT_SECONDS = float(os.environ.get("NOTIFICATION_TIMEOUT_SECONDS", "10"))
APP_URL = os.environ.get("APP_URL", "http://localhost:3000")

# Server configuration
HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", "8000"))
CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "http://localhost:3000")

# --- System Configuration ---
SYSTEM_NAME = os.getenv("SYSTEM_NAME", "Mock Interview Pipeline")

def get_db_config() -> Dict[str, str]:
    """
    Get MongoDB configuration.

    Returns:
        Dictionary with MongoDB configuration
    """
    return {
        "uri": MONGODB_URI,
        "database": MONGODB_DATABASE,
        "sessions_collection": MONGODB_SESSIONS_COLLECTION,
        "stage_results_collection": MONGODB_STAGE_RESULTS_COLLECTION,
        "question_sets_collection": MONGODB_QUESTION_SETS_COLLECTION,
    }

def get_llm_config() -> Dict[str, Any]:
    """
    Get LLM configuration.

    Returns:
        Dictionary with LLM configuration
    """
    return {
        "model": LLM_MODEL,
        "temperature": LLM_TEMPERATURE,
        "timeout_seconds": EVALUATOR_TIMEOUT_SECONDS,
    }

def get_pipeline_config() -> Dict[str, Any]:
    """
    Get interview pipeline configuration.

    Returns:
        Dictionary with pipeline configuration
    """
    return {
        "retry_limit": STAGE_RETRY_LIMIT,
        "catalog_path": STAGE_CATALOG_PATH or None,
        "past_sessions_limit": PAST_SESSIONS_LIMIT,
    }

def get_notification_config() -> Dict[str, Any]:
    """
    Get notification configuration.

    Returns:
        Dictionary with notification configuration
    """
    return {
        "webhook_url": NOTIFICATION_WEBHOOK_URL,
        "api_key": NOTIFICATION_API_KEY,
        "timeout_seconds": NOTIFICATION_TIMEOUT_SECONDS,
        "app_url": APP_URL,
    }

def get_server_config() -> Dict[str, Any]:
    """Get HTTP server configuration."""
    origins: List[str] = [origin.strip() for origin in CORS_ORIGINS.split(",") if origin.strip()]
    return {
        "host": HOST,
        "port": PORT,
        "cors_origins": origins,
    }

def log_config():
    """Log current configuration values (excluding sensitive information)."""
    logger.info("Current configuration:")
    logger.info(f"- MongoDB Database: {MONGODB_DATABASE}")
    logger.info(f"- Sessions Collection: {MONGODB_SESSIONS_COLLECTION}")
    logger.info(f"- Stage Results Collection: {MONGODB_STAGE_RESULTS_COLLECTION}")
    logger.info(f"- Question Sets Collection: {MONGODB_QUESTION_SETS_COLLECTION}")
    logger.info(f"- LLM Model: {LLM_MODEL}")
    logger.info(f"- LLM Temperature: {LLM_TEMPERATURE}")
    logger.info(f"- Evaluator Timeout: {EVALUATOR_TIMEOUT_SECONDS} seconds")
    logger.info(f"- Stage Retry Limit: {STAGE_RETRY_LIMIT}")
    logger.info(f"- Stage Catalog: {STAGE_CATALOG_PATH or 'built-in'}")
    logger.info(f"- Notification Webhook: {'Configured' if NOTIFICATION_WEBHOOK_URL else 'Not configured (logging only)'}")
    logger.info(f"- Notification API Key: {'Configured' if NOTIFICATION_API_KEY else 'Not configured'}")
