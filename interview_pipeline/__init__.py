"""
{SYSTEM_NAME} Package.

This package provides the stage transition engine and HTTP API for staged
mock interviews.
"""

from interview_pipeline.utils.config import SYSTEM_NAME

__version__ = "0.1.0"
