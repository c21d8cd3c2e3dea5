"""Pydantic models for interview sessions, stages and results."""
