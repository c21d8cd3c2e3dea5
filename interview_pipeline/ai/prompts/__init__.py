"""Prompt templates for question generation and answer evaluation."""
