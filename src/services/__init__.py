"""
AI services backed by Gemini.

The job-match features never fabricate scores: they raise AIServiceError
once retries are exhausted. Advisory features degrade to fixed content.
"""

from src.services.gemini_client import GeminiClient, get_gemini_client, reset_gemini_client
from src.services.job_match_service import (
    CareerInsight,
    InterviewQuestions,
    JobMatchAnalysis,
    JobMatchService,
    ResumeOptimizationSuggestion,
)

__all__ = [
    # Client
    "GeminiClient",
    "get_gemini_client",
    "reset_gemini_client",
    # Service
    "JobMatchService",
    # Models
    "JobMatchAnalysis",
    "ResumeOptimizationSuggestion",
    "CareerInsight",
    "InterviewQuestions",
]
