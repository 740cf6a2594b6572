"""
Domain services containing pure business logic.
"""

from domain.services.feedback_service import (
    Feedback,
    LetterResult,
    compute_feedback,
    format_feedback,
    is_correct,
)

__all__ = ["Feedback", "LetterResult", "compute_feedback", "format_feedback", "is_correct"]
