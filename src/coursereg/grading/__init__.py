"""Grading package - Grades, GPA and transcripts."""

from coursereg.grading.engine import GradingEngine
from coursereg.grading.gpa import compute_gpa, counts_toward_gpa
from coursereg.grading.models import GradeEntry, StudentStatistics, Transcript, TranscriptEntry

__all__ = [
    "GradeEntry",
    "GradingEngine",
    "StudentStatistics",
    "Transcript",
    "TranscriptEntry",
    "compute_gpa",
    "counts_toward_gpa",
]
