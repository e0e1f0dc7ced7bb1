"""ExamDesk - grading import backend for admission mock exams."""

__version__ = "1.0.0"
