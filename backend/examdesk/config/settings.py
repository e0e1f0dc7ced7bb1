"""
Configuration settings for ExamDesk.
"""

import os
from decimal import Decimal

from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Application settings loaded from environment."""

    # Database
    MONGODB_URL: str = os.environ.get("MONGODB_URI", "mongodb://localhost:27017")
    DATABASE_NAME: str = os.environ.get("DB_NAME", "examdesk")
    # Multi-document transactions need a replica set
    MONGODB_TRANSACTIONS: bool = os.environ.get("MONGODB_TRANSACTIONS", "False").lower() == "true"

    # Server
    PORT: int = int(os.environ.get("PORT", 8001))
    HOST: str = os.environ.get("HOST", "0.0.0.0")
    DEBUG: bool = os.environ.get("DEBUG", "False").lower() == "true"
    CORS_ORIGINS: str = os.environ.get("CORS_ORIGINS", "*")

    # Exam rules
    QUESTIONS_PER_EXAM: int = 80
    VALID_ALTERNATIVES: tuple = ("A", "B", "C", "D", "E")
    INSTITUTIONAL_EMAIL_DOMAIN: str = os.environ.get("INSTITUTIONAL_EMAIL_DOMAIN", "@cepr.unsa.pe")
    EXAM_AREAS: tuple = ("Biomédicas", "Ingenierías", "Sociales")
    MAX_EXAM_POINTS: Decimal = Decimal("100")

    # Import pipeline
    STORE_BATCH_LIMIT: int = 500  # Hard per-commit operation limit of the store
    WRITE_BATCH_SIZE: int = 450  # Safety margin below STORE_BATCH_LIMIT
    VALIDATION_CHUNK_SIZE: int = 50
    CANDIDATE_LOOKUP_CHUNK_SIZE: int = 10  # "IN" query cardinality
    PROGRESS_EVERY: int = 10  # Records between progress events
    CHUNK_YIELD_SECONDS: float = float(os.environ.get("CHUNK_YIELD_SECONDS", 0))
    ERROR_PREVIEW_LIMIT: int = 3

    # Logging
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")

    def validate(self):
        """Validate critical settings."""
        if not self.MONGODB_URL:
            raise ValueError("MONGODB_URI environment variable not set")
        if self.WRITE_BATCH_SIZE >= self.STORE_BATCH_LIMIT:
            raise ValueError(
                f"WRITE_BATCH_SIZE ({self.WRITE_BATCH_SIZE}) must stay below "
                f"the store limit of {self.STORE_BATCH_LIMIT} operations"
            )
        return True


# Global settings instance
settings = Settings()
