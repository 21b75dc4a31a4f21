"""
Configuration management using Pydantic settings.
"""
from typing import List, Union
import os
from pydantic import AnyHttpUrl, validator
from pydantic_settings import BaseSettings
from dotenv import load_dotenv
load_dotenv()



class Settings(BaseSettings):
    """Application settings."""

    # API Configuration
    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "ExamPrep Adaptive Assessments"
    DEBUG: bool = True
    ENV: str = os.getenv("ENV", "development")

    # Database Configuration
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./examprep.db")

    # JWT Configuration
    SECRET_KEY: str = os.getenv("SECRET_KEY", "change-me")
    ALGORITHM: str = os.getenv("ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # LLMs Configuration
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    OPENAI_BASE_URL: str = os.getenv("OPENAI_BASE_URL", "")
    LLM_MODEL: str = os.getenv("LLM_MODEL", "gpt-4o-mini")

    # LangSmith Tracing Configuration
    LANGSMITH_TRACING: bool = os.getenv("LANGSMITH_TRACING", "false").lower() == "true"
    LANGSMITH_ENDPOINT: str = os.getenv("LANGSMITH_ENDPOINT", "")
    LANGSMITH_API_KEY: str = os.getenv("LANGSMITH_API_KEY", "")
    LANGSMITH_PROJECT: str = os.getenv("LANGSMITH_PROJECT", "")

    # Adaptive assessment configuration
    MAX_QUESTION_COUNT: int = int(os.getenv("MAX_QUESTION_COUNT", 100))
    DEFAULT_ESTIMATED_TIME: int = 120  # seconds per question
    STRENGTH_THRESHOLD: float = float(os.getenv("STRENGTH_THRESHOLD", 80))
    WEAKNESS_THRESHOLD: float = float(os.getenv("WEAKNESS_THRESHOLD", 50))
    CONFIDENCE_FULL_SAMPLE: int = int(os.getenv("CONFIDENCE_FULL_SAMPLE", 20))
    AI_QUESTION_GENERATION_ENABLED: bool = (
        os.getenv("AI_QUESTION_GENERATION_ENABLED", "false").lower() == "true"
    )
    AI_INSIGHTS_ENABLED: bool = os.getenv("AI_INSIGHTS_ENABLED", "false").lower() == "true"

    # CORS Configuration
    BACKEND_CORS_ORIGINS: Union[List[AnyHttpUrl], str] = "*"

    @validator("BACKEND_CORS_ORIGINS", pre=True)
    def assemble_cors_origins(cls, v):
        if v == "*" or v == ["*"]:
            return "*"
        if isinstance(v, str):
            return [i.strip() for i in v.split(",")]
        return v

    class Config:
        """Pydantic config."""

        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
