# config.py
import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel


class Settings(BaseModel):
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4-turbo"
    openai_temperature: float = 0.1
    openai_max_tokens: int = 4000
    openai_max_attempts: int = 1

    database_url: str = ""
    supabase_url: str = ""
    supabase_service_key: str = ""
    storage_bucket: str = "uploads"

    upload_feature_name: str = "validations"
    user_id: Optional[str] = None

    ocr_languages: List[str] = ["en"]
    ocr_gpu: bool = False


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


def load_settings() -> Settings:
    """Read settings from the environment (and .env when present)."""
    load_dotenv()

    languages = [
        lang.strip()
        for lang in os.getenv("OCR_LANGUAGES", "en").split(",")
        if lang.strip()
    ]

    return Settings(
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4-turbo"),
        openai_temperature=float(os.getenv("OPENAI_TEMPERATURE", "0.1")),
        openai_max_tokens=int(os.getenv("OPENAI_MAX_TOKENS", "4000")),
        openai_max_attempts=int(os.getenv("OPENAI_MAX_ATTEMPTS", "1")),
        database_url=os.getenv("DATABASE_URL", ""),
        supabase_url=os.getenv("SUPABASE_URL", ""),
        supabase_service_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY", ""),
        storage_bucket=os.getenv("STORAGE_BUCKET", "uploads"),
        upload_feature_name=os.getenv("UPLOAD_FEATURE_NAME", "validations"),
        user_id=os.getenv("VCREADY_USER_ID") or None,
        ocr_languages=languages or ["en"],
        ocr_gpu=_flag(os.getenv("OCR_GPU")),
    )
