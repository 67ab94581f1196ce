"""
Configuration management for Nova Support.
Loads settings from environment variables with sensible defaults.
"""

from pathlib import Path
from typing import Optional, List
from pydantic_settings import BaseSettings
from pydantic import Field
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # =========================
    # Application Settings
    # =========================
    APP_NAME: str = "Nova Support"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = Field(default=False, description="Enable debug mode")
    ENVIRONMENT: str = Field(default="development", description="Environment name")

    # =========================
    # API Keys
    # =========================
    GROQ_API_KEY: Optional[str] = Field(
        default=None,
        description="Groq API key; sessions refuse to start without it"
    )

    # =========================
    # Server Settings
    # =========================
    HOST: str = Field(default="0.0.0.0", description="Server host")
    PORT: int = Field(default=8000, description="Server port")

    # =========================
    # Model Settings
    # =========================
    LLM_MODEL_ID: str = Field(
        default="llama-3.3-70b-versatile",
        description="Groq chat model used by both channels"
    )
    STT_MODEL_ID: str = Field(
        default="whisper-large-v3-turbo",
        description="Groq transcription model for the voice channel"
    )
    TTS_MODEL_ID: str = Field(
        default="playai-tts",
        description="Groq speech model for the voice channel"
    )
    TTS_VOICE: str = Field(default="Celeste-PlayAI", description="Speech voice")
    LLM_TIMEOUT_SECONDS: float = Field(default=15.0, description="Model API timeout")
    LLM_TEMPERATURE: float = Field(default=0.7, description="Sampling temperature")
    LLM_MAX_TOKENS: int = Field(default=1024, description="Maximum completion tokens")

    # =========================
    # Conversation Settings
    # =========================
    MAX_TOOL_ROUNDS: int = Field(
        default=5,
        description="Tool-call rounds allowed per user message"
    )
    MAX_CONVERSATION_TURNS: int = Field(
        default=50,
        description="Transcript turns kept per session"
    )
    SEARCH_RESULT_LIMIT: int = Field(
        default=5,
        description="Products returned to the model per search"
    )
    TOOL_RESULT_TIMEOUT_SECONDS: float = Field(
        default=30.0,
        description="How long a live session waits for tool results"
    )

    # =========================
    # Integration Stubs
    # =========================
    ESCALATION_DELAY_SECONDS: float = Field(default=1.0, description="Simulated CRM latency")
    SURVEY_DELAY_SECONDS: float = Field(default=0.5, description="Simulated survey latency")
    INTEGRATION_DELAY_SECONDS: float = Field(default=0.8, description="Simulated ERP latency")
    ANALYTICS_DELAY_SECONDS: float = Field(default=0.6, description="Simulated report latency")

    # =========================
    # Audio Settings
    # =========================
    INPUT_SAMPLE_RATE: int = Field(default=16000, description="Capture sample rate in Hz")
    OUTPUT_SAMPLE_RATE: int = Field(default=24000, description="Playback sample rate in Hz")
    CAPTURE_CHUNK_SIZE: int = Field(default=4096, description="Samples per capture chunk")
    VOLUME_SCALE: float = Field(default=5.0, description="RMS multiplier for the volume meter")
    VAD_RMS_THRESHOLD: float = Field(default=0.02, description="RMS above which input is speech")
    VAD_SILENCE_MS: int = Field(default=700, description="Silence that ends an utterance")
    PLAYBACK_FRAGMENT_MS: int = Field(default=500, description="Synthesized audio fragment length")

    # =========================
    # Demo Data
    # =========================
    CATALOG_SEED: int = Field(default=42, description="Seed for the generated catalog")
    DEFAULT_CUSTOMER_ID: str = Field(default="ADMIN", description="Customer active at startup")

    # =========================
    # Logging Settings
    # =========================
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    ENABLE_AGENT_LOG: bool = Field(default=True, description="Write the markdown agent log")
    AGENT_LOG_PATH: Path = Field(
        default=Path("./logs/agent_log.md"),
        description="Path to agent markdown log"
    )

    # =========================
    # Supported Languages
    # =========================
    SUPPORTED_LANGUAGES: List[str] = Field(
        default=["en", "fr"],
        description="Supported language codes"
    )
    DEFAULT_LANGUAGE: str = Field(default="en", description="Default language")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Language mapping for prompts
LANGUAGE_NAMES = {
    "en": "English",
    "fr": "French (Français)"
}

# Product categories
CATEGORIES = [
    "T-Shirt",
    "Jeans",
    "Jacket",
    "Sneakers",
    "Hat",
    "Dress",
    "Hoodie"
]

# Umbrella terms that mean "any category"
GENERIC_CATEGORY_TERMS = {
    "apparel",
    "apparels",
    "clothing",
    "clothes"
}

# Order status definitions
ORDER_STATUSES = [
    "Processing",
    "Shipped",
    "Delivered",
    "Returned"
]

# Customer roles
CUSTOMER_ROLES = [
    "customer",
    "admin"
]
