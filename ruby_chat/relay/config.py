"""Relay configuration with environment variable loading.

Pydantic-based configuration for the chat vendors.
Groq is reached through its SDK, Qwen through any OpenAI-compatible router.
"""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

# Load environment variables from .env file
load_dotenv()

DEFAULT_GROQ_MODEL = "meta-llama/llama-4-maverick-17b-128e-instruct"


class RelayConfig(BaseModel):
    """Configuration for the chat relay.

    Missing API keys are tolerated here; the provider that needs a key
    fails the call instead, so the app still boots for upload/UI work.

    Attributes:
        groq_api_key: API key for Groq.
        qwen_api_key: API key for the Qwen-compatible router.
        qwen_base_url: Base URL of the OpenAI-compatible Qwen router.
        default_model: Model used when the caller omits one for Groq.
        temperature: Sampling temperature (0.0 = deterministic, 2.0 = creative).
        max_tokens: Maximum tokens in generated response.
        timeout: Seconds to wait on the vendor before giving up.
    """

    # Environment values go through the same validators as explicit ones
    model_config = ConfigDict(validate_default=True)

    groq_api_key: str = Field(
        default_factory=lambda: os.getenv("GROQ_API_KEY", ""),
        description="API key for Groq",
    )
    qwen_api_key: str = Field(
        default_factory=lambda: os.getenv("QWEN_API_KEY", ""),
        description="API key for the Qwen router",
    )
    qwen_base_url: str = Field(
        default_factory=lambda: os.getenv("QWEN_BASE_URL", "https://api.siliconflow.cn/v1"),
        description="OpenAI-compatible base URL serving Qwen models",
    )
    default_model: str = Field(
        default_factory=lambda: os.getenv("DEFAULT_MODEL", DEFAULT_GROQ_MODEL),
        description="Default Groq model",
    )
    temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for response generation",
    )
    max_tokens: int = Field(
        default=4096,
        ge=1,
        le=128000,
        description="Maximum tokens in generated response",
    )
    timeout: float = Field(default=120.0, gt=0, description="Vendor timeout in seconds")

    @field_validator("groq_api_key", "qwen_api_key")
    @classmethod
    def strip_api_key(cls, v: str) -> str:
        """Strip surrounding whitespace from API keys."""
        return v.strip()

    @field_validator("qwen_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


def get_relay_config() -> RelayConfig:
    """Create relay configuration from environment.

    Returns:
        Configured RelayConfig instance.
    """
    return RelayConfig()
