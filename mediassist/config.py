"""Application configuration via environment variables."""

from __future__ import annotations

import logging

from pydantic_settings import BaseSettings

log = logging.getLogger("mediassist.config")

SUPPORTED_PROVIDERS = ("claude", "ollama")


class Settings(BaseSettings):
    # LLM
    llm_provider: str = "claude"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-5"
    anthropic_base_url: str = "https://api.anthropic.com/v1"
    ollama_model: str = "qwen2.5:7b"
    ollama_url: str = "http://localhost:11434"
    llm_temperature: float = 0.4
    llm_max_tokens: int = 1024
    llm_timeout_seconds: float = 30.0

    # Assistant persona
    hospital_name: str = "City Hospital"
    assistant_name: str = "MediAssist"

    # Notification defaults (persisted values take over once saved)
    admin_phone: str = ""
    auto_send: bool = False
    dispatch_delay_seconds: float = 1.0

    # Storage
    data_path: str = "data/mediassist.json"

    debug: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    def validate_startup(self) -> list[str]:
        """Validate configuration at startup. Returns warnings, raises on errors."""
        warnings: list[str] = []
        _placeholders = {"sk-ant-...", "your-api-key"}

        if self.llm_provider not in SUPPORTED_PROVIDERS:
            warnings.append(
                f"LLM_PROVIDER={self.llm_provider!r} is not supported; "
                f"expected one of {', '.join(SUPPORTED_PROVIDERS)}."
            )

        # LLM key, required for Claude
        if self.llm_provider == "claude":
            if not self.anthropic_api_key or self.anthropic_api_key in _placeholders:
                raise ValueError(
                    "ANTHROPIC_API_KEY is missing or still a placeholder. "
                    "Set it in .env to use Claude."
                )

        if self.auto_send and not self.admin_phone:
            warnings.append(
                "AUTO_SEND is on but ADMIN_PHONE is empty; notifications will "
                "open without a recipient."
            )

        if self.dispatch_delay_seconds < 0:
            warnings.append("DISPATCH_DELAY_SECONDS is negative; treating as 0.")

        return warnings


settings = Settings()
