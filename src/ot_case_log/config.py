"""Runtime settings read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

from .exceptions import ConfigurationError

ENV_PREFIX = "OT_CASE_LOG_"

DEFAULT_DATA_DIR = Path.home() / ".ot-case-log"
DEFAULT_LLM_BASE_URL = "https://api.openai.com/v1"
DEFAULT_LLM_MODEL = "gpt-4.1-mini"


@dataclass(frozen=True)
class Settings:
    """Application settings.

    ``llm_api_key`` may be empty; advisory calls are then disabled and the
    static reference lists are used instead.
    """

    data_dir: Path = DEFAULT_DATA_DIR
    user_id: str = "local"
    llm_base_url: str = DEFAULT_LLM_BASE_URL
    llm_model: str = DEFAULT_LLM_MODEL
    llm_api_key: str = ""
    llm_timeout: float = 15.0
    llm_max_retries: int = 2

    @property
    def advisory_enabled(self) -> bool:
        return bool(self.llm_api_key)

    @classmethod
    def from_env(
        cls, env: dict[str, str] | None = None, dotenv: bool = True
    ) -> Settings:
        """
        Build settings from ``OT_CASE_LOG_*`` environment variables.

        Args:
            env: Mapping to read instead of ``os.environ`` (used in tests)
            dotenv: Load a ``.env`` file from the working directory first

        Raises:
            ConfigurationError: If a numeric setting cannot be parsed
        """
        if env is None:
            if dotenv:
                load_dotenv(find_dotenv(usecwd=True))
            env = dict(os.environ)

        def get(name: str, default: str) -> str:
            return env.get(f"{ENV_PREFIX}{name}", default).strip() or default

        try:
            timeout = float(get("LLM_TIMEOUT", str(cls.llm_timeout)))
            retries = int(get("LLM_MAX_RETRIES", str(cls.llm_max_retries)))
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric setting: {e}") from e

        settings = cls(
            data_dir=Path(get("DATA_DIR", str(DEFAULT_DATA_DIR))).expanduser(),
            user_id=get("USER", "local"),
            llm_base_url=get("LLM_BASE_URL", DEFAULT_LLM_BASE_URL).rstrip("/"),
            llm_model=get("LLM_MODEL", DEFAULT_LLM_MODEL),
            llm_api_key=env.get(f"{ENV_PREFIX}LLM_API_KEY", "").strip(),
            llm_timeout=timeout,
            llm_max_retries=retries,
        )
        settings.check()
        return settings

    def with_overrides(self, **overrides: object) -> Settings:
        """Copy with non-None overrides applied (e.g. from CLI flags)."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        if "data_dir" in changes:
            changes["data_dir"] = Path(str(changes["data_dir"])).expanduser()
        updated = replace(self, **changes)
        updated.check()
        return updated

    def check(self) -> None:
        """Validate setting values.

        Raises:
            ConfigurationError: If a value is out of range
        """
        if self.llm_timeout <= 0:
            raise ConfigurationError("LLM timeout must be positive")
        if self.llm_max_retries < 0:
            raise ConfigurationError("LLM max retries cannot be negative")
        if not self.user_id or "/" in self.user_id or self.user_id in {".", ".."}:
            raise ConfigurationError(f"Invalid user id: {self.user_id!r}")
