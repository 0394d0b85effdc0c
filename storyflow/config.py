from __future__ import annotations

import os
from typing import Optional

import yaml
from pydantic import BaseModel

from .constants import (
    DEFAULT_LLM_ATTEMPTS,
    DEFAULT_LLM_MODEL,
    DEFAULT_MAX_STEP_ITERATIONS,
    DEFAULT_STEP_TIMEOUT_SECONDS,
    DEFAULT_TOP_K,
)


class EngineConfig(BaseModel):
    """Bounds applied by the workflow engine to every step."""

    max_step_iterations: int = DEFAULT_MAX_STEP_ITERATIONS
    step_timeout_seconds: float = DEFAULT_STEP_TIMEOUT_SECONDS


class LLMConfig(BaseModel):
    """Model selection and retry policy for agent calls."""

    model: str = DEFAULT_LLM_MODEL
    max_attempts: int = DEFAULT_LLM_ATTEMPTS
    backoff_base: float = 1.5
    backoff_jitter: float = 0.5


class RetrievalConfig(BaseModel):
    """Embedding endpoint used to look up project documents."""

    enabled: bool = False
    embedding_url: str = "https://api.openai.com/v1/embeddings"
    embedding_model: str = "text-embedding-3-small"
    api_key: Optional[str] = None
    top_k: int = DEFAULT_TOP_K


class AuthConfig(BaseModel):
    jwt_secret: Optional[str] = None
    algorithm: str = "HS256"
    audience: Optional[str] = None
    leeway: int = 30


class JiraConfig(BaseModel):
    base_url: Optional[str] = None
    email: Optional[str] = None
    api_token: Optional[str] = None
    timeout: float = 30.0

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.email and self.api_token)


class ServerConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"


class StoryflowConfig(BaseModel):
    """Top-level configuration model."""

    database_url: Optional[str] = None
    engine: EngineConfig = EngineConfig()
    llm: LLMConfig = LLMConfig()
    retrieval: RetrievalConfig = RetrievalConfig()
    auth: AuthConfig = AuthConfig()
    jira: JiraConfig = JiraConfig()
    server: ServerConfig = ServerConfig()


def load_config(path: Optional[str] = None) -> StoryflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to STORYFLOW_CONFIG env
            variable or 'config.yaml' in the current directory.

    Secrets and connection strings can be supplied through the environment,
    which takes precedence over the file.
    """

    config_path = path or os.getenv("STORYFLOW_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = StoryflowConfig(**data)
    else:
        config = StoryflowConfig()

    env_db_url = os.getenv("STORYFLOW_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url

    env_model = os.getenv("STORYFLOW_MODEL")
    if env_model:
        config.llm.model = env_model

    env_secret = os.getenv("STORYFLOW_JWT_SECRET")
    if env_secret:
        config.auth.jwt_secret = env_secret

    env_openai = os.getenv("OPENAI_API_KEY")
    if env_openai and not config.retrieval.api_key:
        config.retrieval.api_key = env_openai

    for field in ("base_url", "email", "api_token"):
        value = os.getenv(f"JIRA_{field.upper()}")
        if value:
            setattr(config.jira, field, value)
    return config
