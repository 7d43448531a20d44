# config.py
# Runtime configuration. Values come from the environment (and a .env file).

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
OPENAI_BASE_URL = "https://api.openai.com/v1"


class EngineConfig(BaseModel):
    """An OpenAI-compatible chat completion endpoint."""

    base_url: str
    api_key: str | None = None
    default_model: str = ""


class LlmConfig(BaseModel):
    engine: str = "openrouter"
    model: str = "anthropic/claude-3.5-haiku"
    locale: str = ""
    force_locale: bool = False


class Configuration(BaseModel):
    llm: LlmConfig = Field(default_factory=LlmConfig)
    engines: dict[str, EngineConfig] = Field(default_factory=dict)
    plugins: dict[str, dict] = Field(default_factory=dict, description="Per-plugin settings keyed by plugin name.")
    instructions: dict[str, str] = Field(default_factory=dict, description="Overrides for model instructions.")
    agents_dir: Path = Path("agents")
    workspace_dir: Path = Path("workspace")


def _default_engines() -> dict[str, EngineConfig]:
    return {
        "openrouter": EngineConfig(
            base_url=OPENROUTER_BASE_URL,
            api_key=os.getenv("OPENROUTER_API_KEY"),
            default_model="anthropic/claude-3.5-haiku",
        ),
        "openai": EngineConfig(
            base_url=os.getenv("OPENAI_BASE_URL", OPENAI_BASE_URL),
            api_key=os.getenv("OPENAI_API_KEY"),
            default_model="gpt-4o-mini",
        ),
    }


def load_config() -> Configuration:
    """Build the configuration from AGENT_RUNNER_* variables."""
    llm = LlmConfig()
    if os.getenv("AGENT_RUNNER_ENGINE"):
        llm.engine = os.environ["AGENT_RUNNER_ENGINE"]
    if os.getenv("AGENT_RUNNER_MODEL"):
        llm.model = os.environ["AGENT_RUNNER_MODEL"]
    llm.locale = os.getenv("AGENT_RUNNER_LOCALE", "")

    return Configuration(
        llm=llm,
        engines=_default_engines(),
        agents_dir=Path(os.getenv("AGENT_RUNNER_AGENTS_DIR", "agents")),
        workspace_dir=Path(os.getenv("AGENT_RUNNER_WORKSPACE_DIR", "workspace")),
    )
