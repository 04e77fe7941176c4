"""Run configuration models."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .enums import SchedulingMode


class PhaseConfig(BaseModel):
    """Which provider/model serves a phase, and the caller's prompt text."""

    model_config = ConfigDict(frozen=True)

    provider: str = Field(description="Provider key, e.g. 'anthropic' or 'groq'")
    model: str = Field(description="Model identifier for the provider")
    custom_prompt: Optional[str] = Field(
        default=None, description="Caller-supplied instructions for this phase"
    )
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)


class RunConfig(BaseModel):
    """Immutable configuration for one scheduler run.

    Phase 1 (structure) may use a different provider or model than
    phase 2 (content).
    """

    model_config = ConfigDict(frozen=True)

    structure: PhaseConfig
    content: PhaseConfig
    auto_approve: bool = Field(
        default=False,
        description="Skip the review gate and queue outlines straight for phase 2",
    )
    scheduling: SchedulingMode = SchedulingMode.PHASE_FIRST
    tags: list[str] = Field(default_factory=lambda: ["auto-curriculum"])
