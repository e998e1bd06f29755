from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SkillGraphSettings(BaseSettings):
    """Environment settings, read from ``SKILLGRAPH_*`` variables."""

    model_config = SettingsConfigDict(
        env_prefix="SKILLGRAPH_",
        env_ignore_empty=True,
        extra="ignore",
    )

    alternatives_limit: int = Field(default=3, ge=0, description="Ranked alternatives kept per step")
    output_dir: str = Field(default="output/report", description="Directory for the HTML report")
    report_title: str = Field(default="SkillGraph Workflow Report")
    generate_report: bool = Field(default=True)
    use_graph: bool = Field(default=True, description="Use graph continuity edges when assembling")
    log_level: str = Field(default="INFO")
