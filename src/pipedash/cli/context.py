"""Shared CLI context and utilities."""

from pathlib import Path

import click
from dotenv import load_dotenv

from ..analysis import AnalysisLock
from ..config import CONFIG_FILENAME, PipelineLocation, load_config, locate_pipeline
from ..llm import LLMClient


class ProjectContext:
    """Context object holding project configuration.

    Owns the process-wide AnalysisLock; every command that runs a pipeline
    analysis takes it from here.
    """

    def __init__(self, project_dir: Path):
        self.project_dir = project_dir.resolve()
        self.config_path = self.project_dir / CONFIG_FILENAME
        self.env_path = self.project_dir / ".env"
        self.config = load_config(self.config_path)
        self.lock = AnalysisLock()

    def load_env(self):
        """Load environment variables from .env file."""
        if self.env_path.exists():
            load_dotenv(self.env_path)
            return True
        return False

    def create_client(self) -> LLMClient:
        """LLM client configured from the llm section of pipedash.yaml."""
        return LLMClient(
            timeout=self.config.llm.timeout,
            max_retries=self.config.llm.max_retries,
        )

    def locate_pipeline(self, slug: str) -> PipelineLocation:
        return locate_pipeline(self.config, self.project_dir, slug)


pass_context = click.make_pass_decorator(ProjectContext)
