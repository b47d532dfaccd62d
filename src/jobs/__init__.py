"""Jobs module for the scraping pipeline and its schedule."""

from src.jobs import scheduler
from src.jobs.pipeline import Pipeline, ProcessResult

__all__ = ["Pipeline", "ProcessResult", "scheduler"]
