"""
Papercraft Release Orchestrator Module.

Fan-out of platform jobs and fan-in release aggregation.
"""

__all__ = [
    "AggregatorState",
    "JobRunner",
    "PlatformJob",
    "ReleaseAggregator",
    "ReleasePipeline",
    "ReleaseSummary",
    "persist_summary",
    "summary_text",
]

from papercraft_release.orchestrator.aggregator import (
    AggregatorState,
    ReleaseAggregator,
    ReleaseSummary,
    persist_summary,
    summary_text,
)
from papercraft_release.orchestrator.jobs import JobRunner, PlatformJob
from papercraft_release.orchestrator.pipeline import ReleasePipeline
