"""Scenario replay against freshly deployed engines."""

from .runner import Deployment, ScenarioResult, ScenarioRunner, StepResult, deploy

__all__ = [
    "Deployment",
    "ScenarioResult",
    "ScenarioRunner",
    "StepResult",
    "deploy",
]
