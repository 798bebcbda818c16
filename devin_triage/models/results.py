"""Agent-produced stage payloads.

These Pydantic models double as the output schema sent to the remote agent
(``model_json_schema()``) and as the validator applied to whatever comes
back. A payload that fails validation is treated as unparsable, so bounds
declared here hold for every result regardless of where it came from.

Example:
    Validating a payload pulled out of an agent message::

        scope = ScopeResult.model_validate(
            {
                "scope": "Fix null check in config loader",
                "complexity": 4,
                "confidence_score": 80,
                "requirements": ["Handle empty file"],
                "risks": [],
                "estimated_time": "3 hours",
            }
        )
"""

from typing import Any

from pydantic import BaseModel, Field


class ScopeResult(BaseModel):
    """Scope-of-work assessment for a ticket."""

    scope: str = Field(..., description="Detailed scope of work required")
    complexity: int = Field(..., ge=1, le=10, description="Estimated complexity from 1 to 10")
    confidence_score: int = Field(
        ..., ge=1, le=100, description="Confidence of successful completion from 1 to 100"
    )
    requirements: list[str] = Field(default_factory=list, description="Key requirements and deliverables")
    risks: list[str] = Field(default_factory=list, description="Potential risks or blockers")
    estimated_time: str = Field(..., description="Estimated effort, e.g. '6 hours'")


class PlanResult(BaseModel):
    """Step-by-step action plan for completing a ticket."""

    steps: list[str] = Field(..., min_length=1, description="Ordered implementation steps")
    files_to_create: list[str] = Field(default_factory=list, description="Paths of files to create")
    files_to_modify: list[str] = Field(default_factory=list, description="Paths of files to modify")
    testing_strategy: str = Field(default="", description="How the change will be tested")
    dependencies: list[str] = Field(default_factory=list, description="Dependencies required")
    success_criteria: list[str] = Field(default_factory=list, description="Conditions for completion")


def output_schema(model: type[BaseModel]) -> dict[str, Any]:
    """Return the JSON schema the remote agent is asked to conform to."""
    return model.model_json_schema()
