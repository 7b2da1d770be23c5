"""Automations API client."""

from .client import (
    ApiConfig,
    AutomationsClient,
    Credential,
    EmailTemplate,
    FieldOption,
    StepValidation,
    WorkflowSummary,
)

__all__ = [
    "ApiConfig",
    "AutomationsClient",
    "Credential",
    "EmailTemplate",
    "FieldOption",
    "StepValidation",
    "WorkflowSummary",
]
