"""
Provisioner Contracts

Webhook envelope and the value objects that flow through the pipeline.
"""

from runner_provisioner.contracts.events import (
    QUEUED_ACTION,
    WorkflowJobEvent,
    parse_workflow_job_event,
)
from runner_provisioner.contracts.types import (
    Container,
    ContainerStatus,
    EngineEndpoint,
    EngineKind,
    ProvisioningRequest,
    TerminationEvent,
    short_id,
)

__all__ = [
    "QUEUED_ACTION",
    "WorkflowJobEvent",
    "parse_workflow_job_event",
    "Container",
    "ContainerStatus",
    "EngineEndpoint",
    "EngineKind",
    "ProvisioningRequest",
    "TerminationEvent",
    "short_id",
]
