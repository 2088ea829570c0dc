"""
GitHub Workflow Job Event

Envelope of the `workflow_job` webhook. Only the fields the provisioner
acts on are modelled; everything else in the payload is ignored.

JSON null stands for the zero value of a field, as if it were absent.
"""

import json

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, ValidationError, field_validator

from runner_provisioner.errors import ParseError

QUEUED_ACTION = "queued"


class WorkflowJob(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: StrictInt = 0

    @field_validator("id", mode="before")
    @classmethod
    def _null_id(cls, v):
        return 0 if v is None else v


class WorkflowJobEvent(BaseModel):
    """
    `workflow_job` webhook envelope.

    Actions sent by GitHub: queued, in_progress, completed, waiting.
    Only "queued" triggers provisioning.
    """

    model_config = ConfigDict(extra="ignore")

    action: StrictStr = ""
    workflow_job: WorkflowJob = Field(default_factory=WorkflowJob)

    @field_validator("action", mode="before")
    @classmethod
    def _null_action(cls, v):
        return "" if v is None else v

    @field_validator("workflow_job", mode="before")
    @classmethod
    def _null_workflow_job(cls, v):
        return {} if v is None else v

    @property
    def job_id(self) -> int:
        return self.workflow_job.id

    @property
    def is_queued(self) -> bool:
        return self.action == QUEUED_ACTION


def parse_workflow_job_event(body: bytes) -> WorkflowJobEvent:
    """
    Parse a raw webhook body.

    Raises:
        ParseError: if the body is not JSON or fields have the wrong type
    """
    try:
        data = json.loads(body)
    except ValueError as e:
        raise ParseError(
            "Invalid workflow job event",
            code="BAD_EVENT",
            details={"errors": [{"type": "json_invalid", "msg": str(e)}]},
        ) from e

    try:
        return WorkflowJobEvent.model_validate({} if data is None else data)
    except ValidationError as e:
        raise ParseError(
            "Invalid workflow job event",
            code="BAD_EVENT",
            details={"errors": e.errors(include_url=False, include_input=False)},
        ) from e
