"""
Webhook Ingestion

Receives GitHub `workflow_job` webhooks and turns "queued" jobs into
provisioning requests on the admission queue.

Flow:
1. Read raw body
2. Validate X-Hub-Signature-256 (when a secret is configured)
3. Parse the workflow job envelope
4. Ignore every action except "queued"
5. Fetch a fresh runner registration token
6. Offer the request to the admission queue without blocking
7. Return 200 quickly, even when the job is dropped
"""

import logging

from fastapi import APIRouter, HTTPException, Request
from starlette.requests import ClientDisconnect

from runner_provisioner.contracts.events import parse_workflow_job_event
from runner_provisioner.errors import CredentialError, ParseError
from runner_provisioner.provisioner import Provisioner
from runner_provisioner.webhook.signature import SIGNATURE_HEADER

logger = logging.getLogger(__name__)

WEBHOOK_PATH = "/webhook"

router = APIRouter()


def get_provisioner(request: Request) -> Provisioner:
    return request.app.state.provisioner


@router.api_route(
    WEBHOOK_PATH,
    methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    include_in_schema=False,
)
async def receive_webhook(request: Request):
    """Receive a workflow_job webhook from GitHub."""
    provisioner = get_provisioner(request)

    try:
        body = await request.body()
    except ClientDisconnect:
        logger.warning("Failed to read webhook body")
        raise HTTPException(status_code=400, detail="failed to read body")

    signature = request.headers.get(SIGNATURE_HEADER)
    verifier = provisioner.verifier

    if verifier.enabled:
        if not signature:
            logger.warning("Webhook rejected: missing signature")
            raise HTTPException(status_code=401, detail="missing signature")
        if not verifier.verify(body, signature):
            logger.warning("Webhook rejected: invalid signature")
            raise HTTPException(status_code=401, detail="invalid signature")
    elif signature:
        logger.warning("Webhook secret is not set; skipping signature validation")

    try:
        event = parse_workflow_job_event(body)
    except ParseError as e:
        logger.warning(f"Invalid webhook payload: {e}", extra={"errors": e.details.get("errors")})
        raise HTTPException(status_code=400, detail="bad request")

    if not event.is_queued:
        logger.debug(f"Ignoring workflow job action {event.action!r}", extra={"job_id": event.job_id})
        return {}

    logger.info(f"New job queued: ID={event.job_id}")

    try:
        provisioning_request = await provisioner.build_request(event)
    except CredentialError as e:
        logger.critical(
            f"Abandoning job {event.job_id}, no runner registration token: {e}",
            extra={"job_id": event.job_id, "code": e.code},
        )
        return {}

    if provisioner.queue.offer(provisioning_request):
        logger.info(
            "Job added to container creation queue",
            extra={"job_id": event.job_id, "queue_depth": len(provisioner.queue)},
        )
    else:
        logger.warning(
            "Container creation queue is full, dropping job",
            extra={"job_id": event.job_id, "capacity": provisioner.queue.capacity},
        )

    return {}
