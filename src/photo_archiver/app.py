"""
The Lambda Adapter for the Photo Archiver service.

This module is the main entry point for the AWS Lambda function. It is
responsible for:
1.  Initializing and configuring AWS Lambda Powertools (Logger, Tracer and
    Metrics) and the AWS clients shared across warm invocations.
2.  Reading the caller identity header and validating the JSON request body.
3.  Invoking the archive pipeline for the requested event.
4.  Translating the pipeline summary, or the error that stopped it, into an
    API Gateway proxy response.
"""

import base64
import json
from typing import Any

import boto3
import pydantic
from aws_lambda_powertools import Logger, Metrics, Tracer
from aws_lambda_powertools.metrics import MetricUnit
from aws_lambda_powertools.utilities.typing import LambdaContext

from .clients import ArchiveCatalog, EventStore, PhotoStore, S3Client
from .config import get_config
from .exceptions import (
    AuthorizationError,
    EventNotFoundError,
    InvalidRequestError,
    MissingIdentityError,
    PhotoArchiverError,
    get_error_context,
    is_retryable_error,
)
from .models import PipelineStatus, PipelineSummary
from .pipeline import ArchivePipeline
from .schemas import ArchiveRequest

# --- Global & Reusable Components ---
CONFIG = get_config()

logger = Logger(service=CONFIG.service_name, level=CONFIG.log_level)
tracer = Tracer(service=CONFIG.service_name)
metrics = Metrics(
    namespace="PhotoArchiver",
    service=CONFIG.service_name,
)

s3_boto_client = boto3.client("s3")
dynamodb = boto3.resource("dynamodb")

pipeline = ArchivePipeline(
    s3_client=S3Client(s3_client=s3_boto_client, kms_key_id=CONFIG.kms_key_id),
    event_store=EventStore(dynamodb.Table(CONFIG.events_table)),
    photo_store=PhotoStore(
        dynamodb.Table(CONFIG.photos_table), index_name=CONFIG.photos_event_index
    ),
    catalog=ArchiveCatalog(dynamodb.Table(CONFIG.archives_table)),
    config=CONFIG,
)

USER_ID_HEADER = "x-user-id"


def _json_response(status_code: int, payload: dict[str, Any]) -> dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(payload),
    }


def _error_response(status_code: int, status: str, message: str) -> dict[str, Any]:
    return _json_response(status_code, {"status": status, "message": message})


def _get_header(event: dict, name: str) -> str | None:
    """Case-insensitive header lookup; API Gateway preserves client casing."""
    for header, value in (event.get("headers") or {}).items():
        if header.lower() == name and isinstance(value, str):
            return value.strip() or None
    return None


def parse_request(event: dict) -> ArchiveRequest:
    """Decodes and validates the JSON body of an API Gateway proxy event."""
    body = event.get("body")
    if body is None or body == "":
        raise InvalidRequestError("Missing request body", error_code="MISSING_BODY")

    try:
        if event.get("isBase64Encoded") and isinstance(body, str):
            body = base64.b64decode(body).decode("utf-8")
        payload = json.loads(body) if isinstance(body, (str, bytes)) else body
    except (ValueError, UnicodeDecodeError) as e:
        raise InvalidRequestError(
            "Invalid JSON in request body", error_code="INVALID_JSON"
        ) from e

    if not isinstance(payload, dict):
        raise InvalidRequestError("Request body must be a JSON object")

    try:
        return ArchiveRequest.model_validate(payload)
    except pydantic.ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
        raise InvalidRequestError(
            f"Missing or invalid request fields: {', '.join(fields)}",
            context={"fields": fields},
        ) from e


def _record_summary_metrics(summary: PipelineSummary) -> None:
    metrics.add_metric(
        name="ArchivesCreated", unit=MetricUnit.Count, value=len(summary.entries)
    )
    metrics.add_metric(
        name="PhotosArchived", unit=MetricUnit.Count, value=summary.archived_count
    )
    metrics.add_metric(
        name="PhotoFailures", unit=MetricUnit.Count, value=summary.failed_count
    )
    metrics.add_metric(
        name="GroupFailures",
        unit=MetricUnit.Count,
        value=len(summary.group_failures),
    )


@logger.inject_lambda_context()
@tracer.capture_lambda_handler
@metrics.log_metrics(capture_cold_start_metric=True)
def handler(event: dict, context: LambdaContext) -> dict[str, Any]:
    """Main Lambda handler for archive requests arriving through API Gateway."""
    metrics.add_dimension("environment", CONFIG.environment)

    # --- 1. Validate the request before touching any remote resource ---
    try:
        request = parse_request(event)
        user_id = _get_header(event, USER_ID_HEADER)
        if not user_id:
            raise MissingIdentityError(USER_ID_HEADER)
    except InvalidRequestError as e:
        metrics.add_metric(name="InvalidRequests", unit=MetricUnit.Count, value=1)
        logger.warning(f"Rejected request: {e}", extra={"error": get_error_context(e)})
        return _error_response(400, "invalid_request", e.message)
    except MissingIdentityError as e:
        metrics.add_metric(name="InvalidRequests", unit=MetricUnit.Count, value=1)
        logger.warning("Request without caller identity.")
        return _error_response(401, "unauthorized", e.message)

    logger.append_keys(event_id=request.event_id, user_id=user_id)
    logger.info(
        "Starting archive request",
        extra={
            "requested_photos": len(request.photo_ids) if request.photo_ids else "all",
            "size_budget_mb": CONFIG.size_budget_mb,
        },
    )

    # --- 2. Run the pipeline ---
    try:
        summary = pipeline.run(
            event_id=request.event_id,
            user_id=user_id,
            photo_ids=request.photo_ids,
            context=context,
        )
    except AuthorizationError:
        metrics.add_metric(
            name="AuthorizationFailures", unit=MetricUnit.Count, value=1
        )
        return _error_response(403, "forbidden", "Forbidden: you do not own this event")
    except EventNotFoundError as e:
        return _error_response(404, "not_found", e.message)
    except PhotoArchiverError as e:
        retryable = is_retryable_error(e)
        metrics.add_metric(name="FatalErrors", unit=MetricUnit.Count, value=1)
        metrics.add_metric(
            name="RetryableErrors" if retryable else "NonRetryableErrors",
            unit=MetricUnit.Count,
            value=1,
        )
        logger.error(f"Archive request failed: {e}", extra={"error": get_error_context(e)})
        return _error_response(500, "error", e.message)
    except Exception:
        metrics.add_metric(name="FatalErrors", unit=MetricUnit.Count, value=1)
        logger.exception("A non-recoverable error occurred while archiving.")
        return _error_response(500, "error", "Internal error while creating archives")

    # --- 3. Return the final result ---
    if summary.status is PipelineStatus.NO_CONTENT:
        return _error_response(
            404, PipelineStatus.NO_CONTENT.value, "No photos found for this event"
        )

    _record_summary_metrics(summary)
    return _json_response(200, summary.to_dict())
