"""Shared contract for transports: parse a payload, run one scrape, marshal the outcome."""

from typing import Any

from pydantic import ValidationError

from scrapewright.core import ScrapeOrchestrator
from scrapewright.exceptions import (
    Cancelled,
    InternalError,
    InvalidRequest,
    InvalidRule,
    PoolExhausted,
    RetriesExhausted,
    ScrapeError,
    ScrapeTimeout,
)
from scrapewright.models import ScrapeRequest

# Non-standard, borrowed from nginx: client closed request
STATUS_CANCELLED = 499


def status_for(error: ScrapeError) -> int:
    """HTTP status code for a classified error.

    Driver failures and exhausted retries are upstream problems (502), except
    when the pool itself was the bottleneck (503).
    """
    if isinstance(error, RetriesExhausted):
        return 503 if isinstance(error.last_error, PoolExhausted) else 502
    if isinstance(error, (InvalidRule, InvalidRequest)):
        return 422
    if isinstance(error, PoolExhausted):
        return 503
    if isinstance(error, ScrapeTimeout):
        return 504
    if isinstance(error, Cancelled):
        return STATUS_CANCELLED
    if isinstance(error, InternalError):
        return 500
    return 502


def error_body(error: ScrapeError) -> dict[str, Any]:
    return {'error': error.to_dict()}


def validation_body(error: ValidationError) -> dict[str, Any]:
    return {
        'error': {
            'code': 'invalid_request',
            'message': 'Request payload failed validation',
            'transient': False,
            'details': [
                {'loc': [str(part) for part in item['loc']], 'msg': item['msg']} for item in error.errors()
            ],
        }
    }


async def invoke(orchestrator: ScrapeOrchestrator, payload: Any) -> tuple[int, dict[str, Any]]:
    """Run one scrape for a raw payload.

    Args:
        orchestrator: Orchestrator to call
        payload: Decoded JSON body describing a ScrapeRequest

    Returns:
        Tuple of (status_code, body).

    """
    try:
        request = ScrapeRequest.model_validate(payload)
    except ValidationError as e:
        return 422, validation_body(e)

    try:
        result = await orchestrator.scrape(request)
    except ScrapeError as e:
        return status_for(e), error_body(e)

    return 200, result.to_dict()
