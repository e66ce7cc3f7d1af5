"""Single-invocation handler for serverless runtimes.

Each invocation builds its own orchestrator, runs exactly one scrape and
tears everything down. Nothing survives between invocations.
"""

import asyncio
import base64
import json
import logging
from typing import Any

from scrapewright.config import EngineConfig
from scrapewright.core import ScrapeOrchestrator
from scrapewright.transport.base import invoke

logger = logging.getLogger(__name__)

JSON_HEADERS = {'Content-Type': 'application/json'}


def parse_event(event: Any) -> Any:
    """Pull the scrape payload out of an invocation event.

    Accepts either the payload itself or an API-Gateway style proxy event
    whose ``body`` holds the JSON payload (optionally base64 encoded).

    Args:
        event: Invocation event

    Returns:
        Decoded payload.

    Raises:
        ValueError: If the body is not valid JSON.

    """
    if isinstance(event, dict) and 'body' in event:
        body = event['body']
        if body is None:
            return {}
        if isinstance(body, str):
            if event.get('isBase64Encoded'):
                body = base64.b64decode(body).decode('utf-8')
            return json.loads(body)
        return body
    return event


async def run_event(event: Any, config: EngineConfig | None = None, orchestrator: ScrapeOrchestrator | None = None):
    """Run one scrape for an event and return the invocation output.

    Args:
        event: Invocation event
        config: Engine configuration. Defaults to EngineConfig.from_env().
        orchestrator: Orchestrator to use. Defaults to a fresh Playwright-backed one.

    Returns:
        Dict with 'statusCode', 'headers' and a JSON 'body'.

    """
    try:
        payload = parse_event(event)
    except (ValueError, UnicodeDecodeError) as e:
        body = {'error': {'code': 'invalid_request', 'message': f'Malformed event body: {e}', 'transient': False}}
        return {'statusCode': 400, 'headers': JSON_HEADERS, 'body': json.dumps(body)}

    orchestrator = orchestrator or ScrapeOrchestrator.from_config(config or EngineConfig.from_env())
    try:
        status, body = await invoke(orchestrator, payload)
    finally:
        await orchestrator.close()

    logger.info(f'Invocation finished with status {status}')
    return {'statusCode': status, 'headers': JSON_HEADERS, 'body': json.dumps(body)}


def handler(event: Any, context: Any = None) -> dict[str, Any]:
    """Serverless entry point."""
    return asyncio.run(run_event(event))
