"""
cli.py
=======
Command line entry point: run the HTTP server, a one-off scrape, or a driver probe.
"""

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.theme import Theme

from scrapewright.config import EngineConfig
from scrapewright.core import ExtractionPipeline, ScrapeOrchestrator, SessionManager
from scrapewright.exceptions import ScrapeError
from scrapewright.models import ScrapeRequest, ScrapeResult, ScrapeState
from scrapewright.utils import configure_logfire, setup_local_logging

THEME = Theme(
    {
        'info': 'dim cyan',
        'warning': 'magenta',
        'danger': 'bold red',
        'success': 'bold green',
        'step': 'bold blue',
    }
)


def _load_json(path: str) -> object:
    with open(path) as f:
        return json.load(f)


def build_request(args: argparse.Namespace) -> ScrapeRequest:
    """Assemble a ScrapeRequest from CLI arguments.

    ``--request`` takes a full JSON request file. Otherwise ``--url`` and
    ``--rules`` are required and ``--steps`` is optional.
    """
    if args.request:
        return ScrapeRequest.model_validate(_load_json(args.request))

    if not args.url or not args.rules:
        raise ValueError('--url and --rules are required unless --request is given')

    payload: dict[str, object] = {'url': args.url, 'rules': _load_json(args.rules)}
    if args.steps:
        payload['steps'] = _load_json(args.steps)
    if args.wait_for:
        payload['wait_for'] = args.wait_for
    if args.timeout:
        payload['timeout'] = args.timeout
    return ScrapeRequest.model_validate(payload)


def show_result(console: Console, result: ScrapeResult) -> None:
    """Print extracted fields and run metadata."""
    table = Table(title='Extracted Fields')
    table.add_column('Field', style='cyan')
    table.add_column('Value', style='green')
    for name, value in result.data.items():
        if value is None:
            rendered = '[dim]-[/dim]'
        elif isinstance(value, list):
            rendered = '\n'.join(value) or '[dim](empty)[/dim]'
        else:
            rendered = value
        table.add_row(name, rendered)
    console.print(table)

    meta = result.metadata
    console.print(
        f'[info]session={meta.session_id} elapsed={meta.elapsed:.2f}s attempts={meta.attempts} '
        f'navigation_attempts={meta.navigation_attempts}[/info]'
    )


async def run_scrape(config: EngineConfig, request: ScrapeRequest, console: Console) -> ScrapeResult:
    """Run one scrape against a fresh orchestrator and close it afterwards."""
    manager = SessionManager(config)
    orchestrator = ScrapeOrchestrator(manager, config, ExtractionPipeline(console=console))

    def on_state(state: ScrapeState) -> None:
        console.print(f'[step]-> {state.value}[/step]')

    try:
        return await orchestrator.scrape(request, on_state=on_state)
    finally:
        await orchestrator.close()


async def run_probe(config: EngineConfig, url: str) -> dict:
    orchestrator = ScrapeOrchestrator.from_config(config)
    try:
        return await orchestrator.probe(url)
    finally:
        await orchestrator.close()


def cmd_serve(args: argparse.Namespace, config: EngineConfig, console: Console) -> int:
    import uvicorn

    from scrapewright.transport.server import create_app

    host = args.host or config.host
    port = args.port or config.port
    console.print(Panel(f'[bold]Serving on[/bold] [underline]http://{host}:{port}[/underline]', border_style='blue'))
    if not config.auth_token:
        console.print('[warning]SCRAPEWRIGHT_AUTH_TOKEN not set - requests are not authenticated[/warning]')
    uvicorn.run(create_app(config), host=host, port=port, log_level=config.log_level.lower())
    return 0


def cmd_scrape(args: argparse.Namespace, config: EngineConfig, console: Console) -> int:
    try:
        request = build_request(args)
    except (OSError, ValueError, ValidationError) as e:
        console.print(f'[danger]Invalid request: {e}[/danger]')
        return 2

    console.print(Panel(f'[bold]Scraping:[/bold] [underline]{request.url}[/underline]', border_style='blue'))
    try:
        result = asyncio.run(run_scrape(config, request, console))
    except ScrapeError as e:
        console.print(f'[danger]{e.code}: {e}[/danger]')
        return 1

    show_result(console, result)
    if args.output:
        Path(args.output).write_text(json.dumps(result.to_dict(), indent=2))
        console.print(f'[success]Saved result to {args.output}[/success]')
    return 0


def cmd_probe(args: argparse.Namespace, config: EngineConfig, console: Console) -> int:
    try:
        result = asyncio.run(run_probe(config, args.url))
    except ScrapeError as e:
        console.print(f'[danger]Driver check failed - {e.code}: {e}[/danger]')
        return 1

    console.print(f'[success]Loaded {result["url"]}[/success]')
    console.print(f'[info]title={result["title"]!r} elapsed={result["elapsed"]}s[/info]')
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Headless browser scraping with selector and pattern extraction')
    parser.add_argument(
        '--driver-endpoint', type=str, help='CDP endpoint of a running browser (default: launch Chromium)'
    )
    parser.add_argument('--max-sessions', type=int, help='Maximum concurrently busy sessions')
    parser.add_argument('--log-level', type=str, help='Log level for the file log (default: INFO)')
    subparsers = parser.add_subparsers(dest='command', required=True)

    serve = subparsers.add_parser('serve', help='Run the HTTP server')
    serve.add_argument('--host', type=str, help='Bind address (default: 0.0.0.0)')
    serve.add_argument('--port', type=int, help='Port (default: 8080)')

    scrape = subparsers.add_parser('scrape', help='Run a single scrape and print the result')
    scrape.add_argument('--request', type=str, help='JSON file holding a full scrape request')
    scrape.add_argument('--url', type=str, help='Page to scrape')
    scrape.add_argument('--rules', type=str, help='JSON file with a list of extraction rules')
    scrape.add_argument('--steps', type=str, help='JSON file with a list of navigation steps')
    scrape.add_argument('--wait-for', type=str, help='Selector to wait for before extracting')
    scrape.add_argument('--timeout', type=float, help='Wall-clock budget in seconds')
    scrape.add_argument('--output', type=str, help='Write the result JSON to this file')

    probe = subparsers.add_parser('probe', help='Load a page through the driver and report its title')
    probe.add_argument('--url', type=str, default='https://example.com', help='Page to load')

    return parser


COMMANDS = {'serve': cmd_serve, 'scrape': cmd_scrape, 'probe': cmd_probe}


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    load_dotenv()

    args = build_parser().parse_args(argv)
    console = Console(theme=THEME)

    overrides = {}
    if args.driver_endpoint:
        overrides['driver_endpoint'] = args.driver_endpoint
    if args.max_sessions:
        overrides['max_sessions'] = args.max_sessions
    if args.log_level:
        overrides['log_level'] = args.log_level

    try:
        config = EngineConfig.from_env(**overrides)
    except ValueError as e:
        console.print(f'[danger]Invalid configuration: {e}[/danger]')
        return 2

    log_file = setup_local_logging(config.log_level)
    console.print(f'[info]Logging to {log_file}[/info]')

    logfire_token = os.getenv('LOGFIRE_TOKEN')
    configure_logfire(logfire_token)
    if not logfire_token:
        console.print('[info]LOGFIRE_TOKEN not set - spans stay local[/info]')

    return COMMANDS[args.command](args, config, console)


if __name__ == '__main__':
    sys.exit(main())
