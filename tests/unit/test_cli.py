import json

import pytest

from scrapewright import cli
from scrapewright.exceptions import MissingField, RetriesExhausted
from scrapewright.models import ScrapeMetadata, ScrapeResult


@pytest.fixture
def quiet_cli(mocker, tmp_path):
    mocker.patch('scrapewright.cli.load_dotenv')
    mocker.patch('scrapewright.cli.setup_local_logging', return_value=tmp_path / 'run.log')
    mocker.patch('scrapewright.cli.configure_logfire')


@pytest.fixture
def rules_file(tmp_path):
    path = tmp_path / 'rules.json'
    path.write_text(json.dumps([{'field': 'title', 'selector': 'title'}]))
    return path


def sample_result():
    return ScrapeResult(
        data={'title': 'Example Domain', 'links': ['a', 'b'], 'subtitle': None},
        metadata=ScrapeMetadata(
            url='https://example.com/',
            session_id='abc',
            elapsed=0.4,
            attempts=1,
            navigation_attempts=1,
            acquire_attempts=1,
        ),
    )


def test_build_request_from_flags(rules_file, tmp_path):
    steps = tmp_path / 'steps.json'
    steps.write_text(json.dumps([{'action': 'click', 'selector': '#more'}]))
    args = cli.build_parser().parse_args(
        ['scrape', '--url', 'https://example.com/', '--rules', str(rules_file), '--steps', str(steps)]
    )
    request = cli.build_request(args)
    assert request.url == 'https://example.com/'
    assert request.rules[0].field == 'title'
    assert request.steps[0].selector == '#more'


def test_build_request_from_file(tmp_path):
    path = tmp_path / 'request.json'
    path.write_text(json.dumps({'url': 'https://example.com/', 'rules': [{'field': 'h', 'selector': 'h1'}]}))
    args = cli.build_parser().parse_args(['scrape', '--request', str(path)])
    assert cli.build_request(args).rules[0].selector == 'h1'


def test_build_request_needs_url_and_rules():
    args = cli.build_parser().parse_args(['scrape', '--url', 'https://example.com/'])
    with pytest.raises(ValueError):
        cli.build_request(args)


def test_scrape_command_writes_output(mocker, quiet_cli, rules_file, tmp_path):
    mocker.patch('scrapewright.cli.run_scrape', mocker.AsyncMock(return_value=sample_result()))
    output = tmp_path / 'out.json'

    code = cli.main(['scrape', '--url', 'https://example.com/', '--rules', str(rules_file), '--output', str(output)])

    assert code == 0
    assert json.loads(output.read_text())['data']['title'] == 'Example Domain'


def test_scrape_command_reports_failure(mocker, quiet_cli, rules_file):
    error = RetriesExhausted(3, MissingField('title'))
    mocker.patch('scrapewright.cli.run_scrape', mocker.AsyncMock(side_effect=error))
    assert cli.main(['scrape', '--url', 'https://example.com/', '--rules', str(rules_file)]) == 1


def test_scrape_command_rejects_bad_request(quiet_cli, tmp_path):
    rules = tmp_path / 'rules.json'
    rules.write_text('[]')
    assert cli.main(['scrape', '--url', 'https://example.com/', '--rules', str(rules)]) == 2


def test_probe_command(mocker, quiet_cli):
    probe = mocker.patch(
        'scrapewright.cli.run_probe',
        mocker.AsyncMock(return_value={'url': 'https://example.com', 'title': 'Example Domain', 'elapsed': 0.1}),
    )
    assert cli.main(['--driver-endpoint', 'http://chrome:9222', 'probe']) == 0
    config = probe.call_args.args[0]
    assert config.driver_endpoint == 'http://chrome:9222'


def test_serve_command(mocker, quiet_cli):
    run = mocker.patch('uvicorn.run')
    mocker.patch('scrapewright.transport.server.ScrapeOrchestrator.from_config')
    assert cli.main(['serve', '--port', '9000']) == 0
    assert run.call_args.kwargs['port'] == 9000
