# === FILE: linkcheck/cli.py ===
#!/usr/bin/env python3
"""
Command line entry point for linkcheck.

Commands:
  check     Crawl the given URLs and report broken links
  config    Show the effective configuration

Common options:
  --config PATH       YAML/JSON config file (optional)
  --log-level LEVEL   Logging level (DEBUG, INFO, ...)
  --log-file PATH     Log file (stderr only when omitted)
  --log-format FORMAT Logging format string

check options:
  URLS                Seed URLs (default: http://localhost:8080/)
  --hosts GLOB        Glob of internal URLs, repeatable
  --external, -e      Also check external links
  --verbose           Log every checked destination
  --input-file PATH   Read seed URLs from a file, one per line
  --concurrency N     Number of fetch workers
  --json PATH         Save a JSON report
  --html PATH         Save an HTML report
  --template DIR      Directory with Jinja2 templates
  --pretty            Indent JSON printed to stdout
  --timeout SEC       Timeout for the whole crawl (seconds)

Exit codes: 0 no problems, 1 warnings only, 2 broken links.

Example:
  linkcheck check http://localhost:4000/ --hosts 'http://localhost:4000/**' -e
"""
import asyncio
import logging
import sys
from pathlib import Path

import click
from pydantic import ValidationError

from linkcheck import __version__
from linkcheck.aggregator import aggregate_links
from linkcheck.config import CheckerConfig, load_config
from linkcheck.engine import start_crawl
from linkcheck.logger import DEFAULT_FORMAT, init_logging, logger
from linkcheck.report.html_report import render_html
from linkcheck.report.json_report import render_json
from linkcheck.utils import read_url_file

CONTEXT_SETTINGS = dict(help_option_names=["--help"])


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='linkcheck, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='YAML or JSON configuration file.'
)
@click.option(
    '--log-level', 'log_level',
    default='WARNING', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Logging level'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Log file (stderr only when omitted)'
)
@click.option(
    '--log-format', 'log_format',
    default=DEFAULT_FORMAT,
    show_default=True,
    help='Logging format string'
)
@click.pass_context
def cli(ctx, config_path, log_level, log_file, log_format):
    """linkcheck: find broken links on a site."""
    init_logging(
        level=log_level,
        log_file=str(log_file) if log_file else None,
        log_format=log_format
    )
    try:
        cfg = load_config(config_path)
    except (OSError, ValueError, TypeError) as e:
        print_error(f'Failed to load configuration: {e}')
    ctx.ensure_object(dict)
    ctx.obj['config'] = cfg


def _override(cfg: CheckerConfig, **changes) -> CheckerConfig:
    """Validated copy of *cfg* with non-empty *changes* applied."""
    data = cfg.model_dump()
    data.update({k: v for k, v in changes.items() if v is not None})
    return CheckerConfig(**data)


@cli.command('check', context_settings=CONTEXT_SETTINGS)
@click.argument('urls', nargs=-1)
@click.option('--hosts', 'hosts', multiple=True, help='Glob of internal URLs (repeatable)')
@click.option('--external', '-e', 'external', is_flag=True, help='Also check external links')
@click.option('--verbose', 'verbose', is_flag=True, help='Log every checked destination')
@click.option(
    '--input-file', '-i', 'input_file',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='File with seed URLs, one per line'
)
@click.option('--concurrency', 'concurrency', type=click.IntRange(min=1), default=None,
              help='Number of fetch workers')
@click.option(
    '--json', '-j', 'json_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Save a JSON report'
)
@click.option(
    '--html', '-h', 'html_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Save an HTML report'
)
@click.option(
    '--template', '-t', 'template_dir',
    default=None,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help='Directory with Jinja2 templates (bundled template by default)'
)
@click.option('--pretty', is_flag=True, help='Print the JSON report to stdout, indented')
@click.option(
    '--timeout', 'crawl_timeout',
    type=float,
    default=None,
    help='Timeout for the whole crawl (seconds)'
)
@click.pass_context
def check(ctx, urls, hosts, external, verbose, input_file, concurrency,
          json_output, html_output, template_dir, pretty, crawl_timeout):
    """Crawl URLS and report broken links."""
    seeds = list(urls)
    if input_file is not None:
        seeds.extend(read_url_file(input_file))
    try:
        cfg = _override(
            ctx.obj['config'],
            seeds=seeds or None,
            hosts=list(hosts) or None,
            check_external=external or None,
            verbose=verbose or None,
            concurrency=concurrency,
        )
    except ValidationError as e:
        print_error(f'Invalid options: {e}')

    # progress lines are logged at INFO
    if cfg.verbose and logger.getEffectiveLevel() > logging.INFO:
        logger.setLevel(logging.INFO)

    click.echo(f'Crawling {", ".join(cfg.seeds)}', err=True)
    try:
        if crawl_timeout:
            links = asyncio.run(
                asyncio.wait_for(start_crawl(cfg), timeout=crawl_timeout)
            )
        else:
            links = asyncio.run(start_crawl(cfg))
    except asyncio.TimeoutError:
        print_error(f'Crawl did not finish within {crawl_timeout} seconds')
    except Exception as e:
        print_error(f'Crawl failed: {e}')

    report = aggregate_links(links)

    if json_output:
        try:
            saved_json = render_json(report, json_output)
            click.echo(f'JSON report: {saved_json}', err=True)
        except OSError as e:
            print_error(f'Failed to save JSON report: {e}')

    if html_output:
        try:
            saved_html = render_html(report, template_dir, html_output)
            click.echo(f'HTML report: {saved_html}', err=True)
        except OSError as e:
            print_error(f'Failed to save HTML report: {e}')

    if pretty:
        click.echo(report.json(pretty=True))
    else:
        click.echo(report.text())
    ctx.exit(report.exit_code())


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def show_config(ctx):
    """Print the effective configuration as JSON."""
    cfg = ctx.obj['config']
    data = cfg.model_dump()
    data['hosts'] = cfg.effective_hosts()
    click.echo(CheckerConfig.model_validate(data).model_dump_json(indent=2))


if __name__ == "__main__":
    cli()
