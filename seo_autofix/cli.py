# === FILE: seo_autofix/cli.py ===
#!/usr/bin/env python3
"""
Command line entry point for SEO Autofix.

Commands:
  crawl URL              Crawl a site and print (or save) the scored page reports
  batch start|record|finalize|rollback|diff
                         Drive a change batch of one site step by step
  history SITE           Commit history of the site's fixes branch
  apply SITE FIXES       Apply a JSON list of fixes as one batch
  revert SITE FIXES      Roll back fixes returned by `apply`
  sites                  List known site repositories
  config                 Show the effective configuration

Global options:
  --config PATH       YAML/JSON configuration (default: configs/default.yaml if present)
  --repos DIR         Parent directory of site repositories (overrides tracking.repos_base_path)
  --log-level LEVEL   Logging level (DEBUG, INFO, ...)
  --log-file PATH     Also write logs to this file
  --log-format FORMAT Logging format string

Every command prints JSON on stdout; logs go to stderr.

Example:
  seo-autofix crawl https://example.com --max-pages 20 --json crawl.json --pretty
"""
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, NoReturn, Tuple

import click
from pydantic import ValidationError

from seo_autofix import __version__
from seo_autofix.config import AppConfig, load_config
from seo_autofix.crawler.crawler import SiteCrawler
from seo_autofix.errors import SEOAutofixError
from seo_autofix.logger import init_logging
from seo_autofix.pipeline.contracts import Fix
from seo_autofix.pipeline.orchestrator import Orchestrator
from seo_autofix.report.json_report import render_json
from seo_autofix.tracking.models import ChangeType
from seo_autofix.tracking.registry import SiteRegistry

CONTEXT_SETTINGS = dict(help_option_names=["--help", "-h"])


def print_error(message: str) -> NoReturn:
    click.secho(message, fg='red', err=True)
    sys.exit(1)


def emit(data: Any, pretty: bool = True) -> None:
    click.echo(json.dumps(data, ensure_ascii=False, indent=2 if pretty else None))


def _registry(ctx: click.Context) -> SiteRegistry:
    obj = ctx.find_root().obj
    if 'registry' not in obj:
        obj['registry'] = SiteRegistry(obj['config'].tracking)
    return obj['registry']


def _load_fixes(path: Path) -> List[Fix]:
    try:
        raw = json.loads(path.read_text(encoding='utf-8'))
    except (OSError, json.JSONDecodeError) as e:
        print_error(f'Cannot read fixes from {path}: {e}')
    if isinstance(raw, dict):
        raw = raw.get('appliedFixes', raw.get('fixes', []))
    try:
        return [Fix.model_validate(item) for item in raw]
    except (ValidationError, TypeError) as e:
        print_error(f'Invalid fixes in {path}: {e}')


def _parse_meta(pairs: Tuple[str, ...]) -> Dict[str, str]:
    meta: Dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition('=')
        if not sep or not key:
            raise click.BadParameter(f'expected key=value, got {pair!r}', param_hint='--meta')
        meta[key] = value
    return meta


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='SEO Autofix, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Path to a YAML or JSON configuration file.'
)
@click.option(
    '--repos', 'repos_path',
    default=None,
    type=click.Path(file_okay=False, path_type=Path),
    help='Parent directory of site repositories.'
)
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Logging level'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Also write logs to this file'
)
@click.option(
    '--log-format', 'log_format',
    default='%(asctime)s %(levelname)s %(message)s',
    show_default=True,
    help='Logging format string'
)
@click.pass_context
def cli(ctx, config_path, repos_path, log_level, log_file, log_format):
    """SEO Autofix: crawl sites and keep their fixes in reversible git history."""
    init_logging(
        level=log_level,
        log_file=str(log_file) if log_file else None,
        log_format=log_format,
        stream=sys.stderr,
    )
    try:
        cfg = load_config(config_path)
    except (OSError, ValueError, TypeError) as e:
        print_error(f'Failed to load configuration: {e}')
    if repos_path is not None:
        cfg = cfg.model_copy(update={'tracking': cfg.tracking.model_copy(update={'repos_base_path': repos_path})})
    ctx.ensure_object(dict)
    ctx.obj['config'] = cfg


# --------------------------------------------------------------------------- #
# Crawl                                                                       #
# --------------------------------------------------------------------------- #


@cli.command('crawl', context_settings=CONTEXT_SETTINGS)
@click.argument('url')
@click.option('--max-pages', type=click.IntRange(min=1), default=None, help='Override crawler.max_pages')
@click.option('--max-depth', type=click.IntRange(min=0), default=None, help='Override crawler.max_depth')
@click.option(
    '--json', '-j', 'json_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Save the crawl result to a JSON file'
)
@click.option('--pretty', is_flag=True, help='Indent JSON output')
@click.pass_context
def crawl(ctx, url, max_pages, max_depth, json_output, pretty):
    """Crawl URL and report per-page SEO scores."""
    cfg: AppConfig = ctx.obj['config']
    crawler = SiteCrawler(cfg.crawler)
    try:
        result = asyncio.run(crawler.crawl(url, max_pages=max_pages, max_depth=max_depth))
    except (SEOAutofixError, ValueError) as e:
        print_error(f'Crawl failed: {e}')

    if json_output:
        saved = render_json(result, json_output, pretty=pretty)
        emit({'report': str(saved), 'pages': len(result)}, pretty)
        return
    emit(result.to_dict(), pretty)


# --------------------------------------------------------------------------- #
# Batches                                                                     #
# --------------------------------------------------------------------------- #


@cli.group('batch', context_settings=CONTEXT_SETTINGS)
def batch():
    """Start, record, finalize and roll back change batches."""


@batch.command('start')
@click.argument('site_id')
@click.argument('batch_id')
@click.argument('description')
@click.pass_context
def batch_start(ctx, site_id, batch_id, description):
    """Open BATCH_ID on a new branch of SITE_ID's repository."""
    try:
        branch = _registry(ctx).tracker(site_id).start_batch(batch_id, description)
    except (SEOAutofixError, ValueError) as e:
        print_error(str(e))
    emit({'siteId': site_id, 'batchId': batch_id, 'branch': branch})


@batch.command('record')
@click.argument('site_id')
@click.argument('file_path')
@click.argument('change_type', type=click.Choice([t.value for t in ChangeType]))
@click.option('--meta', 'meta', multiple=True, metavar='KEY=VALUE', help='Change metadata (repeatable)')
@click.pass_context
def batch_record(ctx, site_id, file_path, change_type, meta):
    """Commit an edited FILE_PATH to the open batch."""
    metadata = _parse_meta(meta)
    try:
        ref = _registry(ctx).tracker(site_id).record_change(file_path, change_type, metadata)
    except (SEOAutofixError, ValueError) as e:
        print_error(str(e))
    emit({'siteId': site_id, 'commit': ref.hash, 'changeType': change_type, 'filePath': file_path})


@batch.command('finalize')
@click.argument('site_id')
@click.argument('batch_id')
@click.option('--reject', is_flag=True, help='Close the batch without merging it')
@click.pass_context
def batch_finalize(ctx, site_id, batch_id, reject):
    """Close BATCH_ID: merge and tag it, or reject it."""
    try:
        summary = _registry(ctx).tracker(site_id).finalize_batch(batch_id, approved=not reject)
    except (SEOAutofixError, ValueError) as e:
        print_error(str(e))
    emit(summary.to_dict())


@batch.command('rollback')
@click.argument('site_id')
@click.argument('batch_id')
@click.pass_context
def batch_rollback(ctx, site_id, batch_id):
    """Revert a completed BATCH_ID on the fixes branch."""
    try:
        summary = _registry(ctx).tracker(site_id).rollback_batch(batch_id)
    except (SEOAutofixError, ValueError) as e:
        print_error(str(e))
    emit(summary.to_dict())


@batch.command('diff')
@click.argument('site_id')
@click.argument('batch_id')
@click.pass_context
def batch_diff(ctx, site_id, batch_id):
    """Files changed by BATCH_ID."""
    try:
        entries = _registry(ctx).tracker(site_id).batch_diff(batch_id)
    except (SEOAutofixError, ValueError) as e:
        print_error(str(e))
    emit([{'status': d.status, 'file': d.file} for d in entries])


# --------------------------------------------------------------------------- #
# History, fixes, sites                                                       #
# --------------------------------------------------------------------------- #


@cli.command('history', context_settings=CONTEXT_SETTINGS)
@click.argument('site_id')
@click.option('--limit', '-n', type=click.IntRange(min=1), default=50, show_default=True)
@click.pass_context
def history(ctx, site_id, limit):
    """Recent commits of SITE_ID's fixes branch."""
    try:
        entries = _registry(ctx).tracker(site_id).get_change_history(limit)
    except (SEOAutofixError, ValueError) as e:
        print_error(str(e))
    emit([e.to_dict() for e in entries])


@cli.command('apply', context_settings=CONTEXT_SETTINGS)
@click.argument('site_id')
@click.argument('fixes_path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--batch-id', default=None, help='Batch id (generated when omitted)')
@click.option('--description', default=None, help='Batch description')
@click.pass_context
def apply(ctx, site_id, fixes_path, batch_id, description):
    """Apply the fixes in FIXES_PATH to SITE_ID as one batch."""
    fixes = _load_fixes(fixes_path)
    orchestrator = Orchestrator(_registry(ctx), config=ctx.obj['config'].pipeline)
    try:
        result = asyncio.run(orchestrator.implement_fixes(fixes, site_id, batch_id, description))
    except (SEOAutofixError, ValueError) as e:
        print_error(str(e))
    emit(result.to_dict())


@cli.command('revert', context_settings=CONTEXT_SETTINGS)
@click.argument('site_id')
@click.argument('applied_path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def revert(ctx, site_id, applied_path):
    """Roll back fixes listed in APPLIED_PATH (output of `apply`)."""
    fixes = _load_fixes(applied_path)
    orchestrator = Orchestrator(_registry(ctx), config=ctx.obj['config'].pipeline)
    try:
        result = asyncio.run(orchestrator.rollback_fixes(fixes, site_id))
    except (SEOAutofixError, ValueError) as e:
        print_error(str(e))
    emit(result.to_dict())
    if not result.success:
        sys.exit(1)


@cli.command('sites', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def sites(ctx):
    """List site repositories."""
    emit(_registry(ctx).list_sites())


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def show_config(ctx):
    """Show the effective configuration as JSON."""
    cfg: AppConfig = ctx.obj['config']
    click.echo(cfg.model_dump_json(indent=2))


if __name__ == "__main__":
    cli()
