# File: tests/test_cli.py
"""CLI tests (`seo_autofix.cli`) with click.testing.CliRunner.
Cover `crawl`, `config`, `--version`, the batch commands, `apply`/`revert` and error handling.
"""
import importlib
import json

import pytest
from click.testing import CliRunner

from conftest import requires_git
from seo_autofix.cli import cli
from seo_autofix.crawler.models import CrawlResult, PageReport, SEOAnalysis
from seo_autofix.errors import CrawlDisallowed
from seo_autofix.logger import init_logging

# `seo_autofix/__init__.py` re-exports the `cli` Group under the submodule's name,
# so bind the module object itself for monkeypatching.
cli_module = importlib.import_module("seo_autofix.cli")

QUIET = ["--log-level", "CRITICAL"]


@pytest.fixture(autouse=True)
def restore_logging():
    yield
    init_logging()


@pytest.fixture()
def patch_crawler(monkeypatch):
    """Replace SiteCrawler with a stub returning a one-page result."""

    class StubCrawler:
        def __init__(self, config):
            self.config = config

        async def crawl(self, url, *, max_pages=None, max_depth=None):
            if "blocked" in url:
                raise CrawlDisallowed(f"robots.txt disallows crawling {url}")
            result = CrawlResult(seed_url=url, started_at="t0", finished_at="t1")
            result.pages.append(PageReport(url=url, timestamp="t0", depth=0, analysis=SEOAnalysis(score=88)))
            return result

    monkeypatch.setattr(cli_module, "SiteCrawler", StubCrawler)


def invoke(*args, repos=None):
    runner = CliRunner()
    base = list(QUIET)
    if repos is not None:
        base += ["--repos", str(repos)]
    return runner.invoke(cli, [*base, *args])


def test_version_option():
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "SEO Autofix" in result.output


def test_show_config(tmp_path):
    cfg_file = tmp_path / "config.json"
    cfg_file.write_text(json.dumps({"crawler": {"max_pages": 7}}), encoding="utf-8")

    result = invoke("--config", str(cfg_file), "config")

    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["crawler"]["max_pages"] == 7
    assert data["tracking"]["fixes_branch"] == "seo-fixes"


def test_bad_config_exits_with_error(tmp_path):
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text("crawler: {unknown: 1}\n", encoding="utf-8")

    result = invoke("--config", str(cfg_file), "config")

    assert result.exit_code == 1
    assert "Failed to load configuration" in result.output


def test_crawl_stdout(patch_crawler):
    result = invoke("crawl", "https://example.com", "--max-pages", "5")
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["seed_url"] == "https://example.com"
    assert data["pages"][0]["analysis"]["score"] == 88


def test_crawl_json_file(patch_crawler, tmp_path):
    out = tmp_path / "reports" / "crawl.json"
    result = invoke("crawl", "https://example.com", "--json", str(out), "--pretty")
    assert result.exit_code == 0
    assert json.loads(result.output)["pages"] == 1
    saved = json.loads(out.read_text(encoding="utf-8"))
    assert saved["pages"][0]["url"] == "https://example.com"


def test_crawl_disallowed(patch_crawler):
    result = invoke("crawl", "https://blocked.example.com")
    assert result.exit_code == 1
    assert "robots.txt disallows" in result.output


def test_bad_meta_is_a_usage_error(tmp_path):
    result = invoke("batch", "record", "site1", "index.html", "meta_tag", "--meta", "novalue", repos=tmp_path)
    assert result.exit_code == 2


@requires_git
def test_batch_commands(tmp_path):
    repos = tmp_path / "repos"

    started = invoke("batch", "start", "site1", "b1", "Title fixes", repos=repos)
    assert started.exit_code == 0, started.output
    assert json.loads(started.output)["branch"] == "seo-fix-b1"

    (repos / "site1" / "index.html").write_text("<title>New</title>\n", encoding="utf-8")
    recorded = invoke("batch", "record", "site1", "index.html", "meta_tag", "--meta", "tag=title", repos=repos)
    assert recorded.exit_code == 0, recorded.output
    assert len(json.loads(recorded.output)["commit"]) == 40

    finalized = invoke("batch", "finalize", "site1", "b1", repos=repos)
    assert finalized.exit_code == 0, finalized.output
    summary = json.loads(finalized.output)
    assert summary["status"] == "completed"
    assert summary["changeCount"] == 1

    diff = json.loads(invoke("batch", "diff", "site1", "b1", repos=repos).output)
    assert {"status": "A", "file": "index.html"} in diff

    history = json.loads(invoke("history", "site1", "--limit", "20", repos=repos).output)
    subjects = [h["subject"] for h in history]
    assert subjects[0] == "Merge SEO fixes from batch b1"
    assert "Fix: Updated meta tags in index.html (title)" in subjects

    rolled = invoke("batch", "rollback", "site1", "b1", repos=repos)
    assert rolled.exit_code == 0, rolled.output
    assert json.loads(rolled.output)["status"] == "rolled_back"
    assert not (repos / "site1" / "index.html").exists()

    assert json.loads(invoke("sites", repos=repos).output) == ["site1"]


@requires_git
def test_batch_errors(tmp_path):
    repos = tmp_path / "repos"

    result = invoke("batch", "record", "site1", "index.html", "meta_tag", repos=repos)
    assert result.exit_code == 1
    assert "No open change batch" in result.output

    result = invoke("batch", "rollback", "site1", "never", repos=repos)
    assert result.exit_code == 1
    assert "Unknown batch never" in result.output


@requires_git
def test_apply_and_revert(tmp_path):
    repos = tmp_path / "repos"
    fixes = [
        {
            "id": "f1",
            "issueId": "0-title-missing",
            "type": "title",
            "path": "index.html",
            "changes": {"original": "", "modified": "<title>Home</title>\n"},
        }
    ]
    fixes_file = tmp_path / "fixes.json"
    fixes_file.write_text(json.dumps(fixes), encoding="utf-8")

    applied = invoke("apply", "site1", str(fixes_file), "--batch-id", "b1", repos=repos)
    assert applied.exit_code == 0, applied.output
    data = json.loads(applied.output)
    assert data["batch"]["status"] == "completed"
    assert data["appliedFixes"][0]["batchId"] == "b1"
    assert (repos / "site1" / "index.html").exists()

    applied_file = tmp_path / "applied.json"
    applied_file.write_text(applied.output, encoding="utf-8")
    reverted = invoke("revert", "site1", str(applied_file), repos=repos)
    assert reverted.exit_code == 0, reverted.output
    assert json.loads(reverted.output)["success"] is True
    assert not (repos / "site1" / "index.html").exists()
