# seo_autofix/report/json_report.py

"""
JSON report of a crawl (or of a whole workflow run).

Anything exposing ``to_dict()`` can be written.
"""
import json
from pathlib import Path
from typing import Any, Union


def render_json(result: Any, output_path: Union[Path, str], *, pretty: bool = True) -> Path:
    """
    Write *result* as JSON to *output_path*, creating parent directories.

    :param result: a CrawlResult, WorkflowResult or plain mapping
    :param output_path: target JSON file
    :param pretty: indent the output
    :return: Path of the written file

    Example:
    ```python
    from seo_autofix.report.json_report import render_json
    report_path = render_json(crawl_result, 'reports/crawl.json')
    ```
    """
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)

    data = result.to_dict() if hasattr(result, "to_dict") else result

    with output.open('w', encoding='utf-8') as f:
        json.dump(data, f, ensure_ascii=False, indent=2 if pretty else None)

    return output
