"""
Merge report polling.

After an action saves successfully the SIS merge it triggered is polled
until its report is available. The report is written as markdown next to the
action's artifacts and added to the run summary.
"""

import asyncio
import json
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional

from jinja2 import Environment

from ..core.config import Config
from ..core.exceptions import (
    ApiRequestError,
    AuthenticationError,
    FileOperationError,
    MergePollTimeoutError,
)
from ..core.logging_config import get_logger, log_performance
from ..reporting.run_summary import (
    RunSummaryLogger,
    extract_errors,
    extract_steps_status,
    generate_run_id,
)
from ..wizard.catalog import CURRICULUM_MANAGEMENT_ACTIONS, PROGRAM_ACTIONS
from ..wizard.models import Action
from .client import CoursedogApiClient, base_url_for


BUSY_JOB_STATUSES = ("SUBMITTED", "RUNNABLE", "STARTING", "RUNNING")
SUMMARY_KEYS = ("id", "schoolName", "status", "date", "type", "termCode", "scheduleType")

MERGE_REPORT_TEMPLATE = """## Merge Report Summary

```json
{{ summary_json }}
```

## Differences

{% if differences %}
{{ differences }}
{% else %}
_No differences file found._
{% endif %}

## Posts

{% for post in posts %}
- postType: {{ post.post_type }}
{% if post.body_json is not none %}
```json
{{ post.body_json }}
```
{% else %}
_No postBody available._
{% endif %}

{% else %}
_No posts executed._

{% endfor %}
## Merge Report Errors

### Failed Sync Entity Ids
```json
{{ failed_ids_json }}
```

### Error Messages
```json
{{ error_messages_json }}
```

### Error Metadata Differences
```json
{{ error_details_json }}
```
"""


def merge_entity_type(action: Action) -> str:
    """Merge history entity type an action's changes are synced under."""
    if action in (Action.EDIT_RELATIONSHIPS, Action.CREATE_RELATIONSHIPS):
        return "relationships"
    if action in PROGRAM_ACTIONS:
        return "programs"
    if action in CURRICULUM_MANAGEMENT_ACTIONS:
        return "coursesCm"
    return "sections"


def _as_json(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False)


def _steps(report: Dict[str, Any]) -> List[Dict[str, Any]]:
    steps = report.get("steps")
    return [s for s in steps if isinstance(s, dict)] if isinstance(steps, list) else []


def _error_details(steps: List[Dict[str, Any]]) -> List[Any]:
    """Metadata differences of failed entities, or their raw errors when none."""
    differences = []
    fallback = []
    for step in steps:
        errors = step.get("errors")
        if not isinstance(errors, list):
            continue
        for error in errors:
            details = error.get("errorDetails") if isinstance(error, dict) else None
            if not isinstance(details, dict):
                continue
            for entries in details.values():
                if not isinstance(entries, list):
                    continue
                for entry in entries:
                    if not isinstance(entry, dict):
                        continue
                    metadata = entry.get("metadata") or {}
                    if isinstance(metadata, dict) and "differences" in metadata:
                        differences.append(metadata["differences"])
                    body = entry.get("body")
                    body_errors = body.get("errors") if isinstance(body, dict) else None
                    if not isinstance(body_errors, list):
                        body_errors = []
                    if entry.get("error") is not None or body_errors:
                        fallback.append({"error": entry.get("error"), "bodyErrors": body_errors})
    return differences or fallback


def _mapping(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _sequence(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def render_merge_report(
    report: Dict[str, Any], report_url: str, differences: Optional[str] = None
) -> str:
    """Render a merge report as markdown."""
    summary = {k: report[k] for k in SUMMARY_KEYS if k in report}
    conflict_method = _mapping(report.get("configuration")).get("conflictHandlingMethod")
    if conflict_method is not None:
        summary["conflictHandlingMethod"] = conflict_method
    summary["mergeReportURL"] = report_url

    steps = _steps(report)
    posts = []
    failed_ids = []
    error_messages = []
    for step in steps:
        misc = _mapping(step.get("misc"))
        for updates in _mapping(misc.get("executedUpdates")).values():
            for update in _sequence(updates):
                if isinstance(update, dict) and update.get("postType"):
                    body = update.get("postBody")
                    posts.append(
                        {
                            "post_type": update["postType"],
                            "body_json": _as_json(body) if body is not None else None,
                        }
                    )
        failed_ids.extend(_sequence(misc.get("failedSyncEntityIds")))
        for error in _sequence(step.get("errors")):
            if isinstance(error, dict) and error.get("error"):
                error_messages.append(error["error"])

    template = Environment(trim_blocks=True).from_string(MERGE_REPORT_TEMPLATE)
    return template.render(
        summary_json=_as_json(summary),
        differences=differences,
        posts=posts,
        failed_ids_json=_as_json(failed_ids),
        error_messages_json=_as_json(error_messages),
        error_details_json=_as_json(_error_details(steps)),
    )


class MergeReportPoller:
    """
    Polls merge history until the merge triggered by an action has a report.

    Args:
        client: API client used for fresh tokens and requests
        config: Runner configuration with the polling intervals
        summary_logger: Run summary the finished report is added to
        sleep: Awaitable sleep function
    """

    def __init__(
        self,
        client: CoursedogApiClient,
        config: Config,
        summary_logger: Optional[RunSummaryLogger] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.client = client
        self.config = config
        self.summary_logger = summary_logger
        self._sleep = sleep
        self.logger = get_logger(__name__)

    async def poll(
        self, environment: str, school_id: str, action: Action, output_folder: Path
    ) -> Path:
        """
        Wait for the merge report and write its markdown summary.

        Returns:
            Path to ``<school>-<action>-mergeReportSummary.md``

        Raises:
            MergePollTimeoutError: If no report appears within ``merge_poll_timeout``
        """
        base = base_url_for(environment)
        entity_type = merge_entity_type(action)
        url = (
            f"{base}/api/v1/int/{school_id}/integrations-hub/merge-history"
            f"?page=0&size=1&scheduleType=realtime&entityType={entity_type}"
        )
        logger = get_logger(__name__, action=action.value, school_id=school_id)
        logger.info(f"⏳ Waiting {self.config.merge_poll_initial_delay:.0f}s before polling merge status")

        waited = await self._wait(self.config.merge_poll_initial_delay, 0.0)
        report_id = None
        while report_id is None:
            if waited >= self.config.merge_poll_timeout:
                raise MergePollTimeoutError(
                    f"No merge report for {action.value} after {waited:.0f}s",
                    action=action.value,
                    waited_seconds=waited,
                )

            try:
                token = await self.client.get_token(environment)
                data = await self.client.request_json("GET", url, token=token)
            except (ApiRequestError, AuthenticationError) as e:
                logger.warning(f"Error polling merge status: {e.message}")
                waited = await self._wait(self.config.merge_poll_error_backoff, waited)
                continue

            items = data.get("items") if isinstance(data, dict) else None
            item = _mapping(items[0]) if isinstance(items, list) and items else {}

            in_progress = _mapping(item.get("inProgressMerge"))
            if in_progress.get("awsJobStatus") in BUSY_JOB_STATUSES:
                logger.info(
                    f"🔄 Merge in progress. Status: {in_progress.get('awsJobStatus')}, "
                    f"JobId: {in_progress.get('awsJobId')}"
                )
                waited = await self._wait(self.config.merge_poll_interval, waited)
                continue

            report = _mapping(item.get("mergeReport"))
            report_id = report.get("id") or report.get("_id")
            if report_id is None:
                logger.info("⏳ No merge report yet")
                waited = await self._wait(self.config.merge_poll_interval, waited)

        report_url = f"{base}/#/int/{school_id}/merge-history/{report_id}"
        logger.info(f"🎉 Merge report finished: {report_url}")
        log_performance(logger, "merge_poll", waited, entity_type=entity_type)

        token = await self.client.get_token(environment)
        details = await self.client.request_json(
            "GET", f"{base}/api/v1/{school_id}/mergeReports/{report_id}", token=token
        )
        if not isinstance(details, dict):
            details = {}

        path = self._write_report(school_id, action, output_folder, details, report_url)
        self._add_summary_row(school_id, action, output_folder, details, report_url)
        return path

    async def _wait(self, seconds: float, waited: float) -> float:
        await self._sleep(seconds)
        return waited + seconds

    def _write_report(
        self,
        school_id: str,
        action: Action,
        output_folder: Path,
        details: Dict[str, Any],
        report_url: str,
    ) -> Path:
        folder = Path(output_folder)
        pattern = re.compile(rf"{re.escape(school_id)}-.*-field-differences-.*\.txt$")
        differences = None
        if folder.is_dir():
            for candidate in sorted(folder.iterdir()):
                if pattern.match(candidate.name):
                    differences = candidate.read_text(encoding="utf-8")
                    break

        path = folder / f"{school_id}-{action.value}-mergeReportSummary.md"
        try:
            folder.mkdir(parents=True, exist_ok=True)
            path.write_text(
                render_merge_report(details, report_url, differences), encoding="utf-8"
            )
        except OSError as e:
            raise FileOperationError(
                f"Failed to write merge report summary: {e}",
                file_path=str(path),
                operation="write",
            )
        self.logger.info(f"✅ Saved merge report summary to {path}")
        return path

    def _add_summary_row(
        self,
        school_id: str,
        action: Action,
        output_folder: Path,
        details: Dict[str, Any],
        report_url: str,
    ) -> None:
        if self.summary_logger is None:
            return
        # <run>/<Category>/<action>
        run_root = Path(output_folder).parent.parent
        try:
            self.summary_logger.append_row(
                run_root,
                run_id=generate_run_id(action),
                merge_report_url=report_url,
                status=details.get("status") or "completed",
                merge_report_status=extract_steps_status(details.get("steps")),
                timestamp=datetime.now(),
                school_id=school_id,
                action=action,
                errors=extract_errors(details.get("steps")),
            )
        except FileOperationError as e:
            self.logger.error(f"Failed to add merge report to run summary: {e.message}")
