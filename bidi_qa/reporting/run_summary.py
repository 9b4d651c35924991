"""
Run summary log.

Keeps a markdown table per product category at the root of a run folder.
Every action outcome and every finished merge report adds one row to the
section of its category.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from jinja2 import Environment

from ..core.exceptions import FileOperationError
from ..core.logging_config import get_logger
from ..wizard.catalog import product_category
from ..wizard.models import Action, Product


NOT_AVAILABLE = "N/A"
SECTION_SUFFIX = " Test Cases"
CATEGORY_ORDER = [
    Product.ACADEMIC_SCHEDULING.value,
    Product.CURRICULUM_MANAGEMENT.value,
]
PRIORITY_STEP_STATUSES = ("unable to sync some changes", "failed", "error")

SUMMARY_TEMPLATE = """# Run Summary Report - {{ school_id }}
{% for section in sections %}

## {{ section.category }} Test Cases

| ID | Merge Report URL | Status | Merge Report Status | Date | Test Case | Errors |
|----|------------------|---------|-------------------|------|--------|--------|
{% for row in section.rows %}
{{ row }}
{% endfor %}
{% endfor %}
"""


def generate_run_id(action: Union[Action, str], now: Optional[datetime] = None) -> str:
    """
    Build a run id from the action and the current UTC time.

    Colons and dots of the ISO timestamp become dashes and sub-second
    precision is dropped, e.g. ``update-2024-05-01T10-20-30``.
    """
    name = action.value if isinstance(action, Action) else action
    now = now or datetime.now(timezone.utc)
    stamp = now.strftime("%Y-%m-%dT%H:%M:%S").replace(":", "-").replace(".", "-")
    return f"{name}-{stamp}"


def extract_steps_status(steps: Any) -> str:
    """Most significant step status of a merge report."""
    if not isinstance(steps, list) or not steps:
        return "No steps data"

    statuses = [
        s["status"]
        for s in steps
        if isinstance(s, dict) and isinstance(s.get("status"), str) and s["status"]
    ]
    for status in statuses:
        if status.lower() in PRIORITY_STEP_STATUSES:
            return status
    return statuses[0] if statuses else "No status available"


def extract_errors(steps: Any) -> str:
    """First error message of a merge report's steps."""
    if not isinstance(steps, list):
        return NOT_AVAILABLE

    for step in steps:
        errors = step.get("errors") if isinstance(step, dict) else None
        if isinstance(errors, list) and errors:
            first = errors[0]
            if isinstance(first, dict):
                return first.get("error") or "Unknown error"
            return "Unknown error"
    return NOT_AVAILABLE


def _cell(value: Any) -> str:
    text = str(value) if value not in (None, "") else NOT_AVAILABLE
    return text.replace("\r", " ").replace("\n", " ").replace("|", "\\|")


class RunSummaryLogger:
    """Appends rows to ``RUN-SUMMARY-<school>.md`` at the root of a run folder."""

    def __init__(self):
        self.logger = get_logger(__name__)
        self._template = Environment(trim_blocks=True).from_string(SUMMARY_TEMPLATE)

    @staticmethod
    def summary_path(workspace_root: Path, school_id: str) -> Path:
        return Path(workspace_root) / f"RUN-SUMMARY-{school_id}.md"

    def append_outcome(
        self,
        workspace_root: Path,
        run_id: str,
        status: Any,
        reason: str,
        timestamp: datetime,
        school_id: str,
        action: Action,
    ) -> Path:
        """Record one action outcome; the reason fills the merge status column."""
        return self.append_row(
            workspace_root,
            run_id=run_id,
            merge_report_url=NOT_AVAILABLE,
            status=getattr(status, "value", status),
            merge_report_status=reason,
            timestamp=timestamp,
            school_id=school_id,
            action=action,
        )

    def append_row(
        self,
        workspace_root: Path,
        run_id: str,
        merge_report_url: str,
        status: str,
        merge_report_status: str,
        timestamp: datetime,
        school_id: str,
        action: Action,
        errors: str = NOT_AVAILABLE,
    ) -> Path:
        """
        Add a row at the end of the action's category section.

        Returns:
            Path to the summary file

        Raises:
            FileOperationError: If the summary cannot be read or written
        """
        path = self.summary_path(workspace_root, school_id)
        category = product_category(action).value
        row = "| {} | [View Report]({}) | {} | {} | {} | {} | {} |".format(
            _cell(run_id),
            _cell(merge_report_url),
            _cell(status),
            _cell(merge_report_status),
            timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            action.value,
            _cell(errors),
        )

        try:
            sections = self._read_sections(path)
            sections.setdefault(category, []).append(row)
            # A run that already holds folders for both products lists both
            for name in CATEGORY_ORDER:
                if (Path(workspace_root) / name).is_dir():
                    sections.setdefault(name, [])

            content = self._render(school_id, sections)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise FileOperationError(
                f"Failed to update run summary: {e}",
                file_path=str(path),
                operation="write",
            )

        self.logger.debug(f"Run summary row added for {action.value}: {path}")
        return path

    def _read_sections(self, path: Path) -> Dict[str, List[str]]:
        sections: Dict[str, List[str]] = {}
        if not path.exists():
            return sections

        current = None
        for line in path.read_text(encoding="utf-8").splitlines():
            if line.startswith("## ") and line.endswith(SECTION_SUFFIX):
                current = line[3 : -len(SECTION_SUFFIX)]
                sections.setdefault(current, [])
            elif current and line.startswith("| ") and not line.startswith("| ID |"):
                sections[current].append(line)
        return sections

    def _render(self, school_id: str, sections: Dict[str, List[str]]) -> str:
        ordered = [c for c in CATEGORY_ORDER if c in sections]
        ordered += [c for c in sections if c not in CATEGORY_ORDER]
        return self._template.render(
            school_id=school_id,
            sections=[{"category": c, "rows": sections[c]} for c in ordered],
        )
