"""
Run workspace folders.

One timestamped folder per run under the school's directory, with one
subfolder per executed action filed under its product category.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from ..core.exceptions import FileOperationError
from ..core.logging_config import get_logger
from ..wizard.catalog import product_category
from ..wizard.models import Action


RUN_FOLDER_FORMAT = "%Y-%m-%d_%H-%M-%S"


class RunWorkspace:
    """
    Folder tree for one orchestrator run.

    Layout: ``<schools_dir>/<school_id>/Run-<YYYY-MM-DD_HH-mm-ss>/<Category>/<action>/``
    """

    def __init__(
        self,
        schools_dir: Union[str, Path],
        school_id: str,
        started_at: Optional[datetime] = None,
    ):
        self.school_id = school_id
        self.started_at = started_at or datetime.now()
        self.stamp = self.started_at.strftime(RUN_FOLDER_FORMAT)
        self.root = Path(schools_dir) / school_id / f"Run-{self.stamp}"
        self.logger = get_logger(__name__, school_id=school_id)

    def create(self) -> Path:
        """
        Create the run folder.

        A run started in the same second as an earlier one gets a numbered
        folder (``Run-<stamp>-2``, ...) instead of sharing it.

        Raises:
            FileOperationError: If the folder cannot be created
        """
        base = self.root
        attempt = 1
        while True:
            try:
                self.root.parent.mkdir(parents=True, exist_ok=True)
                self.root.mkdir()
                break
            except FileExistsError:
                attempt += 1
                self.root = base.with_name(f"{base.name}-{attempt}")
            except OSError as e:
                raise FileOperationError(
                    f"Failed to create run folder: {e}",
                    file_path=str(self.root),
                    operation="mkdir",
                )
        self.logger.info(f"Prepared run folder: {self.root}")
        return self.root

    def action_folder(self, action: Action) -> Path:
        """
        Create and return the folder an action writes its artifacts to.

        Args:
            action: Concrete action about to run

        Returns:
            Path to ``<run>/<Category>/<action>/``
        """
        folder = self.root / product_category(action).value / action.value
        try:
            folder.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FileOperationError(
                f"Failed to create action folder: {e}",
                file_path=str(folder),
                operation="mkdir",
            )
        self.logger.debug(f"Prepared action folder: {folder}")
        return folder
