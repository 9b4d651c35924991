"""
Durable session record storage.

Keeps the operator's credentials, environment and last school id between
wizard invocations in a small JSON file.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError as PydanticValidationError

from ..core.exceptions import FileOperationError
from ..core.logging_config import get_logger
from .models import SessionRecord


class SessionStore:
    """Reads and writes the single session record of this machine."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.logger = get_logger(__name__)

    def load(self) -> Optional[SessionRecord]:
        """
        Load the saved session.

        Returns:
            The record, or None when the file is absent, empty, corrupt or
            incomplete
        """
        if not self.path.exists():
            return None

        try:
            raw = self.path.read_text(encoding="utf-8")
            if not raw.strip():
                return None
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError("session file does not hold an object")
            record = SessionRecord.model_validate(data)
        except (OSError, ValueError, PydanticValidationError) as e:
            # json.JSONDecodeError is a ValueError
            self.logger.warning(f"Ignoring unreadable session file {self.path}: {e}")
            return None

        self.logger.debug(f"Loaded saved session from {self.path}")
        return record

    def save(self, record: SessionRecord) -> Path:
        """
        Persist the record, replacing any previous one.

        The record is written to a temporary file in the same directory and
        then moved into place, so readers never observe a partial file.

        Raises:
            FileOperationError: If the file cannot be written
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=".session-", suffix=".json", dir=str(self.path.parent)
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(record.to_json_dict(), f, indent=2)
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise FileOperationError(
                f"Failed to save session: {e}",
                file_path=str(self.path),
                operation="write",
            )

        self.logger.debug(f"Saved session to {self.path}")
        return self.path

    def clear(self) -> bool:
        """
        Delete the saved session.

        Returns:
            True if a file was removed
        """
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise FileOperationError(
                f"Failed to delete session: {e}",
                file_path=str(self.path),
                operation="delete",
            )
        self.logger.info(f"Cleared saved session at {self.path}")
        return True
