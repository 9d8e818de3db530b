"""Persistence boundary: keeps workflow states between run/resume calls.

The orchestrator never touches storage; callers load a state, hand it to
run/resume and put the result back.
"""

import json
import os
import re
import tempfile
from pathlib import Path
from typing import Protocol

from expo.errors import StaleStateError, StateIntegrityError
from expo.state import WorkflowState

_ID_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


class WorkflowStore(Protocol):
    def get(self, workflow_id: str) -> WorkflowState | None: ...

    def put(self, workflow_id: str, state: WorkflowState) -> None: ...

    def delete(self, workflow_id: str) -> None: ...


def _atomic_write_text(path: Path, content: str) -> None:
    """Write to a temp file in the same directory, then os.replace it into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


class FileWorkflowStore:
    """One JSON file per workflow under `root`.

    put() refuses to replace a stored state with one whose `version` is not
    newer, so two writers working from the same snapshot cannot both win.
    """

    def __init__(self, root: Path):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, workflow_id: str) -> Path:
        if not _ID_RE.match(workflow_id or ""):
            raise StateIntegrityError(f"Invalid workflow id: {workflow_id!r}")
        return self.root / f"{workflow_id}.json"

    def get(self, workflow_id: str) -> WorkflowState | None:
        path = self._path(workflow_id)
        if not path.is_file():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise StateIntegrityError(f"Stored state for {workflow_id} is corrupt: {exc}") from exc

    def put(self, workflow_id: str, state: WorkflowState) -> None:
        path = self._path(workflow_id)
        stored = self.get(workflow_id)
        if stored is not None and state.get("version", 0) <= stored.get("version", 0):
            raise StaleStateError(
                f"Workflow {workflow_id} is at version {stored.get('version', 0)}; "
                f"refusing to write version {state.get('version', 0)}."
            )
        _atomic_write_text(path, json.dumps(state, indent=2, ensure_ascii=False))

    def delete(self, workflow_id: str) -> None:
        self._path(workflow_id).unlink(missing_ok=True)

    def list_ids(self) -> list[str]:
        return sorted(p.stem for p in self.root.glob("*.json"))
