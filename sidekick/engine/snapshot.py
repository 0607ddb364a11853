"""Durable local snapshot of the artifact triple (one versioned JSON file)."""

import json
import sys
from dataclasses import dataclass
from pathlib import Path

SNAPSHOT_KEY = "fde-sidekick.artifacts.v1"
SNAPSHOT_VERSION = 1


@dataclass(frozen=True)
class SaveResult:
    ok: bool
    error: str | None = None


class SnapshotStore:
    """Reads and writes `<directory>/fde-sidekick.artifacts.v1.json`.

    Saving is best-effort: failures are reported through SaveResult and
    never raised, so callers decide whether to log or ignore them.
    """

    def __init__(self, directory):
        self.path = Path(directory).expanduser() / f"{SNAPSHOT_KEY}.json"

    def load(self) -> dict | None:
        """Return the stored artifacts dict, or None if missing/unreadable."""
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            print(f"[sidekick] Snapshot read failed: {exc!r}", file=sys.stderr)
            return None

        try:
            document = json.loads(raw)
        except json.JSONDecodeError:
            print(f"[sidekick] Snapshot at {self.path} is not valid JSON; ignoring it.", file=sys.stderr)
            return None

        if not isinstance(document, dict) or document.get("version") != SNAPSHOT_VERSION:
            return None
        artifacts = document.get("artifacts")
        return artifacts if isinstance(artifacts, dict) else None

    def save(self, artifacts: dict) -> SaveResult:
        document = {"version": SNAPSHOT_VERSION, "artifacts": artifacts}
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(document, indent=2), encoding="utf-8")
        except (OSError, TypeError, ValueError) as exc:
            return SaveResult(ok=False, error=str(exc))
        return SaveResult(ok=True)
