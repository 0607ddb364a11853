"""Artifact Store — the single owner of the current artifact triple.

All writes go through update()/edit()/rename_node(): the candidate is
normalized first, then swapped in with one assignment, observers are
notified, and a snapshot is saved (failures logged and ignored).
"""

import sys
from collections.abc import Callable

from sidekick.errors import InputValidationError
from sidekick.state import (
    ARTIFACT_FIELDS,
    DEFAULT_ARTIFACTS,
    MAX_NEXT_STEPS,
    MIN_NEXT_STEPS,
    ArtifactTriple,
    default_artifacts,
)
from sidekick.utils.diagram import rename_node_label
from sidekick.utils.parsing import split_next_steps

Observer = Callable[[ArtifactTriple], None]


def normalize_next_steps(value) -> list[str]:
    """Coerce any next_steps value into 3-20 non-empty entries."""
    steps = split_next_steps(value)
    if steps is None:
        return list(DEFAULT_ARTIFACTS["next_steps"])

    steps = steps[:MAX_NEXT_STEPS]
    for fallback in DEFAULT_ARTIFACTS["next_steps"]:
        if len(steps) >= MIN_NEXT_STEPS:
            break
        if fallback not in steps:
            steps.append(fallback)
    return steps


def normalize_artifacts(raw) -> ArtifactTriple:
    """Coerce an arbitrary payload into a valid ArtifactTriple.

    Mistyped or missing text fields fall back to the defaults.
    """
    safe = raw if isinstance(raw, dict) else {}
    artifacts = {}
    for field in ARTIFACT_FIELDS[:3]:
        value = safe.get(field)
        artifacts[field] = value if isinstance(value, str) else DEFAULT_ARTIFACTS[field]
    artifacts["next_steps"] = normalize_next_steps(safe.get("next_steps"))
    return artifacts


class ArtifactStore:
    def __init__(self, snapshots=None, initial: ArtifactTriple | None = None):
        self._snapshots = snapshots
        self._observers: list[Observer] = []
        if initial is not None:
            self._current = normalize_artifacts(initial)
        elif snapshots is not None:
            self._current = normalize_artifacts(snapshots.load() or default_artifacts())
        else:
            self._current = default_artifacts()

    @property
    def current(self) -> ArtifactTriple:
        return self._current

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register an observer; returns a callable that unregisters it."""
        self._observers.append(observer)

        def _unsubscribe():
            if observer in self._observers:
                self._observers.remove(observer)

        return _unsubscribe

    def update(self, candidate) -> ArtifactTriple:
        return self._commit(normalize_artifacts(candidate))

    def edit(self, field: str, value) -> ArtifactTriple:
        """Apply a direct user edit to one field, leaving the others untouched."""
        if field not in ARTIFACT_FIELDS:
            raise InputValidationError(f"Unknown artifact field '{field}'.")
        return self._commit(normalize_artifacts({**self._current, field: value}))

    def edit_next_steps_text(self, text: str) -> ArtifactTriple:
        return self.edit("next_steps", str(text or ""))

    def rename_node(self, old_label: str, new_label: str) -> bool:
        """Rename a diagram node label. Returns False when nothing changed."""
        architecture = self._current["architecture"]
        renamed = rename_node_label(architecture, old_label, new_label)
        if renamed == architecture:
            return False
        self.edit("architecture", renamed)
        return True

    def _commit(self, artifacts: ArtifactTriple) -> ArtifactTriple:
        self._current = artifacts
        for observer in list(self._observers):
            observer(artifacts)
        if self._snapshots is not None:
            result = self._snapshots.save(artifacts)
            if not result.ok:
                # Snapshots are a cache; the in-memory state stays authoritative.
                print(f"[sidekick] Snapshot save failed (ignored): {result.error}", file=sys.stderr)
        return artifacts
