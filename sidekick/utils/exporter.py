"""Writes the current artifacts out as standalone files."""

from pathlib import Path

from sidekick.config import get_config, project_root
from sidekick.state import ArtifactTriple


def render_next_steps(steps: list[str]) -> str:
    """Render tasks as a markdown checklist."""
    return "\n".join(f"- [ ] {step}" for step in steps)


def export_artifacts(artifacts: ArtifactTriple, output_dir=None) -> list[Path]:
    """Write summary.md, architecture.mmd and next_steps.md.

    Defaults to the configured output_dir (relative to the project root).
    Existing files are overwritten. Returns the written paths.
    """
    if output_dir is None:
        output_dir = project_root() / get_config().get("output_dir", "./output")
    target = Path(output_dir).expanduser()
    target.mkdir(parents=True, exist_ok=True)

    files = {
        "summary.md": artifacts.get("summary") or "",
        "architecture.mmd": artifacts.get("architecture") or "",
        "next_steps.md": render_next_steps(artifacts.get("next_steps") or []),
    }

    written = []
    for name, content in files.items():
        path = target / name
        path.write_text(content, encoding="utf-8")
        written.append(path)
    return written
