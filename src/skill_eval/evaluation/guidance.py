"""Install skill guidance assets into a workspace.

Only used in skill mode. Three kinds of asset:

- documentation files copied under ``docs_dest`` (YAML front matter removed),
- a native skills directory for the selected backend,
- an index block inside the project instructions file, wrapped in markers so
  a later install replaces it in place.
"""

from __future__ import annotations

import re
import shutil
from pathlib import Path

from skill_eval.config import BackendType, GuidanceConfig

START_MARKER = "<!-- SKILL-EVAL-AGENTS-MD-START -->"
END_MARKER = "<!-- SKILL-EVAL-AGENTS-MD-END -->"

# First existing file wins; otherwise the default is created.
INSTRUCTIONS_TARGETS: dict[BackendType, list[str]] = {
    BackendType.CLAUDE: ["CLAUDE.md", "AGENTS.md"],
    BackendType.CODEX: ["AGENTS.md"],
}
DEFAULT_INSTRUCTIONS_FILE = "AGENTS.md"

_FRONT_MATTER = re.compile(r"\A---\n.*?\n---\n*", re.DOTALL)


def select_instructions_target(workspace_dir: Path, backend: BackendType) -> Path:
    for name in INSTRUCTIONS_TARGETS[backend]:
        candidate = workspace_dir / name
        if candidate.is_file():
            return candidate
    return workspace_dir / DEFAULT_INSTRUCTIONS_FILE


def strip_front_matter(text: str) -> str:
    return _FRONT_MATTER.sub("", text, count=1)


def copy_docs(docs_dir: Path, dest: Path) -> list[Path]:
    """Copy docs into ``dest``; returns installed paths relative to ``dest``."""
    installed = []
    for src in sorted(docs_dir.rglob("*")):
        if not src.is_file():
            continue
        rel = src.relative_to(docs_dir)
        target = dest / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        if src.suffix == ".md":
            target.write_text(strip_front_matter(src.read_text(encoding="utf-8")), encoding="utf-8")
        else:
            shutil.copy2(src, target)
        installed.append(rel)
    return installed


def generate_index(docs_dest: str, docs: list[Path]) -> str:
    lines = [
        f"[Skill Docs]|root: ./{docs_dest}",
        "",
        "**MANDATORY: Read the relevant doc before implementing.**",
        "",
    ]
    lines.extend(f"- {doc.as_posix()}" for doc in docs)
    return "\n".join(lines)


def write_index(target: Path, index: str, project_name: str) -> None:
    """Replace the marked block, append it, or create the file."""
    block = f"{START_MARKER}\n{index}\n{END_MARKER}"

    if not target.exists():
        target.write_text(
            f"# {project_name}\n\nThis is a Viaduct GraphQL service.\n\n{block}\n",
            encoding="utf-8",
        )
        return

    content = target.read_text(encoding="utf-8")
    start = content.find(START_MARKER)
    end = content.find(END_MARKER, start)
    if start != -1 and end != -1:
        content = content[:start] + block + content[end + len(END_MARKER):]
    else:
        content = content.rstrip("\n") + "\n\n" + block + "\n"
    target.write_text(content, encoding="utf-8")


def install_guidance(workspace_dir: Path, config: GuidanceConfig, backend: BackendType) -> Path:
    """Install guidance assets. Returns the instructions file written."""
    docs: list[Path] = []
    if config.docs_dir:
        docs = copy_docs(Path(config.docs_dir), workspace_dir / config.docs_dest)

    if config.skills_dir:
        skills_dest = workspace_dir / f".{backend.value}" / "skills" / config.skill_name
        shutil.copytree(config.skills_dir, skills_dest, dirs_exist_ok=True)

    if config.index_file:
        index = Path(config.index_file).read_text(encoding="utf-8").strip()
    else:
        index = generate_index(config.docs_dest, docs)

    target = select_instructions_target(workspace_dir, backend)
    write_index(target, index, config.project_name)
    return target
