"""
Generate a Mermaid diagram of the wash session lifecycle from the transition table.

Usage:
    python scripts/generate_state_diagrams.py                      # print to stdout
    python scripts/generate_state_diagrams.py --update DESIGN.md   # rewrite the marked block
    python scripts/generate_state_diagrams.py --check DESIGN.md    # exit 1 if the block is stale (CI)
"""
import argparse
import re
import sys
from pathlib import Path
from typing import Any

# Make the app package importable when run as a plain script
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from app.db.models.wash_session import WashSessionStatus
from app.state_machine.states import WASH_SESSION_TRANSITIONS, TERMINAL_STATES

START_MARKER = "<!-- STATE_DIAGRAMS_START -->"
END_MARKER = "<!-- STATE_DIAGRAMS_END -->"
DEFAULT_DOCUMENT = Path(__file__).resolve().parent.parent / "DESIGN.md"

STATUS_LABELS: dict[str, str] = {
    WashSessionStatus.CREATED.value: "Created",
    WashSessionStatus.AUTHORIZED.value: "Authorized",
    WashSessionStatus.IN_PROGRESS.value: "In progress",
    WashSessionStatus.COMPLETED.value: "Completed",
    WashSessionStatus.LOCKED.value: "Locked (billable)",
    WashSessionStatus.REJECTED.value: "Rejected",
}


def generate_mermaid_from_transitions(
    transitions: dict[Any, dict[Any, Any]],
    labels: dict[str, str],
    initial: Any,
    terminal: Any,
) -> str:
    """
    stateDiagram-v2 source for a {state: {action: target}} table.

    States are listed in table order; every edge is labelled with its action.
    """
    lines: list[str] = ["stateDiagram-v2"]

    for state in transitions:
        lines.append(f"    {state.value} : {labels.get(state.value, state.value)}")

    lines.append("")
    lines.append(f"    [*] --> {initial.value}")

    for source, edges in transitions.items():
        for action, target in edges.items():
            lines.append(f"    {source.value} --> {target.value} : {action.value}")

    for state in transitions:
        if state in terminal:
            lines.append(f"    {state.value} --> [*]")

    return "\n".join(lines)


def generate_wash_session_diagram() -> str:
    return generate_mermaid_from_transitions(
        WASH_SESSION_TRANSITIONS,
        STATUS_LABELS,
        initial=WashSessionStatus.CREATED,
        terminal=TERMINAL_STATES,
    )


def format_diagram_block(mermaid_code: str) -> str:
    """The marked markdown block as it appears in the document"""
    return (
        f"{START_MARKER}\n"
        f"```mermaid\n{mermaid_code}\n```\n"
        f"{END_MARKER}"
    )


_BLOCK_RE = re.compile(re.escape(START_MARKER) + r".*?" + re.escape(END_MARKER), re.DOTALL)


def update_document(path: Path, block: str) -> None:
    """Replace the marked block, or append it when the document has none."""
    content = path.read_text(encoding="utf-8") if path.exists() else ""
    if START_MARKER in content:
        content = _BLOCK_RE.sub(lambda _: block, content)
    else:
        content = content.rstrip("\n") + "\n\n" + block + "\n"
    path.write_text(content, encoding="utf-8")
    print(f"Updated: {path}")


def check_document(path: Path, block: str) -> bool:
    """
    Whether the document's marked block matches the current transition table.
    """
    if not path.exists():
        print(f"Error: {path} does not exist")
        return False

    match = _BLOCK_RE.search(path.read_text(encoding="utf-8"))
    if not match:
        print(f"Error: no state diagram markers in {path}")
        return False

    if match.group(0) == block:
        print("State diagram is up to date")
        return True

    print(f"Error: the state diagram in {path} is out of date")
    print(f"Run: python scripts/generate_state_diagrams.py --update {path}")
    return False


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Generate a Mermaid diagram of the wash session state machine"
    )
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "--update",
        nargs="?",
        const=str(DEFAULT_DOCUMENT),
        metavar="MARKDOWN",
        help="rewrite the marked diagram block of a markdown file",
    )
    group.add_argument(
        "--check",
        nargs="?",
        const=str(DEFAULT_DOCUMENT),
        metavar="MARKDOWN",
        help="fail if the marked diagram block of a markdown file is stale (CI)",
    )
    args = parser.parse_args(argv)

    block = format_diagram_block(generate_wash_session_diagram())

    if args.check:
        return 0 if check_document(Path(args.check), block) else 1
    if args.update:
        update_document(Path(args.update), block)
        return 0
    print(block)
    return 0


if __name__ == "__main__":
    sys.exit(main())
