"""
Tests for the Mermaid diagram generator of the wash session state machine.
"""
import pytest
import sys
from enum import Enum
from pathlib import Path

# repo root on the path so scripts/ is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from scripts.generate_state_diagrams import (
    DEFAULT_DOCUMENT,
    END_MARKER,
    START_MARKER,
    STATUS_LABELS,
    check_document,
    format_diagram_block,
    generate_mermaid_from_transitions,
    generate_wash_session_diagram,
    main,
    update_document,
)
from app.db.models.wash_session import WashSessionStatus


class _Light(str, Enum):
    RED = "red"
    GREEN = "green"


class _Switch(str, Enum):
    GO = "go"
    STOP = "stop"


class TestGenericGenerator:

    @pytest.mark.unit
    def test_small_table(self) -> None:
        mermaid = generate_mermaid_from_transitions(
            {_Light.RED: {_Switch.GO: _Light.GREEN}, _Light.GREEN: {_Switch.STOP: _Light.RED}},
            {"red": "Red light"},
            initial=_Light.RED,
            terminal=set(),
        )

        assert mermaid.splitlines() == [
            "stateDiagram-v2",
            "    red : Red light",
            "    green : green",
            "",
            "    [*] --> red",
            "    red --> green : go",
            "    green --> red : stop",
        ]


class TestWashSessionDiagram:

    @pytest.mark.unit
    def test_contains_every_status(self) -> None:
        mermaid = generate_wash_session_diagram()

        for status in WashSessionStatus:
            assert f"    {status.value} : {STATUS_LABELS[status.value]}" in mermaid

    @pytest.mark.unit
    def test_edges(self) -> None:
        mermaid = generate_wash_session_diagram()

        assert "    [*] --> created" in mermaid
        assert "    created --> authorized : authorize" in mermaid
        assert "    authorized --> rejected : reject" in mermaid
        assert "    in_progress --> completed : complete" in mermaid
        assert "    completed --> locked : lock" in mermaid
        assert "in_progress --> rejected" not in mermaid

    @pytest.mark.unit
    def test_terminal_states_end(self) -> None:
        mermaid = generate_wash_session_diagram()

        assert "    locked --> [*]" in mermaid
        assert "    rejected --> [*]" in mermaid
        assert "    completed --> [*]" not in mermaid


class TestDocumentBlock:

    @pytest.mark.unit
    def test_format_block(self) -> None:
        block = format_diagram_block("stateDiagram-v2")

        assert block == f"{START_MARKER}\n```mermaid\nstateDiagram-v2\n```\n{END_MARKER}"

    @pytest.mark.unit
    def test_update_replaces_existing_block(self, tmp_path) -> None:
        doc = tmp_path / "DESIGN.md"
        doc.write_text(f"# Design\n\n{START_MARKER}\nold\n{END_MARKER}\n\nTrailer\n", encoding="utf-8")
        block = format_diagram_block(generate_wash_session_diagram())

        update_document(doc, block)

        content = doc.read_text(encoding="utf-8")
        assert "old" not in content
        assert content.startswith("# Design\n\n")
        assert content.endswith("\n\nTrailer\n")
        assert check_document(doc, block)

    @pytest.mark.unit
    def test_update_appends_when_no_markers(self, tmp_path) -> None:
        doc = tmp_path / "notes.md"
        doc.write_text("# Notes\n", encoding="utf-8")
        block = format_diagram_block("stateDiagram-v2")

        update_document(doc, block)

        assert doc.read_text(encoding="utf-8") == f"# Notes\n\n{block}\n"

    @pytest.mark.unit
    def test_check_detects_stale_block(self, tmp_path) -> None:
        doc = tmp_path / "DESIGN.md"
        doc.write_text(format_diagram_block("stateDiagram-v2\n    old --> new"), encoding="utf-8")

        assert check_document(doc, format_diagram_block(generate_wash_session_diagram())) is False

    @pytest.mark.unit
    def test_check_missing_file_or_markers(self, tmp_path) -> None:
        block = format_diagram_block("stateDiagram-v2")
        plain = tmp_path / "plain.md"
        plain.write_text("no diagram here", encoding="utf-8")

        assert check_document(tmp_path / "missing.md", block) is False
        assert check_document(plain, block) is False


class TestMain:

    @pytest.mark.unit
    def test_update_then_check(self, tmp_path) -> None:
        doc = tmp_path / "DESIGN.md"
        doc.write_text("# Design\n", encoding="utf-8")

        assert main(["--check", str(doc)]) == 1
        assert main(["--update", str(doc)]) == 0
        assert main(["--check", str(doc)]) == 0

    @pytest.mark.unit
    def test_prints_block_by_default(self, capsys) -> None:
        assert main([]) == 0

        out = capsys.readouterr().out
        assert START_MARKER in out
        assert "completed --> locked : lock" in out

    @pytest.mark.unit
    def test_design_document_in_sync(self) -> None:
        """DESIGN.md must carry the diagram of the current transition table"""
        block = format_diagram_block(generate_wash_session_diagram())

        assert check_document(DEFAULT_DOCUMENT, block)
