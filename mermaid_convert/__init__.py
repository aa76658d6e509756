"""Deterministic Mermaid conversion pipeline.

Parses Mermaid flowcharts, sequence diagrams, ER diagrams and mindmaps
into a ParsedDiagram, lays them out, and renders Draw.io XML or Markdown
documentation. Also validates Mermaid text for Draw.io compatibility.
"""

from mermaid_convert.drawio_writer import to_drawio
from mermaid_convert.layout import add_terminal_nodes, layout_diagram, layout_flowchart
from mermaid_convert.markdown_writer import to_markdown, validation_report_to_markdown
from mermaid_convert.mermaid_parser import DiagramParseError, EmptyDiagramError, parse_mermaid
from mermaid_convert.validator import ValidationResult, validate_mermaid

__all__ = [
    "parse_mermaid",
    "DiagramParseError",
    "EmptyDiagramError",
    "validate_mermaid",
    "ValidationResult",
    "add_terminal_nodes",
    "layout_flowchart",
    "layout_diagram",
    "to_drawio",
    "to_markdown",
    "validation_report_to_markdown",
]
