#!/usr/bin/env python3
"""
Mermaid syntax validator.

Scans raw Mermaid text for constructs that are likely to break or degrade a
Draw.io conversion. Returns structured findings split into blocking issues
and advisory warnings, plus node/edge counts from a best-effort parse.
"""

import argparse
import json
import re
import sys
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import List, Optional

from mermaid_convert.mermaid_parser import (
    DiagramParseError, detect_diagram_type, parse_mermaid, strip_fences,
)


STYLING_PREFIXES = ('classDef', 'style ', 'linkStyle')

_DIRECTION_RE = re.compile(r'\b(td|tb|bt|lr|rl)\b', re.IGNORECASE)
_LEADING_ID_RE = re.compile(r'^\s*([^\s\[\(\{]+?)\s*(?:[\[\(\{]|--|-\.|==)')
_WORD_RE = re.compile(r'^\w+$')


@dataclass
class ValidationFinding:
    line: int
    issue: str
    suggestion: str


@dataclass
class ValidationResult:
    is_valid: bool
    compatibility: str
    issues: List[ValidationFinding] = field(default_factory=list)
    warnings: List[ValidationFinding] = field(default_factory=list)
    node_count: int = 0
    edge_count: int = 0
    diagram_type: Optional[str] = None

    def to_dict(self) -> dict:
        """camelCase dict for JSON consumers."""
        data = {
            'isValid': self.is_valid,
            'compatibility': self.compatibility,
            'issues': [asdict(f) for f in self.issues],
            'warnings': [asdict(f) for f in self.warnings],
            'nodeCount': self.node_count,
            'edgeCount': self.edge_count,
        }
        if self.diagram_type:
            data['diagramType'] = self.diagram_type
        return data


def _compatibility(issues: List[ValidationFinding], warnings: List[ValidationFinding]) -> str:
    if issues:
        return 'low'
    if warnings:
        return 'medium'
    return 'high'


def validate_mermaid(code: str) -> ValidationResult:
    """Check Mermaid text for conversion risks. Never raises on bad input.

    Non-text input is scanned as empty text, so it fails the diagram type
    check and reports zero counts.
    """
    issues: List[ValidationFinding] = []
    warnings: List[ValidationFinding] = []

    text = strip_fences(code) if isinstance(code, str) else ''
    lines = text.split('\n')

    header_no, header = 1, ''
    for i, raw in enumerate(lines, start=1):
        if raw.strip() and not raw.strip().startswith('%%'):
            header_no, header = i, raw.strip()
            break

    kind, _ = detect_diagram_type(header)
    if kind is None:
        issues.append(ValidationFinding(
            line=header_no,
            issue='Missing or invalid diagram type declaration',
            suggestion='Start with flowchart TD, sequenceDiagram, etc.',
        ))
    elif kind == 'flowchart' and not _DIRECTION_RE.search(header):
        warnings.append(ValidationFinding(
            line=header_no,
            issue='Direction not specified',
            suggestion='Add direction: TD, LR, RL, or BT',
        ))

    # Identifier checks only make sense for flowchart-style node syntax.
    check_ids = kind in (None, 'flowchart')

    for i, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line or line.startswith('%%'):
            continue

        if line.startswith(STYLING_PREFIXES):
            warnings.append(ValidationFinding(
                line=i,
                issue='Styling directive found',
                suggestion='Styling may not convert cleanly to Draw.io',
            ))

        if line.count('-->') > 1:
            issues.append(ValidationFinding(
                line=i,
                issue='Chained arrows detected',
                suggestion='Break into separate lines: A --> B and B --> C',
            ))

        if check_ids and i != header_no:
            m = _LEADING_ID_RE.match(line)
            if m and not _WORD_RE.match(m.group(1)):
                issues.append(ValidationFinding(
                    line=i,
                    issue=f'Invalid node ID: {m.group(1)}',
                    suggestion='Use only alphanumeric characters and underscores',
                ))

    result = ValidationResult(
        is_valid=not issues,
        compatibility=_compatibility(issues, warnings),
        issues=issues,
        warnings=warnings,
    )

    try:
        diagram = parse_mermaid(code)
    except DiagramParseError:
        return result
    result.node_count = len(diagram.nodes)
    result.edge_count = len(diagram.edges)
    result.diagram_type = diagram.diagram_type
    return result


def main():
    parser = argparse.ArgumentParser(description="Validate Mermaid diagram syntax")
    parser.add_argument("--input", "-i", required=True, help="Input .mmd file")
    parser.add_argument("--json", action="store_true", help="Output JSON result")
    args = parser.parse_args()

    input_path = Path(args.input)
    if not input_path.exists():
        print(f"Error: Input file not found: {input_path}", file=sys.stderr)
        sys.exit(1)

    result = validate_mermaid(input_path.read_text(encoding='utf-8'))

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    elif result.is_valid:
        print(f"VALID ({result.compatibility} compatibility)")
    else:
        print("INVALID")
        for finding in result.issues:
            print(f"  line {finding.line}: {finding.issue}", file=sys.stderr)

    sys.exit(0 if result.is_valid else 1)


if __name__ == "__main__":
    main()
