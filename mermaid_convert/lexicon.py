"""
Shape and arrow lexicon for Mermaid → Draw.io conversion.

The shape table is an ordered list, most specific delimiters first:
stadium ``([...])``, circle ``((...))`` and subroutine ``[[...]]`` must be
tried before rectangle ``[...]``, rounded ``(...)`` and diamond ``{...}``,
otherwise the single-character patterns swallow them.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Pattern, Tuple

from mermaid_convert.diagram_ast import ArrowStyle


@dataclass(frozen=True)
class ShapeDescriptor:
    shape: str
    style: str
    fill_color: str
    stroke_color: str


@dataclass(frozen=True)
class ParsedShape:
    shape: str
    label: str
    style: str
    fill_color: str
    stroke_color: str


STADIUM = ShapeDescriptor('stadium', 'rounded=1;arcSize=50;whiteSpace=wrap;html=1;', '#d5e8d4', '#82b366')
CIRCLE = ShapeDescriptor('circle', 'ellipse;whiteSpace=wrap;html=1;', '#f8cecc', '#b85450')
SUBROUTINE = ShapeDescriptor('subroutine', 'shape=process;whiteSpace=wrap;html=1;', '#e1d5e7', '#9673a6')
RECTANGLE = ShapeDescriptor('rectangle', 'rounded=0;whiteSpace=wrap;html=1;', '#dae8fc', '#6c8ebf')
ROUNDED_RECT = ShapeDescriptor('roundedRect', 'rounded=1;whiteSpace=wrap;html=1;', '#fff2cc', '#d6b656')
DIAMOND = ShapeDescriptor('diamond', 'rhombus;whiteSpace=wrap;html=1;', '#ffe6cc', '#d79b00')

SHAPE_PATTERNS: List[Tuple[Pattern, ShapeDescriptor]] = [
    (re.compile(r'^\(\[([^\]]+)\]\)$'), STADIUM),
    (re.compile(r'^\(\(([^)]+)\)\)$'), CIRCLE),
    (re.compile(r'^\[\[([^\]]+)\]\]$'), SUBROUTINE),
    (re.compile(r'^\[([^\]]+)\]$'), RECTANGLE),
    (re.compile(r'^\(([^)]+)\)$'), ROUNDED_RECT),
    (re.compile(r'^\{([^}]+)\}$'), DIAMOND),
]

ARROW_TOKENS: List[Tuple[str, ArrowStyle]] = [
    ('-->', ArrowStyle('solid', 'classic')),
    ('---', ArrowStyle('solid', 'none')),
    ('-.->', ArrowStyle('dashed', 'classic')),
    ('-.-', ArrowStyle('dashed', 'none')),
    ('==>', ArrowStyle('thick', 'classic')),
    ('-->|', ArrowStyle('solid', 'classic', has_label=True)),
    ('--|', ArrowStyle('solid', 'none', has_label=True)),
]

DEFAULT_ARROW = ArrowStyle('solid', 'classic')

# Mindmap depth palette: red, blue, green, yellow, purple, orange.
LEVEL_FILL_COLORS = ['#f8cecc', '#dae8fc', '#d5e8d4', '#fff2cc', '#e1d5e7', '#ffe6cc']
LEVEL_STROKE_COLORS = ['#b85450', '#6c8ebf', '#82b366', '#d6b656', '#9673a6', '#d79b00']

CARDINALITY_ARROWS = {
    '||': 'ERone',
    'o|': 'ERzeroToOne',
    '|o': 'ERzeroToOne',
    'o{': 'ERzeroToMany',
    '}o': 'ERzeroToMany',
    '{o': 'ERzeroToMany',
    '|{': 'ERoneToMany',
    '}|': 'ERoneToMany',
    '{|': 'ERoneToMany',
}


def parse_node_shape(fragment: str) -> ParsedShape:
    """Classify a bracketed node fragment such as ``([Start])`` or ``{Ok?}``."""
    for pattern, descriptor in SHAPE_PATTERNS:
        m = pattern.match(fragment)
        if m:
            return ParsedShape(
                shape=descriptor.shape,
                label=m.group(1).strip(),
                style=descriptor.style,
                fill_color=descriptor.fill_color,
                stroke_color=descriptor.stroke_color,
            )
    return ParsedShape(
        shape=RECTANGLE.shape,
        label=fragment.strip(),
        style=RECTANGLE.style,
        fill_color=RECTANGLE.fill_color,
        stroke_color=RECTANGLE.stroke_color,
    )


def parse_arrow(token: str) -> ArrowStyle:
    """Return the style of the first arrow token contained in *token*."""
    for pattern, style in ARROW_TOKENS:
        if pattern in token:
            return style
    return DEFAULT_ARROW


def level_colors(depth: int) -> Tuple[str, str]:
    """(fill, stroke) for a mindmap node at *depth*."""
    index = depth % len(LEVEL_FILL_COLORS)
    return LEVEL_FILL_COLORS[index], LEVEL_STROKE_COLORS[index]


def cardinality_style(token: Optional[str], at_start: bool) -> str:
    """Draw.io arrow style fragment for an ER cardinality token."""
    prefix = 'start' if at_start else 'end'
    arrow = CARDINALITY_ARROWS.get(token or '', 'ERone')
    return f"{prefix}Arrow={arrow};{prefix}Fill=0;"
