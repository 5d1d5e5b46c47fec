"""Hierarchical span tree built from a flat list of spans.

A span is a root when it has no parent id, or when its parent is not among
the spans of the same result set (a dangling reference is not an error).
Roots and each children list are ordered by start timestamp; spans starting
at the same instant keep their arrival order.

The tree is a throwaway view: it is rebuilt for every render and only holds
references into the list it was built from.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Set, Tuple

from .models import SpanEntry


def _start(span: SpanEntry):
    return span.attributes.start_timestamp


@dataclass
class SpanTree:
    """Roots plus children lists keyed by parent span id."""

    roots: List[SpanEntry] = field(default_factory=list)
    children: Dict[str, List[SpanEntry]] = field(default_factory=dict)
    spans: List[SpanEntry] = field(default_factory=list)

    def children_of(self, span: SpanEntry) -> List[SpanEntry]:
        return self.children.get(span.attributes.span_id, [])

    def walk(self) -> Iterator[Tuple[SpanEntry, int]]:
        """Yield ``(span, depth)`` depth-first, pre-order, starting at the roots.

        Every span is yielded at most once. Spans caught in a parent cycle
        are unreachable from any root; they are walked afterwards, each
        unvisited one acting as an extra root, so nothing is dropped.
        """
        visited: Set[int] = set()

        def visit(span: SpanEntry, depth: int) -> Iterator[Tuple[SpanEntry, int]]:
            stack = [(span, depth)]
            while stack:
                current, level = stack.pop()
                if id(current) in visited:
                    continue
                visited.add(id(current))
                yield current, level
                # Reversed so the earliest child is popped first
                for child in reversed(self.children_of(current)):
                    if id(child) not in visited:
                        stack.append((child, level + 1))

        for root in self.roots:
            yield from visit(root, 0)

        for span in sorted(self.spans, key=_start):
            if id(span) not in visited:
                yield from visit(span, 0)


def build_span_tree(spans: List[SpanEntry]) -> SpanTree:
    """Build the parent/child hierarchy of ``spans``.

    Parameters
    ----------
    spans : List[SpanEntry]
        Spans in arrival order, typically all spans of one trace.

    Returns
    -------
    SpanTree
        Roots and children lists, each sorted by start timestamp.
    """
    if not spans:
        return SpanTree()

    known_ids = {s.attributes.span_id for s in spans}
    roots: List[SpanEntry] = []
    children: Dict[str, List[SpanEntry]] = {}

    for span in spans:
        parent_id = span.attributes.parent_id
        if not parent_id or parent_id not in known_ids:
            roots.append(span)
        else:
            children.setdefault(parent_id, []).append(span)

    # sorted() is stable, ties keep arrival order
    roots = sorted(roots, key=_start)
    children = {k: sorted(v, key=_start) for k, v in children.items()}

    return SpanTree(roots=roots, children=children, spans=list(spans))
