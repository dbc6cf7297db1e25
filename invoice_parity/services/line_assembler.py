"""
Line assembly for generic line diffing.
"""

from typing import Dict, Iterable, List

from invoice_parity.models.document import Line, Token


def line_key(y: float, precision: float) -> float:
    """Bucket a Y coordinate so rendering jitter below ``precision`` collapses."""
    return round(round(y / precision) * precision, 6)


def assemble_lines(tokens: Iterable[Token], precision: float = 0.1) -> List[Line]:
    """
    Group tokens into lines by rounded Y.

    Each group is sorted by X and joined with single spaces. A line takes the
    Y of its leftmost token. The result is not ordered by Y.

    Args:
        tokens: Tokens to group; whitespace-only tokens are skipped
        precision: Y rounding step

    Returns:
        Assembled lines
    """
    groups: Dict[float, List[Token]] = {}
    for token in tokens:
        if not token.text.strip():
            continue
        groups.setdefault(line_key(token.y, precision), []).append(token)

    lines = []
    for group in groups.values():
        group.sort(key=lambda t: t.x)
        lines.append(Line(y=group[0].y, text=" ".join(t.text for t in group).strip()))
    return lines
