"""
Journey helpers
Journey identity and ordered-step matching over session paths.

Two journeys are the same journey when their node sequences are equal after
collapsing consecutive repeats: reloading a page (a content -> same content
self-loop) does not make a new journey.
"""

from typing import List, Sequence, Tuple

from ..interfaces.graph_store import NodeRef


JourneyKey = Tuple[NodeRef, ...]


def journey_key(path: Sequence[NodeRef]) -> JourneyKey:
    """
    Collapse consecutive repeated nodes

    Example:
        >>> journey_key([intent, page_a, page_a, page_b, booking])
        (intent, page_a, page_b, booking)
    """
    collapsed: List[NodeRef] = []
    for node in path:
        if not collapsed or collapsed[-1] != node:
            collapsed.append(node)
    return tuple(collapsed)


def journey_labels(key: Sequence[NodeRef]) -> List[str]:
    """Render a journey as "kind:id" strings"""
    return [node.key for node in key]


def reaches_steps(path: Sequence[NodeRef], steps: Sequence[NodeRef]) -> int:
    """
    How many of `steps` the path visits in order (gaps allowed)

    Returns:
        int: 0..len(steps); k means steps[0..k-1] were all reached in order
    """
    reached = 0
    for node in path:
        if reached == len(steps):
            break
        if node == steps[reached]:
            reached += 1
    return reached
