"""Account placement selection."""

from typing import Callable, Iterable, List, Tuple, Union

from cluster_registry.core.errors import NoSuitableNode
from cluster_registry.core.models import NodeRecord, NodeResources, NodeRole, parse_role


ScoreFunction = Callable[[NodeResources], int]


def _free_percent(used: int) -> int:
    return 100 - max(0, min(100, used))


def utilization_score(resources: NodeResources) -> int:
    """
    Free capacity score in [0, 300]; higher is better.

    CPU, RAM and disk are weighted equally.
    """
    return (
        _free_percent(resources.used_cpu_percent)
        + _free_percent(resources.used_ram_percent)
        + _free_percent(resources.used_disk_percent)
    )


def is_candidate(node: NodeRecord) -> bool:
    """Online and reporting resources."""
    return node.is_online() and node.resources is not None


def rank_nodes(
    nodes: Iterable[NodeRecord],
    score: ScoreFunction = utilization_score,
) -> List[Tuple[NodeRecord, int]]:
    """
    Score every candidate, best first.

    The sort is stable, so equal scores keep their input order.
    """
    scored = [(node, score(node.resources)) for node in nodes if is_candidate(node)]
    scored.sort(key=lambda pair: pair[1], reverse=True)
    return scored


def select_best_node(
    nodes: Iterable[NodeRecord],
    role: Union[NodeRole, str],
    score: ScoreFunction = utilization_score,
) -> NodeRecord:
    """
    Pick the online node with the most free capacity for a role.

    `nodes` is a point-in-time snapshot; nodes lacking the role are
    ignored. On ties the first node in iteration order wins. Raises
    NoSuitableNode when nothing qualifies.
    """
    role = parse_role(role)

    best = None
    best_score = 0
    for node in nodes:
        if not node.has_role(role) or not is_candidate(node):
            continue
        node_score = score(node.resources)
        if best is None or node_score > best_score:
            best_score = node_score
            best = node

    if best is None:
        raise NoSuitableNode(role.value)

    return best
