"""
Network limits audit.

Read-only verification of the structural invariants over a whole store:
capacity, fanout, depth, parent consistency, subtree size and root
uniqueness.
"""

from collections import defaultdict
from dataclasses import dataclass, field

from loguru import logger

from acf.config.constants import (
    DEFAULT_MAX_CHILDREN,
    MAX_DEPTH,
    MAX_SUBTREE_SIZE,
    ROOT_MAX_CHILDREN,
)
from acf.services.placement.ports import NodeStore
from acf.services.placement.types import NodeSnapshot


@dataclass
class NetworkAuditReport:
    """Outcome of audit_network."""

    node_count: int = 0
    max_depth_found: int = 0
    largest_subtree: int = 0
    violations: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.violations


def audit_nodes(nodes: list[NodeSnapshot]) -> NetworkAuditReport:
    """Check every invariant over an in-memory list of nodes."""
    report = NetworkAuditReport(node_count=len(nodes))
    by_id = {n.id: n for n in nodes}
    children: dict[str, list[str]] = defaultdict(list)

    roots = [n for n in nodes if n.parent_id is None]
    if len(roots) != 1:
        report.violations.append(
            f"expected exactly one root, found {len(roots)}"
        )

    for node in nodes:
        expected_max = (
            ROOT_MAX_CHILDREN if node.parent_id is None else DEFAULT_MAX_CHILDREN
        )
        if node.max_children != expected_max:
            report.violations.append(
                f"{node.id}: max_children {node.max_children} != {expected_max}"
            )
        if not 0 <= node.child_count <= node.max_children:
            report.violations.append(
                f"{node.id}: child_count {node.child_count} outside "
                f"0..{node.max_children}"
            )
        if not 0 <= node.depth <= MAX_DEPTH:
            report.violations.append(
                f"{node.id}: depth {node.depth} outside 0..{MAX_DEPTH}"
            )
        report.max_depth_found = max(report.max_depth_found, node.depth)

        if node.parent_id is None:
            if node.depth != 0:
                report.violations.append(f"{node.id}: root depth {node.depth}")
            continue

        parent = by_id.get(node.parent_id)
        if parent is None:
            report.violations.append(
                f"{node.id}: parent {node.parent_id} missing"
            )
            continue
        children[parent.id].append(node.id)
        if node.depth != parent.depth + 1:
            report.violations.append(
                f"{node.id}: depth {node.depth} != parent depth "
                f"{parent.depth} + 1"
            )

    for node in nodes:
        actual = len(children.get(node.id, ()))
        if actual != node.child_count:
            report.violations.append(
                f"{node.id}: child_count {node.child_count} but "
                f"{actual} placed children"
            )

    # Subtree sizes bottom-up; depth order is safe once depths are checked
    sizes: dict[str, int] = {}
    for node in sorted(nodes, key=lambda n: n.depth, reverse=True):
        sizes[node.id] = 1 + sum(
            sizes.get(child_id, 0) for child_id in children.get(node.id, ())
        )
    for node_id, size in sizes.items():
        report.largest_subtree = max(report.largest_subtree, size)
        if size > MAX_SUBTREE_SIZE:
            report.violations.append(
                f"{node_id}: subtree size {size} > {MAX_SUBTREE_SIZE}"
            )

    return report


async def audit_network(store: NodeStore) -> NetworkAuditReport:
    """
    Audit every node in store.

    Args:
        store: Node storage collaborator

    Returns:
        Report with all violations found
    """
    nodes = [node async for node in store.iter_nodes()]
    report = audit_nodes(nodes)

    if report.ok:
        logger.info(
            "Network audit passed",
            extra={
                "node_count": report.node_count,
                "max_depth_found": report.max_depth_found,
                "largest_subtree": report.largest_subtree,
            },
        )
    else:
        logger.error(
            "Network audit found violations",
            extra={
                "node_count": report.node_count,
                "violations": len(report.violations),
            },
        )
    return report
