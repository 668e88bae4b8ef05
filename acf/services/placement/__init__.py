"""
Placement services package.

Contains the ACF placement and aggregation core:
- ports: collaborator contracts (NodeStore, Ledger, RunNumberAuthority)
- memory_store: in-process collaborators
- depth_guard: depth ceiling predicate
- candidate_selector: candidate generation and ordering
- engine: capacity-safe parent allocation
- aggregator: subtree membership and financial aggregates
- coordinator: registration entry point
- audit: network limits verification
"""

from acf.services.placement.aggregator import NetworkAggregator, subtree_members
from acf.services.placement.audit import (
    NetworkAuditReport,
    audit_network,
    audit_nodes,
)
from acf.services.placement.candidate_selector import CandidateSelector
from acf.services.placement.coordinator import RegistrationCoordinator
from acf.services.placement.depth_guard import DepthGuard
from acf.services.placement.engine import PlacementEngine
from acf.services.placement.memory_store import (
    InMemoryLedger,
    InMemoryNodeStore,
    InMemoryRunNumberAuthority,
)
from acf.services.placement.snapshot import SnapshotLoader
from acf.services.placement.types import (
    NetworkFinancials,
    NodeSnapshot,
    OrderAggregates,
    OwnerIndexEntry,
    ParentAssignment,
    SubtreeMember,
    TreeSnapshot,
)


__all__ = [
    # Core
    "CandidateSelector",
    "DepthGuard",
    "NetworkAggregator",
    "PlacementEngine",
    "RegistrationCoordinator",
    "SnapshotLoader",
    "subtree_members",
    # Audit
    "NetworkAuditReport",
    "audit_network",
    "audit_nodes",
    # In-memory collaborators
    "InMemoryLedger",
    "InMemoryNodeStore",
    "InMemoryRunNumberAuthority",
    # Types
    "NetworkFinancials",
    "NodeSnapshot",
    "OrderAggregates",
    "OwnerIndexEntry",
    "ParentAssignment",
    "SubtreeMember",
    "TreeSnapshot",
]
