"""
Model enums.

Shared enumerations for placement and ledger models.
"""

from enum import Enum


class CaseInsensitiveEnum(str, Enum):
    """String enum that also accepts its values in any case."""

    @classmethod
    def _missing_(cls, value: object) -> "CaseInsensitiveEnum | None":
        if isinstance(value, str):
            lowered = value.lower()
            for member in cls:
                if member.value == lowered:
                    return member
        return None


class Scope(CaseInsensitiveEnum):
    """Candidate breadth for parent allocation."""

    FILE = "file"  # Owner plus its own index entries
    NETWORK = "network"  # Whole BFS subtree of the owner


class RegistrationMode(CaseInsensitiveEnum):
    """Registration modes."""

    NIC = "nic"  # No invite code, placed under the ACF root
    BIC = "bic"  # By invite code, placed under the given invitor


class NodeStatus(str, Enum):
    """Capacity-and-depth derived node status."""

    OPEN = "open"
    FULL = "full"


class OrderStatus(str, Enum):
    """Order lifecycle statuses relevant to the ledger."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
