"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from acf.models.base import Base
from acf.models.enums import NodeStatus, OrderStatus, RegistrationMode, Scope
from acf.models.node import RUN_NUMBER_SEQUENCE, Node
from acf.models.order import Order
from acf.models.owner_index import OwnerIndexEntry

__all__ = [
    # Base
    "Base",
    # Enums
    "NodeStatus",
    "OrderStatus",
    "RegistrationMode",
    "Scope",
    # Network Models
    "Node",
    "OwnerIndexEntry",
    "RUN_NUMBER_SEQUENCE",
    # Ledger Models
    "Order",
]
