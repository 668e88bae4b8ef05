"""
Services.

Business logic layer. Import concrete services from their modules
(acf.services.placement, acf.services.registration_service); only the
shared base is re-exported here so repositories can depend on the
placement types without an import cycle.
"""

from acf.services.base_service import (
    BaseService,
    ServiceResult,
    log_operation,
    transaction,
)


__all__ = [
    "BaseService",
    "ServiceResult",
    "log_operation",
    "transaction",
]
