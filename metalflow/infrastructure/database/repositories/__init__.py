"""
Repository Implementations

Concrete repositories for the production network tables. Each wraps the
generic BaseRepository and adds entity-specific eager-loaded reads.
"""

from .base import BaseRepository
from .line_repository import LineRepository
from .operation_repository import OperationRepository
from .operation_type_repository import OperationTypeRepository
from .product_repository import ProductRepository
from .production_order_repository import ProductionOrderRepository
from .work_center_repository import WorkCenterRepository

__all__ = [
    # Base classes
    "BaseRepository",
    # Repository implementations
    "LineRepository",
    "WorkCenterRepository",
    "OperationRepository",
    "OperationTypeRepository",
    "ProductRepository",
    "ProductionOrderRepository",
]
