"""
Repository for ProductionOrder entities.

Orders are read together with their items, in item order, and each item's
product.
"""

from sqlalchemy.orm import joinedload
from sqlmodel import Session

from metalflow.infrastructure.database.models import ProductionOrder, ProductionOrderItem

from .base import BaseRepository


class ProductionOrderRepository(BaseRepository[ProductionOrder]):
    """Repository for managing production orders."""

    def __init__(self, session: Session, auto_commit: bool = True):
        super().__init__(ProductionOrder, session, auto_commit)

    @staticmethod
    def _detail_options() -> list:
        return [joinedload(ProductionOrder.items).joinedload(ProductionOrderItem.product)]

    def _check_details(self, order: ProductionOrder) -> ProductionOrder:
        for item in order.items:
            self._require_related(item, "product")
        return order

    def get_by_id_with_details(self, order_id: int) -> ProductionOrder | None:
        order = self._get_with_options(order_id, self._detail_options())
        if order is None:
            return None
        return self._check_details(order)

    def get_all_enabled_with_details(self) -> list[ProductionOrder]:
        orders = self._all_enabled_with_options(self._detail_options())
        return [self._check_details(order) for order in orders]

    def find_by_order_number(self, order_number: str) -> list[ProductionOrder]:
        return self.find(ProductionOrder.order_number == order_number)
