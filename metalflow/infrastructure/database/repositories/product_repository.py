"""
Repository for Product entities.
"""

from sqlalchemy.orm import joinedload
from sqlmodel import Session

from metalflow.infrastructure.database.models import Product, ProductOperationRoute

from .base import BaseRepository
from .mixins import NamedEntityMixin


class ProductRepository(NamedEntityMixin, BaseRepository[Product]):
    """Repository for managing products."""

    def __init__(self, session: Session, auto_commit: bool = True):
        super().__init__(Product, session, auto_commit)

    @staticmethod
    def _detail_options() -> list:
        return [
            joinedload(Product.operation_routes).joinedload(
                ProductOperationRoute.operation_type
            )
        ]

    def _check_details(self, product: Product) -> Product:
        for route in product.operation_routes:
            self._require_related(route, "operation_type")
        return product

    def get_by_id_with_details(self, product_id: int) -> Product | None:
        """
        Get a product with its operation routes, each with its operation type.

        Raises:
            RelationshipIntegrityError: If a route's operation type is missing
        """
        product = self._get_with_options(product_id, self._detail_options())
        if product is None:
            return None
        return self._check_details(product)

    def get_all_enabled_with_details(self) -> list[Product]:
        products = self._all_enabled_with_options(self._detail_options())
        return [self._check_details(product) for product in products]
