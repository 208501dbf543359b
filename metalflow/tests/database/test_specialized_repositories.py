"""
Database tests for the entity-specific repositories.

Covers the eager-loaded detail reads (one statement per call, no lazy loads
afterwards), relationship integrity checks and the name and line lookups.
"""

from decimal import Decimal

import pytest
from sqlmodel import Session

from metalflow.core.db import create_db_engine
from metalflow.domain.shared.exceptions import ErrorType, RelationshipIntegrityError
from metalflow.infrastructure.database.models import (
    Operation,
    ProductOperationRoute,
    WorkCenterOperationRoute,
    utc_now,
)
from metalflow.infrastructure.database.repositories import (
    LineRepository,
    OperationRepository,
    OperationTypeRepository,
    ProductionOrderRepository,
    ProductRepository,
    WorkCenterRepository,
)
from metalflow.tests.database.factories import (
    LineFactory,
    NetworkBuilder,
    OperationTypeFactory,
    ProductFactory,
    ProductionNetwork,
    WorkCenterFactory,
    order_with_items,
)


@pytest.fixture
def network(db_session: Session) -> ProductionNetwork:
    return NetworkBuilder(db_session).build()


@pytest.fixture
def unchecked_engine(engine):
    """Second engine on the same database with foreign key checks off."""
    unchecked = create_db_engine(
        engine.url.render_as_string(hide_password=False), enforce_foreign_keys=False
    )
    yield unchecked
    unchecked.dispose()


@pytest.mark.database
class TestWorkCenterDetails:
    def test_work_center_with_line_and_routes(
        self, network, session_factory, statement_log
    ):
        with session_factory() as session:
            repository = WorkCenterRepository(session)
            statement_log.clear()

            work_center = repository.get_by_id_with_details(network.work_center_id)

            assert work_center.name == "WC1"
            assert work_center.line.name == "L1"
            assert [r.operation_type.name for r in work_center.operation_routes] == [
                "Cut"
            ]
            # Everything above came from a single statement
            assert len(statement_log) == 1

    def test_missing_work_center(self, network, work_center_repository):
        assert work_center_repository.get_by_id_with_details(999_999) is None

    def test_all_enabled_with_details(
        self, network, db_session, session_factory, statement_log
    ):
        builder = NetworkBuilder(db_session)
        second = builder.work_centers.add(
            WorkCenterFactory.create(line_id=network.line_id, name="WC2")
        )
        third = builder.work_centers.add(
            WorkCenterFactory.create(line_id=network.line_id, name="WC3")
        )
        builder.work_centers.soft_remove(third)
        second_id = second.id

        with session_factory() as session:
            repository = WorkCenterRepository(session)
            statement_log.clear()

            work_centers = repository.get_all_enabled_with_details()

            assert [wc.id for wc in work_centers] == [network.work_center_id, second_id]
            assert {wc.line.name for wc in work_centers} == {"L1"}
            assert [len(wc.operation_routes) for wc in work_centers] == [1, 0]
            assert len(statement_log) == 1

    def test_routes_come_back_in_order(self, network, db_session, session_factory):
        repository = WorkCenterRepository(db_session)
        work_center = repository.get_by_id(network.work_center_id)
        bend = OperationTypeRepository(db_session).add(
            OperationTypeFactory.create(name="Bend")
        )
        work_center.operation_routes.append(
            WorkCenterOperationRoute(operation_type_id=bend.id, order=0)
        )
        repository.update(work_center)

        with session_factory() as session:
            loaded = WorkCenterRepository(session).get_by_id_with_details(
                network.work_center_id
            )
            assert [r.operation_type.name for r in loaded.operation_routes] == [
                "Bend",
                "Cut",
            ]

    def test_find_by_line(self, network, work_center_repository):
        extra = work_center_repository.add(
            WorkCenterFactory.create(line_id=network.line_id)
        )
        work_center_repository.soft_remove(extra)

        enabled = work_center_repository.find_by_line(network.line_id)
        everything = work_center_repository.find_by_line(
            network.line_id, enabled_only=False
        )

        assert [wc.id for wc in enabled] == [network.work_center_id]
        assert [wc.id for wc in everything] == [network.work_center_id, extra.id]

    def test_route_with_missing_operation_type(
        self, network, unchecked_engine, session_factory
    ):
        now = utc_now()
        with Session(unchecked_engine) as session:
            session.add(
                WorkCenterOperationRoute(
                    work_center_id=network.work_center_id,
                    operation_type_id=424242,
                    order=2,
                    created_at=now,
                    last_update=now,
                )
            )
            session.commit()

        with session_factory() as session:
            with pytest.raises(RelationshipIntegrityError) as exc_info:
                WorkCenterRepository(session).get_by_id_with_details(
                    network.work_center_id
                )

        assert exc_info.value.relationship == "operation_type"
        assert exc_info.value.entity_name == "WorkCenterOperationRoute"
        assert exc_info.value.error_type == ErrorType.RELATIONSHIP_INTEGRITY


@pytest.mark.database
class TestLineDetails:
    def test_line_with_routes_and_products(
        self, network, session_factory, statement_log
    ):
        with session_factory() as session:
            repository = LineRepository(session)
            statement_log.clear()

            line = repository.get_by_id_with_details(network.line_id)

            assert line.name == "L1"
            assert [r.work_center.name for r in line.work_center_routes] == ["WC1"]
            assert [a.product.id for a in line.available_products] == [
                network.product_id
            ]
            assert len(statement_log) == 1

    def test_line_without_children(self, line_repository, session_factory):
        line = line_repository.add(LineFactory.create(name="Empty"))

        with session_factory() as session:
            loaded = LineRepository(session).get_by_id_with_details(line.id)
            assert loaded.work_center_routes == []
            assert loaded.available_products == []

    def test_all_enabled_skips_disabled_lines(
        self, network, line_repository, session_factory
    ):
        spare = line_repository.add(LineFactory.create(name="Spare"))
        line_repository.soft_remove(spare)

        with session_factory() as session:
            lines = LineRepository(session).get_all_enabled_with_details()
            assert [line.name for line in lines] == ["L1"]
            assert lines[0].work_center_routes[0].work_center.name == "WC1"

    def test_disabled_work_center_still_resolves(
        self, network, work_center_repository, session_factory
    ):
        work_center = work_center_repository.get_by_id(network.work_center_id)
        work_center_repository.soft_remove(work_center)

        with session_factory() as session:
            line = LineRepository(session).get_by_id_with_details(network.line_id)
            route = line.work_center_routes[0]
            assert route.work_center.enabled is False


@pytest.mark.database
class TestOperationDetails:
    def test_operation_with_type_and_work_center(
        self, network, session_factory, statement_log
    ):
        with session_factory() as session:
            repository = OperationRepository(session)
            statement_log.clear()

            operation = repository.get_by_id_with_details(network.operation_id)

            assert operation.name == "Op1"
            assert operation.operation_type.name == "Cut"
            assert operation.work_center.name == "WC1"
            assert len(statement_log) == 1

    def test_all_enabled_with_details(self, network, session_factory):
        with session_factory() as session:
            operations = OperationRepository(session).get_all_enabled_with_details()
            assert [op.id for op in operations] == [network.operation_id]
            assert operations[0].work_center.line_id == network.line_id

    def test_missing_operation_type(self, network, unchecked_engine, session_factory):
        now = utc_now()
        with Session(unchecked_engine) as session:
            orphan = Operation(
                name="Orphan",
                capacity=1.0,
                setup_time_in_minutes=0,
                work_center_id=network.work_center_id,
                operation_type_id=424242,
                created_at=now,
                last_update=now,
            )
            session.add(orphan)
            session.commit()
            orphan_id = orphan.id

        with session_factory() as session:
            with pytest.raises(RelationshipIntegrityError) as exc_info:
                OperationRepository(session).get_by_id_with_details(orphan_id)

        assert exc_info.value.entity_name == "Operation"
        assert exc_info.value.entity_id == orphan_id
        assert exc_info.value.relationship == "operation_type"
        assert exc_info.value.to_dict()["type"] == "relationship_integrity"


@pytest.mark.database
class TestProductDetails:
    def test_product_with_routes(self, network, session_factory, statement_log):
        with session_factory() as session:
            repository = ProductRepository(session)
            statement_log.clear()

            product = repository.get_by_id_with_details(network.product_id)

            assert [r.operation_type.name for r in product.operation_routes] == ["Cut"]
            assert len(statement_log) == 1

    def test_routes_ordered(self, db_session, session_factory):
        types = OperationTypeRepository(db_session).add_range(
            [OperationTypeFactory.create(name=name) for name in ("Weld", "Cut", "Paint")]
        )
        product = ProductFactory.create(name="Frame")
        for order, operation_type in zip((2, 1, 3), types):
            product.operation_routes.append(
                ProductOperationRoute(operation_type_id=operation_type.id, order=order)
            )
        product = ProductRepository(db_session).add(product)

        with session_factory() as session:
            loaded = ProductRepository(session).get_by_id_with_details(product.id)
            assert [r.operation_type.name for r in loaded.operation_routes] == [
                "Cut",
                "Weld",
                "Paint",
            ]

    def test_all_enabled_with_details(self, network, product_repository, session_factory):
        product_repository.add(ProductFactory.create(name="Loose"))

        with session_factory() as session:
            products = ProductRepository(session).get_all_enabled_with_details()
            assert [len(p.operation_routes) for p in products] == [1, 0]


@pytest.mark.database
class TestProductionOrderDetails:
    def test_order_with_items_and_products(
        self, network, db_session, session_factory, statement_log
    ):
        other = ProductRepository(db_session).add(ProductFactory.create(name="Other"))
        order = ProductionOrderRepository(db_session).add(
            order_with_items([network.product_id, other.id], Decimal("12.50"))
        )
        order_id, other_id = order.id, other.id

        with session_factory() as session:
            repository = ProductionOrderRepository(session)
            statement_log.clear()

            loaded = repository.get_by_id_with_details(order_id)

            assert [item.product.id for item in loaded.items] == [
                network.product_id,
                other_id,
            ]
            assert all(item.quantity == Decimal("12.50") for item in loaded.items)
            assert len(statement_log) == 1

    def test_items_share_order_stamp(self, network, production_order_repository):
        order = production_order_repository.add(order_with_items([network.product_id]))

        assert order.items[0].created_at == order.created_at

    def test_find_by_order_number(self, network, production_order_repository):
        order = order_with_items([network.product_id])
        order.order_number = "PO-0042"
        production_order_repository.add(order)

        assert len(production_order_repository.find_by_order_number("PO-0042")) == 1
        assert production_order_repository.find_by_order_number("PO-0000") == []

    def test_all_enabled_with_details(
        self, network, production_order_repository, session_factory
    ):
        kept = production_order_repository.add(order_with_items([network.product_id]))
        dropped = production_order_repository.add(order_with_items([network.product_id]))
        production_order_repository.soft_remove(dropped)

        with session_factory() as session:
            orders = ProductionOrderRepository(session).get_all_enabled_with_details()
            assert [o.id for o in orders] == [kept.id]
            assert orders[0].items[0].product.id == network.product_id


@pytest.mark.database
class TestNameLookups:
    def test_find_by_name_ignores_case_and_whitespace(self, network, line_repository):
        found = line_repository.find_by_name("  l1 ")

        assert [line.id for line in found] == [network.line_id]

    def test_find_by_name_enabled_only(self, network, operation_type_repository):
        cut = operation_type_repository.get_by_id(network.operation_type_id)
        operation_type_repository.soft_remove(cut)

        assert operation_type_repository.find_by_name("CUT", enabled_only=True) == []
        assert len(operation_type_repository.find_by_name("CUT")) == 1

    def test_name_exists_counts_disabled_rows(self, product_repository):
        product = product_repository.add(ProductFactory.create(name="Billet"))
        product_repository.soft_remove(product)

        assert product_repository.name_exists("billet") is True
        assert product_repository.name_exists("Billet", exclude_id=product.id) is False
        assert product_repository.name_exists("Slab") is False
