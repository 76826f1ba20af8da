# Overview: Threaded concurrency tests against a file-backed SQLite database.

"""
Concurrency Tests

Each worker thread runs in its own app context (own DB session and
connection) against a temporary SQLite file, so the database locking is
real rather than simulated on a shared in-memory connection.
"""

import threading
from decimal import Decimal

import pytest

from poscore import create_app
from poscore.errors import InsufficientStockError
from poscore.extensions import db
from poscore.models import (
    Vendor, Location, Operator, Register, RegisterSession, Product, InventoryRecord, StockMovement,
)
from poscore.services import inventory_service, sales_service, session_service
from poscore.services.token_service import OperatorContext


@pytest.fixture
def file_app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'concurrency.db'}",
        'BCRYPT_ROUNDS': 4,
    })

    with app.app_context():
        db.create_all()

        vendor = Vendor(name="Concurrency Vendor", slug="concurrency", allow_negative_stock=False)
        db.session.add(vendor)
        db.session.commit()

        location = Location(vendor_id=vendor.id, name="Main", slug="main")
        db.session.add(location)
        db.session.commit()

        operator = Operator(
            vendor_id=vendor.id,
            location_id=location.id,
            username="concurrent_user",
            email="concurrent@example.com",
            password_hash="dummy",
            role="cashier",
            is_active=True,
        )
        register = Register(vendor_id=vendor.id, location_id=location.id, register_number="REG-01", name="Front")
        product = Product(vendor_id=vendor.id, sku="CONCUR-1", name="Concurrent Product", price=Decimal("10.00"))
        db.session.add_all([operator, register, product])
        db.session.commit()

        record = InventoryRecord(
            vendor_id=vendor.id,
            product_id=product.id,
            location_id=location.id,
            quantity=Decimal("10"),
            average_cost=Decimal("4.00"),
        )
        db.session.add(record)
        db.session.commit()

        app.seed = {
            "ctx": OperatorContext.for_operator(operator),
            "location_id": location.id,
            "register_id": register.id,
            "product_id": product.id,
            "inventory_id": record.id,
        }

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.session.remove()
        db.engine.dispose()


def run_threads(app, target, args_list):
    """Start one thread per args tuple behind a barrier; return (results, errors)."""
    results = []
    errors = []
    lock = threading.Lock()
    barrier = threading.Barrier(len(args_list))

    def worker(*args):
        with app.app_context():
            try:
                barrier.wait()
                value = target(*args)
                with lock:
                    results.append(value)
            except Exception as exc:
                with lock:
                    errors.append(exc)
            finally:
                db.session.remove()

    threads = [threading.Thread(target=worker, args=args) for args in args_list]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results, errors


def _open_session(app):
    seed = app.seed
    ctx = seed["ctx"]
    with app.app_context():
        session = session_service.get_or_create_session(
            seed["register_id"], seed["location_id"], ctx.vendor_id, ctx.operator_id, opening_cash=200
        )
        return session.id


def test_concurrent_get_or_create_returns_one_session(file_app):
    seed = file_app.seed
    ctx = seed["ctx"]

    def open_register():
        session = session_service.get_or_create_session(
            seed["register_id"], seed["location_id"], ctx.vendor_id, ctx.operator_id
        )
        return session.id

    results, errors = run_threads(file_app, open_register, [()] * 8)

    assert errors == []
    assert len(results) == 8
    assert len(set(results)) == 1

    with file_app.app_context():
        open_rows = db.session.query(RegisterSession).filter_by(register_id=seed["register_id"], status="open").all()
        assert [s.id for s in open_rows] == results[:1]

        # A later call still returns the same session
        again = session_service.get_or_create_session(
            seed["register_id"], seed["location_id"], ctx.vendor_id, ctx.operator_id
        )
        assert again.id == results[0]


def test_concurrent_sale_increments_are_not_lost(file_app):
    ctx = file_app.seed["ctx"]
    session_id = _open_session(file_app)
    with file_app.app_context():
        session_service.increment_session_counter(ctx, session_id, "total_sales", 100)

    amounts = [Decimal("10.00"), Decimal("20.00"), Decimal("5.00")]
    results, errors = run_threads(
        file_app,
        lambda amount: session_service.increment_session_counter(ctx, session_id, "total_sales", amount).id,
        [(amount,) for amount in amounts],
    )

    assert errors == []
    with file_app.app_context():
        session = db.session.get(RegisterSession, session_id)
        assert session.total_sales == Decimal("135.00")
        assert session.total_transactions == 4


def test_many_concurrent_increments(file_app):
    ctx = file_app.seed["ctx"]
    session_id = _open_session(file_app)

    results, errors = run_threads(
        file_app,
        lambda: session_service.increment_session_counter(ctx, session_id, "walk_in_sales", "1.25").id,
        [()] * 20,
    )

    assert errors == []
    with file_app.app_context():
        session = db.session.get(RegisterSession, session_id)
        assert session.walk_in_sales == Decimal("25.00")
        assert session.total_sales == Decimal("25.00")
        assert session.total_transactions == 20


def test_concurrent_decrements_keep_ledger_consistent(file_app):
    seed = file_app.seed
    ctx = seed["ctx"]

    def sell_one():
        movement = inventory_service.record_stock_movement(
            ctx,
            inventory_id=seed["inventory_id"],
            product_id=seed["product_id"],
            movement_type="pos_sale",
            quantity=1,
        )
        return movement.id

    results, errors = run_threads(file_app, sell_one, [()] * 10)

    assert errors == []
    with file_app.app_context():
        record = db.session.get(InventoryRecord, seed["inventory_id"])
        assert record.quantity == Decimal("0")

        movements = db.session.query(StockMovement).filter_by(inventory_id=seed["inventory_id"]).all()
        assert len(movements) == 10
        # Each decrement observed a distinct starting quantity
        assert sorted(m.quantity_before for m in movements) == [Decimal(n) for n in range(1, 11)]
        for m in movements:
            assert m.quantity_after == m.quantity_before - 1


def test_concurrent_sales_cannot_oversell(file_app):
    seed = file_app.seed
    ctx = seed["ctx"]
    session_id = _open_session(file_app)

    def sell_three():
        sale = sales_service.complete_sale(
            ctx,
            session_id=session_id,
            items=[{"inventory_id": seed["inventory_id"], "quantity": 3, "unit_price": 10}],
            payment_method="cash",
        )
        return sale.id

    results, errors = run_threads(file_app, sell_three, [()] * 4)

    assert len(results) == 3
    assert len(errors) == 1
    assert isinstance(errors[0], InsufficientStockError)

    with file_app.app_context():
        record = db.session.get(InventoryRecord, seed["inventory_id"])
        assert record.quantity == Decimal("1")

        session = db.session.get(RegisterSession, session_id)
        assert session.total_transactions == 3
        assert session.total_sales == Decimal("90.00")
