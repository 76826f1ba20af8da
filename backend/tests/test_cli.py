# Overview: Pytest coverage for the Flask CLI commands.

from decimal import Decimal

from poscore.models import InventoryRecord, Operator, Register, Vendor


def test_seed_demo_is_idempotent(app, db_session):
    runner = app.test_cli_runner()

    first = runner.invoke(args=['system', 'seed-demo'])
    second = runner.invoke(args=['system', 'seed-demo'])

    assert first.exit_code == 0, first.output
    assert 'Demo data ready' in second.output

    db_session.expire_all()
    vendor = db_session.query(Vendor).filter_by(slug='demo').one()
    assert db_session.query(Operator).filter_by(vendor_id=vendor.id).count() == 2
    assert db_session.query(Register).filter_by(vendor_id=vendor.id).count() == 1
    quantities = sorted(r.quantity for r in db_session.query(InventoryRecord).filter_by(vendor_id=vendor.id))
    assert quantities == [Decimal('40'), Decimal('60'), Decimal('100')]


def test_vendor_location_and_register_commands(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=['vendors', 'create', '--name', 'North', '--slug', 'north'])
    assert 'PASS Created vendor' in result.output
    duplicate = runner.invoke(args=['vendors', 'create', '--name', 'North', '--slug', 'north'])
    assert 'already exists' in duplicate.output

    vendor = db_session.query(Vendor).filter_by(slug='north').one()
    result = runner.invoke(args=['vendors', 'add-location', '--vendor-id', str(vendor.id), '--name', 'Main', '--slug', 'main'])
    assert 'PASS Created location' in result.output

    location_id = vendor.locations[0].id
    result = runner.invoke(args=[
        'registers', 'create',
        '--vendor-id', str(vendor.id),
        '--location-id', str(location_id),
        '--number', 'REG-01',
        '--name', 'Front',
    ])
    assert 'PASS Created register' in result.output

    listing = runner.invoke(args=['registers', 'list', '--location-id', str(location_id)])
    assert 'REG-01' in listing.output


def test_operator_create_rejects_weak_password(app, db_session, vendor):
    runner = app.test_cli_runner()

    result = runner.invoke(args=[
        'operators', 'create',
        '--vendor-id', str(vendor.id),
        '--username', 'weak',
        '--email', 'weak@example.com',
        '--password', 'password',
    ])

    assert 'Password validation failed' in result.output
    assert db_session.query(Operator).filter_by(username='weak').count() == 0
