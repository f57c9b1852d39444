import os

os.environ['FLASK_CONFIG'] = 'testing'

from datetime import date, datetime, time
from zoneinfo import ZoneInfo

import pytest

import app as cafe_app
from models import db, Role, User, Employee, Table, MenuItem, ShiftSchedule

JAKARTA = ZoneInfo('Asia/Jakarta')
WORK_DAY = date(2025, 1, 6)
CAFE_POSITION = {'latitude': -6.7063803, 'longitude': 108.5619729}


@pytest.fixture
def app(tmp_path):
    flask_app = cafe_app.app
    flask_app.config.update(UPLOAD_FOLDER=str(tmp_path))
    with flask_app.app_context():
        db.create_all()
    yield flask_app
    with flask_app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def freeze_time(monkeypatch):
    def freeze(hour, minute=0, day=WORK_DAY):
        moment = datetime.combine(day, time(hour, minute), tzinfo=JAKARTA)
        monkeypatch.setattr(cafe_app, 'local_now', lambda: moment)
        return moment
    return freeze


@pytest.fixture
def menu(app):
    with app.app_context():
        table = Table(table_number='5', capacity=4)
        coffee = MenuItem(name='Cappuccino', category='coffee', base_price=25000)
        cake = MenuItem(name='Croissant', category='dessert', base_price=20000)
        sold_out = MenuItem(name='Es Kopi Susu', category='coffee', base_price=18000, is_available=False)
        db.session.add_all([table, coffee, cake, sold_out])
        db.session.commit()
        return {
            'table_id': table.id,
            'coffee_id': coffee.id,
            'cake_id': cake.id,
            'sold_out_id': sold_out.id,
        }


@pytest.fixture
def place_order(client, menu):
    """Create an order of 2 Cappuccino + 1 Croissant (total 80.500)."""
    def place(**overrides):
        payload = {
            'table_id': menu['table_id'],
            'customer_name': 'Sari',
            'customer_phone': '081234567890',
            'items': [
                {'menu_item_id': menu['coffee_id'], 'quantity': 2},
                {'menu_item_id': menu['cake_id'], 'quantity': 1},
            ],
        }
        payload.update(overrides)
        response = client.post('/api/order', json=payload)
        assert response.status_code == 201, response.get_json()
        return response.get_json()['data']
    return place


@pytest.fixture
def owner_client(app):
    with app.app_context():
        owner = User(username='owner', email='owner@cafe.test', full_name='Pemilik Cafe')
        owner.set_password('rahasia123')
        owner.roles.append(Role(name='owner'))
        db.session.add(owner)
        db.session.commit()
    owner_client = app.test_client()
    response = owner_client.post('/api/auth/login', json={'username': 'owner', 'password': 'rahasia123'})
    assert response.status_code == 200
    return owner_client


@pytest.fixture
def make_employee(app, client):
    """Create an employee and log them in, returning their id and auth headers."""
    def make(username='budi', position='kasir', password='budi1234', **fields):
        with app.app_context():
            employee = Employee(
                employee_code=f'EMP-{username}',
                username=username,
                full_name=fields.pop('full_name', username.title()),
                position=position,
                salary_type=fields.pop('salary_type', 'monthly'),
                salary_amount=fields.pop('salary_amount', 3000000),
                **fields,
            )
            employee.set_password(password)
            db.session.add(employee)
            db.session.commit()
            employee_id = employee.id
        response = client.post('/api/employee/login', json={'username': username, 'password': password})
        assert response.status_code == 200
        token = response.get_json()['data']['token']
        return {'id': employee_id, 'headers': {'Authorization': f'Bearer {token}'}}
    return make


@pytest.fixture
def make_schedule(app):
    def make(employee_id, day=WORK_DAY, start=time(8, 0), end=time(16, 0), break_duration=60):
        with app.app_context():
            schedule = ShiftSchedule(employee_id=employee_id, date=day, start_time=start,
                                     end_time=end, break_duration=break_duration)
            db.session.add(schedule)
            db.session.commit()
            return schedule.id
    return make
