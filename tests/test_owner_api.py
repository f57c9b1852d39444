from datetime import date, datetime, time, timezone

from models import db, Attendance, Employee, ShiftSchedule


def test_login_required(client):
    response = client.get('/api/employees')
    assert response.status_code == 401
    assert response.get_json()['error']['message'] == 'Silakan login terlebih dahulu'


def test_wrong_password(owner_client, client):
    response = client.post('/api/auth/login', json={'username': 'owner', 'password': 'salah'})
    assert response.status_code == 401
    assert response.get_json()['error']['message'] == 'Username atau password salah'


def test_me_and_logout(owner_client):
    me = owner_client.get('/api/auth/me').get_json()['data']
    assert me['roles'] == ['owner']
    assert owner_client.post('/api/auth/logout').status_code == 200
    assert owner_client.get('/api/auth/me').status_code == 401


def test_employee_crud(app, owner_client):
    payload = {'username': 'Budi', 'password': 'budi1234', 'full_name': 'Budi Santoso',
               'position': 'kasir', 'salary_type': 'monthly', 'salary_amount': 3000000}
    response = owner_client.post('/api/employees', json=payload)
    assert response.status_code == 201
    employee = response.get_json()['data']
    assert employee['username'] == 'budi'
    assert employee['employee_code'] == 'EMP001'

    duplicate = owner_client.post('/api/employees', json=payload)
    assert duplicate.status_code == 400
    assert duplicate.get_json()['error']['message'] == 'Username sudah digunakan'

    bad_position = owner_client.put(f"/api/employees/{employee['id']}", json={'position': 'satpam'})
    assert bad_position.status_code == 400

    updated = owner_client.put(f"/api/employees/{employee['id']}", json={'salary_amount': 3500000})
    assert updated.get_json()['data']['salary_amount'] == 3500000

    assert owner_client.delete(f"/api/employees/{employee['id']}").status_code == 200
    with app.app_context():
        assert db.session.get(Employee, employee['id']).is_active is False
    assert owner_client.get('/api/employees').get_json()['data'] == []


def test_approve_order_syncs_transactions(owner_client, client, place_order):
    order_id = place_order(payment_method='cash')['order_id']
    client.post('/api/payments', json={'order_id': order_id, 'payment_method': 'cash', 'amount': 80500})

    pending = owner_client.get('/api/orders/pending').get_json()['data']
    assert [o['id'] for o in pending] == [order_id]

    response = owner_client.post('/api/orders/approve', json={'order_id': order_id, 'status': 'confirmed'})
    assert response.status_code == 200
    order = response.get_json()['data']
    assert order['status'] == 'confirmed'
    assert order['payment_status'] == 'verified'
    assert order['payment_verified_by'] == 'owner'

    transactions = client.get('/api/payments', query_string={'order_id': order_id}).get_json()['data']
    assert transactions[0]['status'] == 'success'
    assert transactions[0]['verified_by'] == 'owner'

    invalid = owner_client.put(f'/api/orders/{order_id}/status', json={'status': 'pending_payment'})
    assert invalid.status_code == 400

    preparing = owner_client.put(f'/api/orders/{order_id}/status', json={'status': 'preparing'})
    assert preparing.get_json()['data']['status'] == 'preparing'


def test_completed_order_frees_table(owner_client, client, place_order):
    order_id = place_order()['order_id']
    owner_client.post('/api/orders/approve', json={'order_id': order_id, 'status': 'confirmed'})
    for status in ('preparing', 'ready', 'completed'):
        assert owner_client.put(f'/api/orders/{order_id}/status', json={'status': status}).status_code == 200
    table = client.get('/api/tables/5').get_json()['data']
    assert table['status'] == 'available'
    assert table['session_id'] is None


def test_price_suggestion(owner_client):
    response = owner_client.post('/api/menu-items/price-suggestion', json={
        'ingredients': [{'quantity': 1, 'cost_per_unit': 10000}],
        'preparation_time': 10,
        'category': 'food',
    })
    assert response.status_code == 200
    assert response.get_json()['data']['suggested_price'] == 50000

    invalid = owner_client.post('/api/menu-items/price-suggestion', json={
        'ingredients': [], 'preparation_time': 0, 'category': 'food'})
    assert invalid.status_code == 400


def test_table_management_and_qr(owner_client, client):
    response = owner_client.post('/api/tables', json={'table_number': '12', 'capacity': 6})
    assert response.status_code == 201
    table_id = response.get_json()['data']['id']
    assert owner_client.post('/api/tables', json={'table_number': '12'}).status_code == 400

    qr = owner_client.get(f'/api/tables/{table_id}/qr').get_json()['data']
    assert qr['url'].endswith('/table/12')
    assert qr['qr_code'].startswith('data:image/png;base64,')

    assert owner_client.delete(f'/api/tables/{table_id}').status_code == 200
    assert client.get('/api/tables/12').status_code == 404


def test_menu_item_management(owner_client, client):
    response = owner_client.post('/api/menu-items', json={
        'name': 'Kopi Tubruk', 'category': 'Coffee', 'base_price': 15000})
    assert response.status_code == 201
    item = response.get_json()['data']
    assert item['category'] == 'coffee'

    assert owner_client.put(f"/api/menu-items/{item['id']}", json={'base_price': 0}).status_code == 400
    owner_client.put(f"/api/menu-items/{item['id']}", json={'is_available': False})
    assert client.get('/api/menu').get_json()['data'] == []


def test_shift_schedule_rejects_duplicates(owner_client, make_employee):
    employee = make_employee()
    template = owner_client.post('/api/shift-templates', json={
        'name': 'Pagi', 'start_time': '07:00', 'end_time': '15:00'}).get_json()['data']

    payload = {'employee_id': employee['id'], 'date': '2025-01-06', 'shift_template_id': template['id']}
    response = owner_client.post('/api/shift-schedules', json=payload)
    assert response.status_code == 201
    assert response.get_json()['data']['start_time'] == '07:00'
    assert response.get_json()['data']['break_duration'] == 60

    duplicate = owner_client.post('/api/shift-schedules', json=payload)
    assert duplicate.status_code == 400

    week = owner_client.get('/api/shift-schedules', query_string={'start': '2025-01-06'}).get_json()['data']
    assert len(week) == 1


def test_promo_management(owner_client):
    response = owner_client.post('/api/promos', json={
        'name': 'Gajian', 'code': 'gajian', 'discount_type': 'percentage', 'discount_value': 20,
        'max_discount': 15000})
    assert response.status_code == 201
    promo = response.get_json()['data']
    assert promo['code'] == 'GAJIAN'

    too_much = owner_client.put(f"/api/promos/{promo['id']}", json={'discount_value': 150})
    assert too_much.status_code == 400

    toggled = owner_client.post(f"/api/promos/{promo['id']}/toggle").get_json()['data']
    assert toggled['is_active'] is False


def test_settings_location_validation(owner_client):
    bad = owner_client.put('/api/settings', json={
        'category': 'cafe', 'key': 'location', 'value': {'lat': 200, 'lng': 0, 'radius': 100}})
    assert bad.status_code == 400

    ok = owner_client.put('/api/settings', json={
        'category': 'cafe', 'key': 'location', 'value': {'lat': -6.2, 'lng': 106.8, 'radius': 150}})
    assert ok.status_code == 200

    settings = owner_client.get('/api/settings/all').get_json()['data']
    assert settings[0]['value']['radius'] == 150


def test_overtime_review(owner_client, client, make_employee):
    employee = make_employee()
    created = client.post('/api/employee/overtime', headers=employee['headers'], json={
        'date': '2025-01-06', 'start_time': '16:00', 'end_time': '19:00', 'reason': 'Stock opname'})
    request_id = created.get_json()['data']['id']

    pending = owner_client.get('/api/overtime-requests', query_string={'status': 'pending'}).get_json()['data']
    assert [r['id'] for r in pending] == [request_id]

    no_reason = owner_client.patch(f'/api/overtime-requests/{request_id}', json={'status': 'rejected'})
    assert no_reason.status_code == 400

    approved = owner_client.patch(f'/api/overtime-requests/{request_id}', json={'status': 'approved'})
    assert approved.get_json()['data']['status'] == 'approved'

    again = owner_client.patch(f'/api/overtime-requests/{request_id}', json={'status': 'rejected',
                                                                           'admin_notes': 'x'})
    assert again.status_code == 400


def _utc(day, hour):
    return datetime.combine(day, time(hour, 0)).replace(tzinfo=timezone.utc)


def test_payroll_generation(app, owner_client, make_employee):
    employee_id = make_employee()['id']
    with app.app_context():
        for day in (date(2025, 1, 6), date(2025, 1, 7), date(2025, 1, 8)):
            db.session.add(ShiftSchedule(employee_id=employee_id, date=day,
                                         start_time=time(8, 0), end_time=time(16, 0)))
        db.session.add(Attendance(employee_id=employee_id, date=date(2025, 1, 6), clock_in=_utc(date(2025, 1, 6), 1),
                                  status='present', regular_hours=7, overtime_hours=2, overtime_approved=True))
        db.session.add(Attendance(employee_id=employee_id, date=date(2025, 1, 7), clock_in=_utc(date(2025, 1, 7), 1),
                                  status='late', late_minutes=10, regular_hours=7))
        db.session.commit()

    response = owner_client.post('/api/payroll/generate', json={
        'employee_id': employee_id, 'month': 1, 'year': 2025})
    assert response.status_code == 201
    record = response.get_json()['data']
    assert record['present_days'] == 2
    assert record['late_days'] == 1
    assert record['absent_days'] == 1
    assert record['overtime_hours'] == 2
    assert record['basic_salary'] == 3000000
    assert record['overtime_pay'] == 36290
    assert record['deductions'] == 250000
    assert record['net_salary'] == 3000000 + 36290 - 250000

    duplicate = owner_client.post('/api/payroll/generate', json={
        'employee_id': employee_id, 'month': 1, 'year': 2025})
    assert duplicate.status_code == 400

    paid = owner_client.patch(f"/api/payroll/{record['id']}", json={'status': 'paid'}).get_json()['data']
    assert paid['status'] == 'paid'
    assert paid['payment_date'] is not None

    assert owner_client.delete(f"/api/payroll/{record['id']}").status_code == 400


def test_cash_reconciliation(owner_client, place_order):
    order = place_order(payment_method='cash')
    owner_client.post('/api/orders/approve', json={'order_id': order['order_id'], 'status': 'confirmed'})

    expected = owner_client.get('/api/cash-reconciliation/expected').get_json()['data']
    assert expected['system_cash_sales'] == 80500
    assert expected['expected_cash'] == 580500

    response = owner_client.post('/api/cash-reconciliation', json={'actual_cash': 580500})
    assert response.status_code == 201
    assert response.get_json()['data']['status'] == 'balanced'
    assert owner_client.post('/api/cash-reconciliation', json={'actual_cash': 1}).status_code == 400

    counted = owner_client.post('/api/cash-reconciliation', json={
        'date': '2025-01-06', 'denominations': {'100000': 5, '20000': 1}})
    data = counted.get_json()['data']
    assert data['actual_cash'] == 520000
    assert data['variance'] == 20000
    assert data['status'] == 'discrepancy'


def test_sales_report_and_stats(owner_client, place_order):
    order = place_order(payment_method='qris')
    place_order()
    owner_client.post('/api/orders/approve', json={'order_id': order['order_id'], 'status': 'confirmed'})

    report = owner_client.get('/api/reports/sales').get_json()['data']
    assert report['total_orders'] == 1
    assert report['total_revenue'] == 80500
    assert report['by_payment_method'] == {'qris': 80500}
    assert report['top_items'][0]['name'] == 'Cappuccino'

    stats = owner_client.get('/api/stats').get_json()['data']
    assert stats['today_orders'] == 1
    assert stats['pending_payments'] == 1


def test_notifications(owner_client, place_order):
    place_order()
    data = owner_client.get('/api/notifications').get_json()['data']
    assert data['unread_count'] == 1
    assert data['notifications'][0]['type'] == 'order_new'

    owner_client.post('/api/notifications/read-all')
    assert owner_client.get('/api/notifications').get_json()['data']['unread_count'] == 0
