from datetime import date, time, timedelta
from io import BytesIO

import app as cafe_app
from models import db, OvertimeRequest

WORK_DAY = date(2025, 1, 6)
CAFE_POSITION = {'latitude': -6.7063803, 'longitude': 108.5619729}

FAR_AWAY = {'latitude': CAFE_POSITION['latitude'] + 0.01, 'longitude': CAFE_POSITION['longitude']}


class TestAuth:
    def test_wrong_password(self, client, make_employee):
        make_employee()
        response = client.post('/api/employee/login', json={'username': 'budi', 'password': 'salah'})
        assert response.status_code == 401

    def test_missing_and_bad_token(self, client):
        response = client.get('/api/employee/me')
        assert response.status_code == 401
        assert response.get_json()['error']['message'] == 'Token tidak ditemukan'

        response = client.get('/api/employee/me', headers={'Authorization': 'Bearer rusak'})
        assert response.status_code == 401
        assert response.get_json()['error']['message'] == 'Token tidak valid'

    def test_me(self, client, make_employee):
        employee = make_employee(full_name='Budi Santoso')
        data = client.get('/api/employee/me', headers=employee['headers']).get_json()['data']
        assert data['full_name'] == 'Budi Santoso'
        assert 'password_hash' not in data

    def test_change_password(self, client, make_employee):
        employee = make_employee()
        wrong = client.post('/api/employee/change-password', headers=employee['headers'],
                            json={'current_password': 'salah', 'new_password': 'baru12345'})
        assert wrong.status_code == 400
        assert wrong.get_json()['error']['message'] == 'Password lama salah'

        ok = client.post('/api/employee/change-password', headers=employee['headers'],
                         json={'current_password': 'budi1234', 'new_password': 'baru12345'})
        assert ok.status_code == 200
        login = client.post('/api/employee/login', json={'username': 'budi', 'password': 'baru12345'})
        assert login.status_code == 200


class TestAttendance:
    def test_clock_in_requires_location(self, client, make_employee, make_schedule, freeze_time):
        employee = make_employee()
        make_schedule(employee['id'])
        freeze_time(8, 0)
        response = client.post('/api/employee/attendance/clock-in', headers=employee['headers'], json={})
        assert response.status_code == 400

    def test_clock_in_outside_geofence(self, client, make_employee, make_schedule, freeze_time):
        employee = make_employee()
        make_schedule(employee['id'])
        freeze_time(8, 0)
        response = client.post('/api/employee/attendance/clock-in', headers=employee['headers'], json=FAR_AWAY)
        assert response.status_code == 400
        assert response.get_json()['error']['message'].startswith('Anda terlalu jauh dari cafe')

    def test_clock_in_without_schedule(self, client, make_employee, freeze_time):
        employee = make_employee()
        freeze_time(8, 0)
        response = client.post('/api/employee/attendance/clock-in', headers=employee['headers'],
                               json=CAFE_POSITION)
        assert response.status_code == 400
        assert response.get_json()['error']['message'] == 'Anda tidak memiliki jadwal shift hari ini'

    def test_late_clock_in(self, client, make_employee, make_schedule, freeze_time):
        employee = make_employee()
        make_schedule(employee['id'])
        freeze_time(8, 20)
        response = client.post('/api/employee/attendance/clock-in', headers=employee['headers'],
                               json=CAFE_POSITION)
        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['status'] == 'late'
        assert data['late_minutes'] == 5
        assert data['date'] == WORK_DAY.isoformat()

        again = client.post('/api/employee/attendance/clock-in', headers=employee['headers'],
                            json=CAFE_POSITION)
        assert again.get_json()['error']['message'] == 'Anda sudah clock in hari ini'

    def test_full_day_with_auto_approved_overtime(self, client, make_employee, make_schedule, freeze_time):
        employee = make_employee()
        make_schedule(employee['id'])
        headers = employee['headers']

        freeze_time(7, 55)
        assert client.post('/api/employee/attendance/clock-out', headers=headers,
                           json=CAFE_POSITION).get_json()['error']['message'] == 'Anda belum clock in hari ini'
        data = client.post('/api/employee/attendance/clock-in', headers=headers, json=CAFE_POSITION).get_json()['data']
        assert data['status'] == 'present'

        freeze_time(17, 55)
        response = client.post('/api/employee/attendance/clock-out', headers=headers, json=CAFE_POSITION)
        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['total_hours'] == 9.0
        assert data['regular_hours'] == 7.0
        assert data['overtime_hours'] == 2.0
        assert data['overtime_approved'] is True
        assert data['overtime_needs_approval'] is False
        assert data['early_leave_minutes'] == 0

        again = client.post('/api/employee/attendance/clock-out', headers=headers, json=CAFE_POSITION)
        assert again.get_json()['error']['message'] == 'Anda sudah clock out hari ini'

    def test_long_overtime_needs_approval(self, client, make_employee, make_schedule, freeze_time):
        employee = make_employee()
        make_schedule(employee['id'])
        freeze_time(8, 0)
        client.post('/api/employee/attendance/clock-in', headers=employee['headers'], json=CAFE_POSITION)
        freeze_time(19, 0)
        data = client.post('/api/employee/attendance/clock-out', headers=employee['headers'],
                           json=CAFE_POSITION).get_json()['data']
        assert data['overtime_hours'] == 3.0
        assert data['overtime_approved'] is False
        assert data['overtime_needs_approval'] is True

    def test_approved_request_covers_long_overtime(self, app, client, make_employee, make_schedule, freeze_time):
        employee = make_employee()
        make_schedule(employee['id'])
        with app.app_context():
            db.session.add(OvertimeRequest(employee_id=employee['id'], date=WORK_DAY, start_time=time(16, 0),
                                           end_time=time(19, 0), hours=3, reason='Event', status='approved'))
            db.session.commit()
        freeze_time(8, 0)
        client.post('/api/employee/attendance/clock-in', headers=employee['headers'], json=CAFE_POSITION)
        freeze_time(19, 0)
        data = client.post('/api/employee/attendance/clock-out', headers=employee['headers'],
                           json=CAFE_POSITION).get_json()['data']
        assert data['overtime_approved'] is True

    def test_overnight_shift_clocks_out_next_day(self, client, make_employee, make_schedule, freeze_time):
        employee = make_employee()
        make_schedule(employee['id'], start=time(22, 0), end=time(6, 0))
        freeze_time(22, 0)
        data = client.post('/api/employee/attendance/clock-in', headers=employee['headers'],
                           json=CAFE_POSITION).get_json()['data']
        assert data['status'] == 'present'

        freeze_time(6, 0, day=WORK_DAY + timedelta(days=1))
        response = client.post('/api/employee/attendance/clock-out', headers=employee['headers'],
                               json=CAFE_POSITION)
        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['date'] == WORK_DAY.isoformat()
        assert data['total_hours'] == 7.0
        assert data['regular_hours'] == 7.0
        assert data['overtime_hours'] == 0
        assert data['early_leave_minutes'] == 0

    def test_early_leave(self, client, make_employee, make_schedule, freeze_time):
        employee = make_employee()
        make_schedule(employee['id'])
        freeze_time(8, 0)
        client.post('/api/employee/attendance/clock-in', headers=employee['headers'], json=CAFE_POSITION)
        freeze_time(15, 30)
        data = client.post('/api/employee/attendance/clock-out', headers=employee['headers'],
                           json=CAFE_POSITION).get_json()['data']
        assert data['early_leave_minutes'] == 30
        assert data['overtime_hours'] == 0

    def test_today_and_history(self, client, owner_client, make_employee, make_schedule, freeze_time):
        employee = make_employee()
        make_schedule(employee['id'])
        freeze_time(8, 30)
        client.post('/api/employee/attendance/clock-in', headers=employee['headers'], json=CAFE_POSITION)

        today = client.get('/api/employee/attendance/today', headers=employee['headers']).get_json()['data']
        assert today['schedule']['start_time'] == '08:00'
        assert today['attendance']['status'] == 'late'

        history = client.get('/api/employee/attendance/history', headers=employee['headers'],
                             query_string={'month': 1, 'year': 2025}).get_json()['data']
        assert len(history['records']) == 1
        assert history['summary']['late'] == 1

        daily = owner_client.get('/api/attendance', query_string={'date': '2025-01-06'}).get_json()['data']
        assert daily['summary']['scheduled'] == 1
        assert daily['summary']['not_clocked_in'] == 0


class TestOvertimeRequests:
    def test_validation(self, client, make_employee):
        headers = make_employee()['headers']
        base = {'date': '2025-01-06', 'reason': 'Event'}

        backwards = client.post('/api/employee/overtime', headers=headers,
                                json=dict(base, start_time='19:00', end_time='16:00'))
        assert backwards.status_code == 400
        assert backwards.get_json()['error']['message'] == 'Jam selesai harus setelah jam mulai'

        too_long = client.post('/api/employee/overtime', headers=headers,
                               json=dict(base, start_time='00:00', end_time='13:00'))
        assert too_long.status_code == 400

    def test_create_and_cancel(self, client, make_employee):
        headers = make_employee()['headers']
        created = client.post('/api/employee/overtime', headers=headers, json={
            'date': '2025-01-06', 'start_time': '16:00', 'end_time': '18:30', 'reason': 'Event'})
        assert created.status_code == 201
        request_id = created.get_json()['data']['id']
        assert created.get_json()['data']['hours'] == 2.5

        cancelled = client.patch(f'/api/employee/overtime/{request_id}/cancel', headers=headers)
        assert cancelled.get_json()['data']['status'] == 'cancelled'

        again = client.patch(f'/api/employee/overtime/{request_id}/cancel', headers=headers)
        assert again.status_code == 400

        listed = client.get('/api/employee/overtime', headers=headers).get_json()['data']
        assert [r['status'] for r in listed] == ['cancelled']


def test_schedule_and_payslip(client, make_employee, make_schedule):
    employee = make_employee()
    make_schedule(employee['id'])
    schedules = client.get('/api/employee/schedule', headers=employee['headers'],
                           query_string={'start': '2025-01-06', 'end': '2025-01-12'}).get_json()['data']
    assert [s['date'] for s in schedules] == ['2025-01-06']

    payslips = client.get('/api/employee/payslip', headers=employee['headers']).get_json()['data']
    assert payslips == []


class TestKasir:
    def test_only_kasir_can_verify(self, client, make_employee):
        cook = make_employee(username='dewi', position='dapur')
        response = client.get('/api/kasir/orders/pending', headers=cook['headers'])
        assert response.status_code == 403

    def test_cash_payment_with_change(self, client, make_employee, place_order):
        kasir = make_employee(full_name='Budi Kasir')
        order_id = place_order()['order_id']
        transaction = client.post('/api/payments', json={
            'order_id': order_id, 'payment_method': 'cash', 'amount': 80500}).get_json()['data']['transaction']

        pending = client.get('/api/kasir/orders/pending', headers=kasir['headers']).get_json()['data']
        assert pending[0]['latest_transaction']['id'] == transaction['id']

        url = f"/api/kasir/payments/{transaction['id']}/verify"
        short = client.post(url, headers=kasir['headers'], json={'action': 'approve', 'cash_received': 50000})
        assert short.status_code == 400

        response = client.post(url, headers=kasir['headers'], json={'action': 'approve', 'cash_received': 100000})
        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['transaction']['status'] == 'success'
        assert data['transaction']['change_amount'] == 19500
        assert data['order']['status'] == 'confirmed'
        assert data['order']['payment_verified_by'] == 'Budi Kasir'

        processed = client.post(url, headers=kasir['headers'], json={'action': 'approve', 'cash_received': 100000})
        assert processed.status_code == 400

    def test_reject_qris_proof(self, client, make_employee, place_order):
        kasir = make_employee()
        order_id = place_order()['order_id']
        transaction_id = client.post('/api/payments', json={
            'order_id': order_id, 'payment_method': 'qris', 'amount': 80500}).get_json()['data']['transaction']['id']
        url = f'/api/kasir/payments/{transaction_id}/verify'

        no_proof = client.post(url, headers=kasir['headers'], json={'action': 'approve'})
        assert no_proof.get_json()['error']['message'] == 'Bukti pembayaran belum diupload'

        client.post(f'/api/payments/{transaction_id}/proof',
                    data={'proof': (BytesIO(b'img'), 'bukti.jpg', 'image/jpeg')},
                    content_type='multipart/form-data')

        response = client.post(url, headers=kasir['headers'], json={'action': 'reject', 'notes': 'Buram'})
        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['transaction']['status'] == 'failed'
        assert data['order']['status'] == 'pending_payment'
        assert data['order']['payment_status'] == 'pending'


def test_kitchen_moves_confirmed_orders(client, owner_client, make_employee, place_order):
    cook = make_employee(username='dewi', position='dapur')
    order_id = place_order()['order_id']
    owner_client.post('/api/orders/approve', json={'order_id': order_id, 'status': 'confirmed'})

    queue = client.get('/api/staff/orders', headers=cook['headers']).get_json()['data']
    assert [o['id'] for o in queue] == [order_id]

    cancel = client.put(f'/api/staff/orders/{order_id}/status', headers=cook['headers'],
                        json={'status': 'cancelled'})
    assert cancel.status_code == 400

    response = client.put(f'/api/staff/orders/{order_id}/status', headers=cook['headers'],
                          json={'status': 'preparing'})
    assert response.get_json()['data']['status'] == 'preparing'


class TestNotificationSettings:
    def test_employee_sets_own_telegram_chat(self, client, make_employee):
        headers = make_employee()['headers']
        settings = client.get('/api/employee/notification-settings', headers=headers).get_json()['data']
        assert settings == {'telegram_chat_id': None, 'telegram_notifications': False}

        bad = client.put('/api/employee/notification-settings', headers=headers,
                         json={'telegram_chat_id': '@budi'})
        assert bad.status_code == 400

        response = client.put('/api/employee/notification-settings', headers=headers,
                              json={'telegram_chat_id': '123456789', 'telegram_notifications': True})
        assert response.status_code == 200
        me = client.get('/api/employee/me', headers=headers).get_json()['data']
        assert me['telegram_chat_id'] == '123456789'
        assert me['telegram_notifications'] is True

    def test_send_test_message(self, client, make_employee, monkeypatch):
        sent = []
        monkeypatch.setattr(cafe_app.telegram, 'send', lambda chat_id, text: sent.append((chat_id, text)) or True)
        headers = make_employee()['headers']
        url = '/api/employee/notification-settings/test'

        disabled = client.post(url, headers=headers)
        assert disabled.status_code == 400

        client.put('/api/employee/notification-settings', headers=headers, json={'telegram_notifications': True})
        no_chat = client.post(url, headers=headers)
        assert no_chat.get_json()['error']['message'].startswith('Chat ID belum diatur')

        client.put('/api/employee/notification-settings', headers=headers, json={'telegram_chat_id': '42'})
        assert client.post(url, headers=headers).status_code == 200
        assert sent[0][0] == '42'
        assert 'Test Notifikasi' in sent[0][1]

        monkeypatch.setattr(cafe_app.telegram, 'send', lambda chat_id, text: False)
        assert client.post(url, headers=headers).status_code == 502


class TestReminders:
    def test_clock_in_and_clock_out_reminders(self, app, client, make_employee, make_schedule,
                                              freeze_time, monkeypatch):
        sent = []
        monkeypatch.setattr(cafe_app.telegram, 'send', lambda chat_id, text: sent.append((chat_id, text)) or True)
        budi = make_employee(telegram_chat_id='11', telegram_notifications=True)
        sari = make_employee(username='sari', telegram_chat_id='22', telegram_notifications=True)
        make_schedule(budi['id'])
        make_schedule(sari['id'])

        freeze_time(8, 0)
        client.post('/api/employee/attendance/clock-in', headers=sari['headers'], json=CAFE_POSITION)

        with app.app_context():
            result = cafe_app.send_attendance_reminders(freeze_time(7, 45))
        assert result == {'clock_in': 1, 'clock_out': 0}
        assert sent[0][0] == '11'
        assert 'Pengingat Absensi' in sent[0][1]

        sent.clear()
        with app.app_context():
            result = cafe_app.send_attendance_reminders(freeze_time(17, 0))
        assert result == {'clock_in': 0, 'clock_out': 1}
        assert sent[0][0] == '22'
        assert 'Lupa Absen Keluar' in sent[0][1]
