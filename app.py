from functools import wraps
import os
import json
import uuid
import base64
import logging
from io import BytesIO
from datetime import datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

import qrcode
from flask import Flask, jsonify, request, send_from_directory, g
from flask_login import LoginManager, login_user, logout_user, login_required, current_user
from flask_wtf.csrf import CSRFProtect, CSRFError, generate_csrf
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from itsdangerous import URLSafeTimedSerializer, BadSignature
from sqlalchemy import func
from werkzeug.utils import secure_filename

from config import config
from models import (db, Role, User, Employee, Table, MenuItem, Order, OrderItem, PaymentTransaction,
                    Promo, Rating, ShiftTemplate, ShiftSchedule, Attendance, OvertimeRequest, Payroll,
                    SystemSetting, CashReconciliation, Notification)
import order_flow
import payroll as payroll_calc
import pricing
import reconciliation
import notifier
from geofence import check_geofence, OutOfRangeError
from notifier import TelegramNotifier, create_notification
from order_flow import InvalidTransition, PaymentError
from utils import utc_now, as_utc, isoformat, parse_date, parse_time, format_rupiah

logging.basicConfig(level=logging.INFO)

# Initialize Flask app
app = Flask(__name__)
app.config.from_object(config[os.environ.get('FLASK_CONFIG', 'default')])

# Initialize CSRF Protection
csrf = CSRFProtect(app)

# Initialize Rate Limiter for brute force protection
limiter = Limiter(
    app=app,
    key_func=get_remote_address,
    storage_uri=app.config.get('RATELIMIT_STORAGE_URI', 'memory://'),
)

# Initialize extensions
db.init_app(app)
login_manager = LoginManager()
login_manager.init_app(app)

telegram = TelegramNotifier(app.config.get('TELEGRAM_BOT_TOKEN'))

EMPLOYEE_POSITIONS = ('kasir', 'dapur', 'pelayan', 'stok')
STAFF_ORDER_STATUSES = ('preparing', 'ready', 'delivered', 'completed')


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


@login_manager.unauthorized_handler
def unauthorized():
    return api_error('Silakan login terlebih dahulu', 401)


# ============================================
# HELPERS
# ============================================

def api_success(data=None, message=None, status=200):
    body = {'data': data}
    if message:
        body['message'] = message
    return jsonify(body), status


def api_error(message, status=400):
    return jsonify({'error': {'message': message}}), status


def local_now():
    """Current time at the cafe."""
    return datetime.now(ZoneInfo(app.config['CAFE_TIMEZONE']))


def cafe_tz():
    return ZoneInfo(app.config['CAFE_TIMEZONE'])


def local_day_bounds(day):
    """UTC start/end of a calendar day at the cafe."""
    start = datetime.combine(day, time.min, tzinfo=cafe_tz()).astimezone(timezone.utc)
    return start, start + timedelta(days=1)


def to_int(value, default=None):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def get_json_body():
    return request.get_json(silent=True) or {}


def get_setting(category, key, default=None):
    setting = SystemSetting.query.filter_by(category=category, key=key).first()
    if setting is None or setting.value is None:
        return default
    return setting.get_value()


def set_setting(category, key, value, description=None):
    setting = SystemSetting.query.filter_by(category=category, key=key).first()
    if setting is None:
        setting = SystemSetting(category=category, key=key)
        db.session.add(setting)
    setting.value = json.dumps(value)
    if description:
        setting.description = description
    return setting


def cafe_location():
    defaults = {
        'lat': app.config['CAFE_LATITUDE'],
        'lng': app.config['CAFE_LONGITUDE'],
        'radius': app.config['CAFE_RADIUS_METERS'],
    }
    location = get_setting('cafe', 'location') or {}
    return {**defaults, **location}


def attendance_rules():
    defaults = {
        'late_tolerance_minutes': app.config['LATE_TOLERANCE_MINUTES'],
        'overtime_auto_approve_hours': app.config['OVERTIME_AUTO_APPROVE_HOURS'],
        'max_overtime_hours': app.config['MAX_OVERTIME_HOURS'],
    }
    return {**defaults, **(get_setting('attendance', 'rules') or {})}


def payroll_rules():
    defaults = {
        'late_penalty': app.config['LATE_PENALTY'],
        'absence_penalty': app.config['ABSENCE_PENALTY'],
        'overtime_rate': app.config['DEFAULT_OVERTIME_RATE'],
    }
    return {**defaults, **(get_setting('payroll', 'rules') or {})}


def order_rules():
    defaults = {
        'tax_rate': app.config['TAX_RATE'],
        'service_fee_rate': app.config['SERVICE_FEE_RATE'],
        'minimum_total': app.config['MINIMUM_ORDER_TOTAL'],
    }
    return {**defaults, **(get_setting('order', 'pricing') or {})}


def payment_methods_setting():
    return get_setting('payment', 'methods', {'cash': True, 'qris': True, 'transfer': True})


def bank_accounts_setting():
    return get_setting('payment', 'bank_accounts', [
        {'bank': 'BCA', 'account_number': '1234567890', 'account_name': app.config['CAFE_NAME']},
        {'bank': 'Mandiri', 'account_number': '0987654321', 'account_name': app.config['CAFE_NAME']},
    ])


def qris_setting():
    return get_setting('payment', 'qris', {
        'merchant_name': app.config['CAFE_NAME'],
        'static_code': 'QRIS-STATIC-0001',
    })


def notify_owner(text):
    """Telegram message to the owner chat; failures are logged by the sender."""
    return telegram.send(app.config.get('TELEGRAM_OWNER_CHAT_ID'), text)


def notify_employee(employee, text):
    if not employee.telegram_notifications or not employee.telegram_chat_id:
        return False
    return telegram.send(employee.telegram_chat_id, text)


def safe_create_notification(**kwargs):
    try:
        create_notification(**kwargs)
    except Exception:
        db.session.rollback()
        app.logger.warning("Failed to create notification %s", kwargs.get('type'), exc_info=True)


def find_table(ref):
    table = None
    table_id = to_int(ref)
    if table_id is not None:
        table = db.session.get(Table, table_id)
    if table is None:
        table = Table.query.filter_by(table_number=str(ref)).first()
    if table is None or not table.is_active:
        return None
    return table


def employee_serializer():
    return URLSafeTimedSerializer(app.config['SECRET_KEY'], salt='employee-auth')


def issue_employee_token(employee):
    return employee_serializer().dumps({'employee_id': employee.id})


def role_required(*roles):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                return api_error('Silakan login terlebih dahulu', 401)
            if not any(current_user.has_role(role) for role in roles):
                return api_error('Anda tidak memiliki akses ke halaman ini', 403)
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def employee_token_required(*positions):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            auth = request.headers.get('Authorization', '')
            if not auth.startswith('Bearer '):
                return api_error('Token tidak ditemukan', 401)
            try:
                payload = employee_serializer().loads(
                    auth[len('Bearer '):], max_age=app.config['EMPLOYEE_TOKEN_MAX_AGE'])
            except BadSignature:
                return api_error('Token tidak valid', 401)
            employee = db.session.get(Employee, payload.get('employee_id'))
            if employee is None or not employee.is_active:
                return api_error('Token tidak valid', 401)
            if positions and employee.position not in positions:
                return api_error('Anda tidak memiliki akses ke fitur ini', 403)
            g.employee = employee
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def price_cart(items, promo_code=None):
    """Price a list of ``{menu_item_id, quantity}`` against the current menu.

    Raises ValueError with a customer-facing message when the cart is invalid.
    """
    if not items:
        raise ValueError('Keranjang kosong')

    lines = []
    subtotal = 0
    for item in items:
        menu_item_id = to_int(item.get('menu_item_id') or item.get('id'))
        quantity = to_int(item.get('quantity'), 1)
        if menu_item_id is None or quantity is None or quantity < 1:
            raise ValueError('Item pesanan tidak valid')
        menu_item = db.session.get(MenuItem, menu_item_id)
        if menu_item is None:
            raise ValueError('Menu tidak ditemukan')
        if not menu_item.is_available:
            raise ValueError(f'Menu "{menu_item.name}" sedang tidak tersedia')
        line_total = menu_item.base_price * quantity
        subtotal += line_total
        lines.append({
            'menu_item': menu_item,
            'quantity': quantity,
            'unit_price': menu_item.base_price,
            'total_price': line_total,
            'customizations': item.get('customizations'),
            'special_instructions': item.get('special_instructions'),
        })

    promo = None
    discount = 0
    if promo_code:
        code = promo_code.upper().strip()
        promo = Promo.query.filter_by(code=code).first()
        if promo is None:
            raise ValueError('Kode promo tidak ditemukan')
        is_valid, message = promo.is_valid(subtotal)
        if not is_valid:
            raise ValueError(message)
        discount = promo.calculate_discount(subtotal)

    rules = order_rules()
    totals = order_flow.calculate_totals(
        subtotal, discount,
        tax_rate=rules['tax_rate'],
        service_rate=rules['service_fee_rate'],
        minimum=rules['minimum_total'],
    )
    return lines, totals, promo


def payment_instructions(transaction):
    method = transaction.payment_method
    if method == 'cash':
        return {
            'type': 'cash',
            'message': 'Silakan lakukan pembayaran di kasir',
            'amount': transaction.amount,
        }
    if method == 'qris':
        return {
            'type': 'qris',
            'message': 'Scan QRIS berikut lalu upload bukti pembayaran',
            'amount': transaction.amount,
            'qris': qris_setting(),
        }
    return {
        'type': 'transfer',
        'message': 'Transfer sesuai nominal lalu upload bukti pembayaran',
        'amount': transaction.amount,
        'bank_accounts': bank_accounts_setting(),
        'expires_at': isoformat(transaction.expires_at),
    }


def sync_transactions(order, approved, verifier):
    """Mirror an approve/reject decision onto the order's open transactions."""
    now = utc_now()
    open_transactions = order.transactions.filter(
        PaymentTransaction.status.in_(['pending', 'processing'])).all()
    for transaction in open_transactions:
        transaction.status = 'success' if approved else 'failed'
        transaction.verified_at = now
        transaction.verified_by = verifier
    db.session.commit()


def allowed_file(filename):
    """Check if file extension is allowed"""
    return '.' in filename and \
           filename.rsplit('.', 1)[1].lower() in app.config['ALLOWED_EXTENSIONS']


def generate_table_qr(table):
    order_url = f"{app.config['CUSTOMER_APP_URL']}/table/{table.table_number}"

    qr = qrcode.QRCode(version=1, box_size=10, border=5)
    qr.add_data(order_url)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    buffered = BytesIO()
    img.save(buffered, format="PNG")
    img_str = base64.b64encode(buffered.getvalue()).decode()

    return order_url, img_str


# ============================================
# ERROR HANDLERS
# ============================================

@app.after_request
def add_header(response):
    """Security headers"""
    response.headers['X-Content-Type-Options'] = 'nosniff'
    response.headers['X-Frame-Options'] = 'SAMEORIGIN'
    response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
    if request.path.startswith('/api/'):
        response.headers['Cache-Control'] = 'no-store'
    return response


@app.errorhandler(CSRFError)
def handle_csrf_error(e):
    return api_error('CSRF token tidak valid atau sudah kedaluwarsa', 400)


@app.errorhandler(404)
def not_found(e):
    return api_error('Data tidak ditemukan', 404)


@app.errorhandler(405)
def method_not_allowed(e):
    return api_error('Metode tidak diizinkan', 405)


@app.errorhandler(413)
def too_large(e):
    return api_error('Ukuran file terlalu besar', 413)


@app.errorhandler(429)
def ratelimit_handler(e):
    """Custom handler for rate limit exceeded"""
    return api_error('Terlalu banyak permintaan. Silakan tunggu sebentar.', 429)


@app.errorhandler(500)
def internal_error(e):
    db.session.rollback()
    return api_error('Terjadi kesalahan pada server', 500)


# ============================================
# DATABASE SEED
# ============================================

def init_db():
    with app.app_context():
        db.create_all()

        for role_name, desc in (('owner', 'Pemilik cafe dengan akses penuh'),
                                ('manager', 'Manager operasional')):
            if not Role.query.filter_by(name=role_name).first():
                db.session.add(Role(name=role_name, description=desc))
        db.session.commit()

        if not User.query.filter_by(username=app.config['OWNER_USERNAME']).first():
            owner = User(
                username=app.config['OWNER_USERNAME'],
                email=f"{app.config['OWNER_USERNAME']}@cafe.local",
                full_name='Pemilik Cafe',
            )
            owner.set_password(app.config['OWNER_PASSWORD'])
            owner.roles.append(Role.query.filter_by(name='owner').first())
            db.session.add(owner)

        if Table.query.count() == 0:
            for i in range(1, 11):
                db.session.add(Table(
                    table_number=str(i),
                    capacity=2 if i <= 4 else 4,
                    location='outdoor' if i > 8 else 'indoor',
                ))

        if MenuItem.query.count() == 0:
            menu_data = [
                ('Espresso', 'coffee', 18000, 6000, 3),
                ('Cappuccino', 'coffee', 25000, 9000, 5),
                ('Kopi Susu Gula Aren', 'coffee', 22000, 8000, 4),
                ('Es Teh Manis', 'tea', 8000, 2000, 2),
                ('Matcha Latte', 'tea', 28000, 11000, 5),
                ('Nasi Goreng Spesial', 'food', 35000, 14000, 15),
                ('Mie Goreng', 'food', 30000, 11000, 12),
                ('Pisang Goreng Keju', 'dessert', 20000, 7000, 10),
                ('Croissant Coklat', 'dessert', 24000, 10000, 3),
                ('Jus Alpukat', 'beverage', 20000, 8000, 5),
            ]
            for name, category, price, cost, prep in menu_data:
                db.session.add(MenuItem(name=name, category=category, base_price=price,
                                        cost_price=cost, preparation_time=prep))

        if ShiftTemplate.query.count() == 0:
            db.session.add(ShiftTemplate(name='Pagi', start_time=time(7, 0), end_time=time(15, 0),
                                         break_duration=60))
            db.session.add(ShiftTemplate(name='Sore', start_time=time(15, 0), end_time=time(23, 0),
                                         break_duration=60))

        if get_setting('cafe', 'location') is None:
            set_setting('cafe', 'location', cafe_location(), 'Lokasi cafe untuk absensi')
        if get_setting('cafe', 'info') is None:
            set_setting('cafe', 'info', {'name': app.config['CAFE_NAME'], 'address': '', 'phone': ''},
                        'Informasi cafe')

        db.session.commit()
        print("Database initialized successfully!")


@app.cli.command('init-db')
def init_db_command():
    """Create tables and seed default data."""
    init_db()


# ============================================
# CUSTOMER: TABLES, MENU & SETTINGS
# ============================================

@app.route('/api/tables/<ref>')
@limiter.exempt
def api_get_table(ref):
    table = find_table(ref)
    if not table:
        return api_error('Meja tidak ditemukan', 404)
    return api_success(table.to_dict())


@app.route('/api/menu')
@limiter.exempt
def api_get_menu():
    query = MenuItem.query.filter_by(is_available=True)
    category = request.args.get('category')
    if category:
        query = query.filter(MenuItem.category == category.lower())
    search = request.args.get('search')
    if search:
        query = query.filter(MenuItem.name.ilike(f'%{search}%'))
    items = query.order_by(MenuItem.category, MenuItem.name).all()
    return api_success([item.to_dict() for item in items])


@app.route('/api/settings')
def api_public_settings():
    rules = order_rules()
    methods = payment_methods_setting()
    return api_success({
        'cafe': get_setting('cafe', 'info', {'name': app.config['CAFE_NAME']}),
        'tax_rate': rules['tax_rate'],
        'service_fee_rate': rules['service_fee_rate'],
        'minimum_order_total': rules['minimum_total'],
        'payment_methods': [m for m, enabled in methods.items() if enabled],
        'bank_accounts': bank_accounts_setting() if methods.get('transfer') else [],
        'qris': qris_setting() if methods.get('qris') else None,
    })


# ============================================
# CUSTOMER: CART & ORDERS
# ============================================

@app.route('/api/cart/quote', methods=['POST'])
@csrf.exempt
def api_cart_quote():
    """Price a client-side cart without creating an order."""
    data = get_json_body()
    try:
        lines, totals, promo = price_cart(data.get('items', []), data.get('promo_code'))
    except ValueError as e:
        return api_error(str(e), 400)
    return api_success({
        'items': [{
            'menu_item_id': line['menu_item'].id,
            'name': line['menu_item'].name,
            'quantity': line['quantity'],
            'unit_price': line['unit_price'],
            'total_price': line['total_price'],
        } for line in lines],
        'promo_code': promo.code if promo else None,
        **totals,
    })


@app.route('/api/order', methods=['POST'])
@csrf.exempt
@limiter.limit("30 per minute")
def api_create_order():
    try:
        data = get_json_body()
        table_ref = data.get('table_id') or data.get('table_number')
        customer_name = (data.get('customer_name') or '').strip()
        customer_phone = (data.get('customer_phone') or '').strip()
        payment_method = data.get('payment_method')

        if not table_ref:
            return api_error('Meja wajib diisi', 400)
        if not customer_name or not customer_phone:
            return api_error('Nama dan nomor telepon wajib diisi', 400)
        if not data.get('items'):
            return api_error('Keranjang kosong', 400)
        if payment_method and payment_method not in order_flow.PAYMENT_METHODS:
            return api_error('Metode pembayaran tidak valid', 400)

        table = find_table(table_ref)
        if not table:
            return api_error('Meja tidak ditemukan', 404)

        try:
            lines, totals, promo = price_cart(data['items'], data.get('promo_code'))
        except ValueError as e:
            return api_error(str(e), 400)

        now = utc_now()
        order = Order(
            order_number=f"ORD{local_now():%Y%m%d}{uuid.uuid4().hex[:6].upper()}",
            table_id=table.id,
            customer_name=customer_name,
            customer_phone=customer_phone,
            customer_email=data.get('customer_email'),
            status='pending_payment',
            payment_status='pending',
            payment_method=payment_method,
            subtotal=totals['subtotal'],
            tax_amount=totals['tax_amount'],
            service_fee=totals['service_fee'],
            discount_amount=totals['discount_amount'],
            total_amount=totals['total_amount'],
            promo_code=promo.code if promo else None,
            promo_id=promo.id if promo else None,
            special_instructions=data.get('special_instructions'),
            created_at=now,
        )
        db.session.add(order)
        db.session.flush()

        for line in lines:
            db.session.add(OrderItem(
                order_id=order.id,
                menu_item_id=line['menu_item'].id,
                name=line['menu_item'].name,
                unit_price=line['unit_price'],
                quantity=line['quantity'],
                total_price=line['total_price'],
                customizations=json.dumps(line['customizations']) if line['customizations'] else None,
                special_instructions=line['special_instructions'],
            ))

        if promo:
            promo.current_uses = (promo.current_uses or 0) + 1

        table.status = 'occupied'
        table.session_id = f"session_{table.id}_{int(now.timestamp() * 1000)}"
        table.occupied_since = now
        order.session_id = table.session_id

        db.session.commit()
        app.logger.info("Order %s created for table %s", order.order_number, table.table_number)

        safe_create_notification(
            type='order_new',
            title='Pesanan Baru!',
            message=f'Order #{order.order_number} - Meja {table.table_number} - {format_rupiah(order.total_amount)}',
            data={'order_id': order.id, 'order_number': order.order_number},
        )
        notify_owner(notifier.new_order_message(order.order_number, table.table_number,
                                                customer_name, order.total_amount))

        return api_success({
            'order_id': order.id,
            'order_number': order.order_number,
            'total_amount': order.total_amount,
            'table_number': table.table_number,
            'estimated_completion': order_flow.estimated_completion(
                order, app.config['ESTIMATED_PREPARATION_MINUTES']),
        }, message='Pesanan berhasil dibuat', status=201)
    except Exception as e:
        db.session.rollback()
        app.logger.exception("Failed to create order")
        return api_error(str(e), 500)


@app.route('/api/orders/<int:order_id>')
@limiter.exempt
def api_get_order(order_id):
    order = db.session.get(Order, order_id)
    if not order:
        return api_error('Pesanan tidak ditemukan', 404)
    return api_success(order.to_dict())


@app.route('/api/orders/<int:order_id>/status')
@limiter.exempt
def api_get_order_status(order_id):
    order = db.session.get(Order, order_id)
    if not order:
        return api_error('Pesanan tidak ditemukan', 404)
    return api_success({
        'id': order.id,
        'order_number': order.order_number,
        'status': order.status,
        'payment_status': order.payment_status,
        'estimated_completion': order_flow.estimated_completion(
            order, app.config['ESTIMATED_PREPARATION_MINUTES']),
        'progress_steps': order_flow.progress_steps(order),
    })


@app.route('/api/orders/<int:order_id>/payment-status')
@limiter.exempt
def api_get_order_payment_status(order_id):
    order = db.session.get(Order, order_id)
    if not order:
        return api_error('Pesanan tidak ditemukan', 404)
    latest = order.transactions.order_by(PaymentTransaction.id.desc()).first()
    return api_success({
        'order_id': order.id,
        'order_status': order.status,
        'payment_status': order.payment_status,
        'payment_method': order.payment_method,
        'total_amount': order.total_amount,
        'payment_verified_at': isoformat(order.payment_verified_at),
        'transaction': order_flow.payment_overview(latest) if latest else None,
    })


@app.route('/api/orders/<int:order_id>/update-payment-method', methods=['POST'])
@csrf.exempt
def api_update_payment_method(order_id):
    try:
        order = db.session.get(Order, order_id)
        if not order:
            return api_error('Pesanan tidak ditemukan', 404)
        data = get_json_body()
        try:
            order_flow.change_payment_method(order, data.get('payment_method'))
        except PaymentError as e:
            return api_error(str(e), 400)
        db.session.commit()
        return api_success(order.to_dict(include_items=False), message='Metode pembayaran diperbarui')
    except Exception as e:
        db.session.rollback()
        app.logger.exception("Failed to update payment method")
        return api_error(str(e), 500)


# ============================================
# CUSTOMER: PAYMENTS
# ============================================

@app.route('/api/payments', methods=['POST'])
@csrf.exempt
def api_create_payment():
    try:
        data = get_json_body()
        order = db.session.get(Order, to_int(data.get('order_id'), 0))
        if not order:
            return api_error('Pesanan tidak ditemukan', 404)

        method = data.get('payment_method')
        if not payment_methods_setting().get(method):
            return api_error('Metode pembayaran tidak valid', 400)

        amount = to_int(data.get('amount'))
        if amount is None or abs(amount - order.total_amount) > 1:
            return api_error('Jumlah pembayaran tidak sesuai dengan total pesanan', 400)

        try:
            order_flow.start_payment(order, method)
        except PaymentError as e:
            return api_error(str(e), 400)

        transaction = PaymentTransaction(
            order_id=order.id,
            payment_method=method,
            amount=order.total_amount,
            status='pending',
            reference_number=data.get('reference_number'),
            notes=data.get('notes'),
        )
        if method == 'transfer':
            transaction.expires_at = utc_now() + timedelta(minutes=app.config['TRANSFER_EXPIRY_MINUTES'])
        db.session.add(transaction)
        db.session.commit()

        return api_success({
            'transaction': transaction.to_dict(),
            'instructions': payment_instructions(transaction),
        }, message='Pembayaran dibuat', status=201)
    except Exception as e:
        db.session.rollback()
        app.logger.exception("Failed to create payment")
        return api_error(str(e), 500)


@app.route('/api/payments')
def api_list_payments():
    order_id = to_int(request.args.get('order_id'))
    if order_id is None:
        return api_error('order_id wajib diisi', 400)
    transactions = PaymentTransaction.query.filter_by(order_id=order_id) \
        .order_by(PaymentTransaction.created_at.desc()).all()
    return api_success([t.to_dict() for t in transactions])


@app.route('/api/payments/<int:transaction_id>')
def api_get_payment(transaction_id):
    transaction = db.session.get(PaymentTransaction, transaction_id)
    if not transaction:
        return api_error('Transaksi tidak ditemukan', 404)
    return api_success({
        'transaction': transaction.to_dict(),
        'instructions': payment_instructions(transaction),
    })


@app.route('/api/payments/<int:transaction_id>/status')
@limiter.exempt
def api_get_payment_status(transaction_id):
    transaction = db.session.get(PaymentTransaction, transaction_id)
    if not transaction:
        return api_error('Transaksi tidak ditemukan', 404)
    return api_success(order_flow.payment_overview(transaction))


@app.route('/api/payments/<int:transaction_id>/proof', methods=['POST'])
@csrf.exempt
@limiter.limit("10 per minute")
def api_upload_payment_proof(transaction_id):
    try:
        transaction = db.session.get(PaymentTransaction, transaction_id)
        if not transaction:
            return api_error('Transaksi tidak ditemukan', 404)
        if transaction.payment_method == 'cash':
            return api_error('Bukti pembayaran hanya untuk QRIS atau transfer', 400)
        if transaction.status != 'pending':
            return api_error('Transaksi ini tidak dapat diubah', 400)

        file = request.files.get('proof')
        if not file or not file.filename:
            return api_error('File bukti pembayaran wajib diupload', 400)
        extension = app.config['ALLOWED_PROOF_MIMETYPES'].get(file.mimetype)
        if not extension or not allowed_file(secure_filename(file.filename)):
            return api_error('Format file harus JPEG, PNG, atau WebP', 400)
        content = file.read()
        if len(content) > app.config['PROOF_MAX_BYTES']:
            return api_error('Ukuran file maksimal 5MB', 400)

        order = transaction.order
        filename = f"{order.order_number}_{transaction.id}_{int(utc_now().timestamp())}.{extension}"
        proof_folder = os.path.join(app.config['UPLOAD_FOLDER'], 'payment-proofs')
        os.makedirs(proof_folder, exist_ok=True)
        with open(os.path.join(proof_folder, filename), 'wb') as fh:
            fh.write(content)
        url = f"/uploads/payment-proofs/{filename}"

        transaction.proof_image_url = url
        order.payment_proof_url = url
        if order.status == 'pending_payment':
            order_flow.transition(order, 'payment_verification')
        db.session.commit()

        safe_create_notification(
            type='payment_proof',
            title='Bukti Pembayaran Masuk',
            message=f'Order #{order.order_number} menunggu verifikasi',
            data={'order_id': order.id, 'transaction_id': transaction.id},
        )
        notify_owner(notifier.payment_proof_message(order.order_number, transaction.payment_method,
                                                    transaction.amount))

        return api_success({
            'transaction_id': transaction.id,
            'proof_url': url,
            'order_status': order.status,
            'payment_status': order.payment_status,
        }, message='Bukti pembayaran berhasil diupload. Menunggu verifikasi dari kasir.')
    except Exception as e:
        db.session.rollback()
        app.logger.exception("Failed to upload payment proof")
        return api_error(str(e), 500)


@app.route('/uploads/<path:filename>')
def uploaded_file(filename):
    """Serve uploaded files"""
    return send_from_directory(app.config['UPLOAD_FOLDER'], filename)


# ============================================
# CUSTOMER: PROMO & RATING
# ============================================

def active_promos_query():
    now = utc_now()
    return Promo.query.filter(
        Promo.is_active == True,
        (Promo.start_date == None) | (Promo.start_date <= now),
        (Promo.end_date == None) | (Promo.end_date >= now),
        (Promo.usage_limit == None) | (Promo.current_uses < Promo.usage_limit)
    )


@app.route('/api/promo')
def api_active_promos():
    """Get all currently active promos"""
    return api_success([p.to_dict() for p in active_promos_query().all()])


@app.route('/api/promo/validate', methods=['POST'])
@csrf.exempt
def api_validate_promo():
    """Validate a promo code for given subtotal"""
    data = get_json_body()
    code = (data.get('code') or '').upper().strip()
    subtotal = to_int(data.get('subtotal'), 0)

    if not code:
        return api_error('Kode promo tidak boleh kosong', 400)

    promo = Promo.query.filter_by(code=code).first()
    if not promo:
        return api_error('Kode promo tidak ditemukan', 404)

    is_valid, message = promo.is_valid(subtotal)
    if not is_valid:
        return api_error(message, 400)

    return api_success({
        'valid': True,
        'promo': promo.to_dict(),
        'discount_amount': promo.calculate_discount(subtotal),
    }, message='Promo berhasil digunakan!')


@app.route('/api/rating', methods=['POST'])
@csrf.exempt
def api_create_rating():
    try:
        data = get_json_body()
        rating_value = to_int(data.get('rating'))
        if rating_value is None or not 1 <= rating_value <= 5:
            return api_error('Rating harus antara 1 sampai 5', 400)
        order = db.session.get(Order, to_int(data.get('order_id'), 0))
        if not order:
            return api_error('Pesanan tidak ditemukan', 404)
        if order.rated or Rating.query.filter_by(order_id=order.id).first():
            return api_error('Pesanan ini sudah diberi rating', 409)

        rating = Rating(order_id=order.id, rating=rating_value, comment=data.get('comment'))
        order.rated = True
        db.session.add(rating)
        db.session.commit()
        return api_success(rating.to_dict(), message='Terima kasih atas penilaian Anda!', status=201)
    except Exception as e:
        db.session.rollback()
        app.logger.exception("Failed to save rating")
        return api_error(str(e), 500)


# ============================================
# OWNER: AUTH
# ============================================

@app.route('/api/auth/login', methods=['POST'])
@csrf.exempt
@limiter.limit("10 per minute")
def api_owner_login():
    data = get_json_body()
    username = (data.get('username') or '').strip()
    user = User.query.filter_by(username=username).first()
    if not user or not user.is_active or not user.check_password(data.get('password') or ''):
        return api_error('Username atau password salah', 401)
    login_user(user, remember=bool(data.get('remember')))
    user.last_login = utc_now()
    db.session.commit()
    return api_success(user.to_dict(), message='Login berhasil')


@app.route('/api/auth/logout', methods=['POST'])
@login_required
def api_owner_logout():
    logout_user()
    return api_success(None, message='Anda telah logout')


@app.route('/api/auth/me')
@login_required
def api_owner_me():
    return api_success(current_user.to_dict())


@app.route('/api/auth/csrf-token')
def api_csrf_token():
    return api_success({'csrf_token': generate_csrf()})


# ============================================
# OWNER: ORDERS
# ============================================

@app.route('/api/orders')
@login_required
@role_required('owner', 'manager')
def api_list_orders():
    query = Order.query
    status = request.args.get('status')
    if status:
        query = query.filter(Order.status.in_(status.split(',')))
    day = parse_date(request.args.get('date'))
    if day:
        start, end = local_day_bounds(day)
        query = query.filter(Order.created_at >= start, Order.created_at < end)
    orders = query.order_by(Order.created_at.desc()).limit(to_int(request.args.get('limit'), 100)).all()
    return api_success([o.to_dict() for o in orders])


@app.route('/api/orders/pending')
@login_required
@role_required('owner', 'manager')
def api_pending_orders():
    orders = Order.query.filter(Order.status.in_(['pending_payment', 'payment_verification'])) \
        .order_by(Order.created_at.asc()).all()
    result = []
    for order in orders:
        d = order.to_dict()
        latest = order.transactions.order_by(PaymentTransaction.id.desc()).first()
        d['latest_transaction'] = latest.to_dict() if latest else None
        result.append(d)
    return api_success(result)


@app.route('/api/orders/approve', methods=['POST'])
@login_required
@role_required('owner', 'manager')
def api_approve_order():
    """Approve (confirmed) or send back (pending_payment) an order's payment."""
    try:
        data = get_json_body()
        order = db.session.get(Order, to_int(data.get('order_id'), 0))
        if not order:
            return api_error('Pesanan tidak ditemukan', 404)
        new_status = data.get('status')
        if new_status not in ('confirmed', 'pending_payment'):
            return api_error('Status harus confirmed atau pending_payment', 400)

        try:
            order_flow.transition(order, new_status, actor=current_user.username)
        except InvalidTransition as e:
            return api_error(str(e), 400)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        app.logger.exception("Failed to approve order")
        return api_error(str(e), 500)

    try:
        sync_transactions(order, new_status == 'confirmed', current_user.username)
    except Exception:
        db.session.rollback()
        app.logger.warning("Could not update payment transactions for order %s", order.id, exc_info=True)

    return api_success(order.to_dict(), message='Status pembayaran diperbarui')


@app.route('/api/orders/<int:order_id>/status', methods=['PUT'])
@login_required
@role_required('owner', 'manager')
def api_owner_update_order_status(order_id):
    try:
        order = db.session.get(Order, order_id)
        if not order:
            return api_error('Pesanan tidak ditemukan', 404)
        data = get_json_body()
        try:
            order_flow.transition(order, data.get('status'), actor=current_user.username)
        except InvalidTransition as e:
            return api_error(str(e), 400)
        db.session.commit()
        return api_success(order.to_dict())
    except Exception as e:
        db.session.rollback()
        app.logger.exception("Failed to update order status")
        return api_error(str(e), 500)


# ============================================
# OWNER: EMPLOYEES
# ============================================

def apply_employee_fields(employee, data):
    if 'full_name' in data:
        employee.full_name = data['full_name']
    if 'email' in data:
        employee.email = data['email']
    if 'phone' in data:
        employee.phone = data['phone']
    if 'position' in data:
        if data['position'] not in EMPLOYEE_POSITIONS:
            raise ValueError('Posisi tidak valid')
        employee.position = data['position']
    if 'salary_type' in data:
        if data['salary_type'] not in payroll_calc.SALARY_TYPES:
            raise ValueError('Tipe gaji tidak valid')
        employee.salary_type = data['salary_type']
    if 'salary_amount' in data:
        amount = to_int(data['salary_amount'])
        if amount is None or amount < 0:
            raise ValueError('Gaji tidak valid')
        employee.salary_amount = amount
    if 'overtime_rate' in data:
        employee.overtime_rate = float(data['overtime_rate'])
    if 'hire_date' in data:
        employee.hire_date = parse_date(data['hire_date'])
    if 'telegram_chat_id' in data:
        employee.telegram_chat_id = data['telegram_chat_id']
    if 'telegram_notifications' in data:
        employee.telegram_notifications = bool(data['telegram_notifications'])
    if 'is_active' in data:
        employee.is_active = bool(data['is_active'])
    if data.get('password'):
        if len(data['password']) < 6:
            raise ValueError('Password minimal 6 karakter')
        employee.set_password(data['password'])


@app.route('/api/employees')
@login_required
@role_required('owner', 'manager')
def api_list_employees():
    query = Employee.query
    position = request.args.get('position')
    if position:
        query = query.filter_by(position=position)
    if request.args.get('active', 'true').lower() == 'true':
        query = query.filter_by(is_active=True)
    return api_success([e.to_dict() for e in query.order_by(Employee.full_name).all()])


@app.route('/api/employees', methods=['POST'])
@login_required
@role_required('owner', 'manager')
def api_create_employee():
    try:
        data = get_json_body()
        username = (data.get('username') or '').strip().lower()
        if not username or not data.get('password') or not data.get('full_name') or not data.get('position'):
            return api_error('Username, password, nama, dan posisi wajib diisi', 400)
        if Employee.query.filter_by(username=username).first():
            return api_error('Username sudah digunakan', 400)

        last_id = db.session.query(func.max(Employee.id)).scalar() or 0
        employee = Employee(
            employee_code=f"EMP{last_id + 1:03d}",
            username=username,
            overtime_rate=app.config['DEFAULT_OVERTIME_RATE'],
            hire_date=local_now().date(),
        )
        try:
            apply_employee_fields(employee, data)
        except ValueError as e:
            return api_error(str(e), 400)
        db.session.add(employee)
        db.session.commit()
        return api_success(employee.to_dict(), message='Karyawan berhasil ditambahkan', status=201)
    except Exception as e:
        db.session.rollback()
        app.logger.exception("Failed to create employee")
        return api_error(str(e), 500)


@app.route('/api/employees/<int:employee_id>')
@login_required
@role_required('owner', 'manager')
def api_get_employee(employee_id):
    employee = db.session.get(Employee, employee_id)
    if not employee:
        return api_error('Karyawan tidak ditemukan', 404)
    return api_success(employee.to_dict())


@app.route('/api/employees/<int:employee_id>', methods=['PUT'])
@login_required
@role_required('owner', 'manager')
def api_update_employee(employee_id):
    try:
        employee = db.session.get(Employee, employee_id)
        if not employee:
            return api_error('Karyawan tidak ditemukan', 404)
        try:
            apply_employee_fields(employee, get_json_body())
        except ValueError as e:
            db.session.rollback()
            return api_error(str(e), 400)
        db.session.commit()
        return api_success(employee.to_dict(), message='Data karyawan diperbarui')
    except Exception as e:
        db.session.rollback()
        app.logger.exception("Failed to update employee")
        return api_error(str(e), 500)


@app.route('/api/employees/<int:employee_id>', methods=['DELETE'])
@login_required
@role_required('owner', 'manager')
def api_delete_employee(employee_id):
    employee = db.session.get(Employee, employee_id)
    if not employee:
        return api_error('Karyawan tidak ditemukan', 404)
    employee.is_active = False
    db.session.commit()
    return api_success(None, message='Karyawan dinonaktifkan')


@app.route('/api/employees/<int:employee_id>/attendance')
@login_required
@role_required('owner', 'manager')
def api_employee_attendance(employee_id):
    employee = db.session.get(Employee, employee_id)
    if not employee:
        return api_error('Karyawan tidak ditemukan', 404)
    today = local_now().date()
    try:
        start, end, _ = payroll_calc.period_bounds(
            to_int(request.args.get('year'), today.year),
            to_int(request.args.get('month'), today.month))
    except ValueError as e:
        return api_error(str(e), 400)
    records = Attendance.query.filter(
        Attendance.employee_id == employee.id,
        Attendance.date >= start, Attendance.date <= end
    ).order_by(Attendance.date).all()
    return api_success({
        'employee': employee.to_dict(),
        'records': [r.to_dict() for r in records],
        'summary': attendance_summary(records),
    })


def attendance_summary(records):
    return {
        'present': sum(1 for r in records if r.status == 'present'),
        'late': sum(1 for r in records if r.status == 'late'),
        'absent': sum(1 for r in records if r.status == 'absent'),
        'total_hours': round(sum(r.total_hours or 0 for r in records), 2),
        'overtime_hours': round(sum(r.overtime_hours or 0 for r in records), 2),
    }


@app.route('/api/attendance')
@login_required
@role_required('owner', 'manager')
def api_attendance_by_date():
    day = parse_date(request.args.get('date')) or local_now().date()
    records = Attendance.query.filter_by(date=day).all()
    scheduled = ShiftSchedule.query.filter_by(date=day).count()
    summary = attendance_summary(records)
    summary['scheduled'] = scheduled
    summary['not_clocked_in'] = max(0, scheduled - sum(1 for r in records if r.clock_in))
    return api_success({
        'date': day.isoformat(),
        'records': [r.to_dict() for r in records],
        'summary': summary,
    })


# ============================================
# OWNER: SHIFTS
# ============================================

@app.route('/api/shift-templates')
@login_required
@role_required('owner', 'manager')
def api_list_shift_templates():
    templates = ShiftTemplate.query.filter_by(is_active=True).order_by(ShiftTemplate.start_time).all()
    return api_success([t.to_dict() for t in templates])


@app.route('/api/shift-templates', methods=['POST'])
@login_required
@role_required('owner', 'manager')
def api_create_shift_template():
    data = get_json_body()
    start = parse_time(data.get('start_time'))
    end = parse_time(data.get('end_time'))
    if not data.get('name') or not start or not end:
        return api_error('Nama, jam mulai, dan jam selesai wajib diisi', 400)
    template = ShiftTemplate(name=data['name'], start_time=start, end_time=end,
                             break_duration=to_int(data.get('break_duration'), 60))
    db.session.add(template)
    db.session.commit()
    return api_success(template.to_dict(), status=201)


@app.route('/api/shift-templates/<int:template_id>', methods=['PUT'])
@login_required
@role_required('owner', 'manager')
def api_update_shift_template(template_id):
    template = db.session.get(ShiftTemplate, template_id)
    if not template:
        return api_error('Template shift tidak ditemukan', 404)
    data = get_json_body()
    if 'name' in data:
        template.name = data['name']
    if 'start_time' in data:
        template.start_time = parse_time(data['start_time']) or template.start_time
    if 'end_time' in data:
        template.end_time = parse_time(data['end_time']) or template.end_time
    if 'break_duration' in data:
        template.break_duration = to_int(data['break_duration'], template.break_duration)
    db.session.commit()
    return api_success(template.to_dict())


@app.route('/api/shift-templates/<int:template_id>', methods=['DELETE'])
@login_required
@role_required('owner', 'manager')
def api_delete_shift_template(template_id):
    template = db.session.get(ShiftTemplate, template_id)
    if not template:
        return api_error('Template shift tidak ditemukan', 404)
    template.is_active = False
    db.session.commit()
    return api_success(None, message='Template shift dinonaktifkan')


@app.route('/api/shift-schedules')
@login_required
@role_required('owner', 'manager')
def api_list_shift_schedules():
    today = local_now().date()
    start = parse_date(request.args.get('start')) or today - timedelta(days=today.weekday())
    end = parse_date(request.args.get('end')) or start + timedelta(days=6)
    query = ShiftSchedule.query.filter(ShiftSchedule.date >= start, ShiftSchedule.date <= end)
    employee_id = to_int(request.args.get('employee_id'))
    if employee_id:
        query = query.filter_by(employee_id=employee_id)
    schedules = query.order_by(ShiftSchedule.date, ShiftSchedule.start_time).all()
    return api_success([s.to_dict() for s in schedules])


@app.route('/api/shift-schedules', methods=['POST'])
@login_required
@role_required('owner', 'manager')
def api_create_shift_schedule():
    try:
        data = get_json_body()
        employee = db.session.get(Employee, to_int(data.get('employee_id'), 0))
        if not employee or not employee.is_active:
            return api_error('Karyawan tidak ditemukan', 404)
        day = parse_date(data.get('date'))
        if not day:
            return api_error('Tanggal tidak valid', 400)

        template = None
        if data.get('shift_template_id'):
            template = db.session.get(ShiftTemplate, to_int(data['shift_template_id'], 0))
            if not template:
                return api_error('Template shift tidak ditemukan', 404)
        start = parse_time(data.get('start_time')) or (template.start_time if template else None)
        end = parse_time(data.get('end_time')) or (template.end_time if template else None)
        if not start or not end:
            return api_error('Jam mulai dan jam selesai wajib diisi', 400)

        if ShiftSchedule.query.filter_by(employee_id=employee.id, date=day).first():
            return api_error('Jadwal untuk karyawan ini pada tanggal tersebut sudah ada', 400)

        schedule = ShiftSchedule(
            employee_id=employee.id,
            date=day,
            shift_template_id=template.id if template else None,
            start_time=start,
            end_time=end,
            break_duration=to_int(data.get('break_duration'),
                                 template.break_duration if template else 60),
            notes=data.get('notes'),
        )
        db.session.add(schedule)
        db.session.commit()

        if data.get('notify'):
            notify_employee(employee, notifier.shift_schedule_message(
                employee.full_name, day, start.strftime('%H:%M'), end.strftime('%H:%M'),
                employee.position, schedule.break_duration, schedule.notes))

        return api_success(schedule.to_dict(), status=201)
    except Exception as e:
        db.session.rollback()
        app.logger.exception("Failed to create shift schedule")
        return api_error(str(e), 500)


@app.route('/api/shift-schedules/<int:schedule_id>', methods=['DELETE'])
@login_required
@role_required('owner', 'manager')
def api_delete_shift_schedule(schedule_id):
    schedule = db.session.get(ShiftSchedule, schedule_id)
    if not schedule:
        return api_error('Jadwal tidak ditemukan', 404)
    if Attendance.query.filter_by(shift_schedule_id=schedule.id).first():
        return api_error('Jadwal sudah memiliki data absensi', 400)
    db.session.delete(schedule)
    db.session.commit()
    return api_success(None, message='Jadwal dihapus')


# ============================================
# OWNER: PROMOS
# ============================================

def apply_promo_fields(promo, data):
    if 'name' in data:
        promo.name = data['name']
    if 'code' in data:
        promo.code = data['code'].upper().strip()
    if 'description' in data:
        promo.description = data['description']
    if 'discount_type' in data:
        if data['discount_type'] not in ('percentage', 'fixed_amount'):
            raise ValueError('Tipe diskon tidak valid')
        promo.discount_type = data['discount_type']
    if 'discount_value' in data:
        value = to_int(data['discount_value'])
        if value is None or value <= 0:
            raise ValueError('Nilai diskon harus lebih dari 0')
        promo.discount_value = value
    if promo.discount_type == 'percentage' and promo.discount_value and promo.discount_value > 100:
        raise ValueError('Persentase diskon maksimal 100')
    if 'min_purchase' in data:
        promo.min_purchase = to_int(data['min_purchase'], 0)
    if 'max_discount' in data:
        promo.max_discount = to_int(data['max_discount'])
    if 'usage_limit' in data:
        promo.usage_limit = to_int(data['usage_limit'])
    if 'start_date' in data:
        promo.start_date = datetime.fromisoformat(data['start_date']) if data['start_date'] else None
    if 'end_date' in data:
        promo.end_date = datetime.fromisoformat(data['end_date']) if data['end_date'] else None
    if 'is_active' in data:
        promo.is_active = bool(data['is_active'])


@app.route('/api/promos')
@login_required
@role_required('owner', 'manager')
def api_list_promos():
    promos = Promo.query.order_by(Promo.created_at.desc()).all()
    return api_success([p.to_dict() for p in promos])


@app.route('/api/promos', methods=['POST'])
@login_required
@role_required('owner', 'manager')
def api_create_promo():
    try:
        data = get_json_body()
        if not data.get('name') or not data.get('code') or data.get('discount_value') is None:
            return api_error('Nama, kode, dan nilai diskon wajib diisi', 400)
        if Promo.query.filter_by(code=data['code'].upper().strip()).first():
            return api_error('Kode promo sudah digunakan', 400)
        promo = Promo(discount_type='percentage', min_purchase=0, current_uses=0)
        try:
            apply_promo_fields(promo, data)
        except ValueError as e:
            return api_error(str(e), 400)
        db.session.add(promo)
        db.session.commit()
        return api_success(promo.to_dict(), message='Promo berhasil dibuat', status=201)
    except Exception as e:
        db.session.rollback()
        app.logger.exception("Failed to create promo")
        return api_error(str(e), 500)


@app.route('/api/promos/<int:promo_id>', methods=['PUT'])
@login_required
@role_required('owner', 'manager')
def api_update_promo(promo_id):
    try:
        promo = db.session.get(Promo, promo_id)
        if not promo:
            return api_error('Promo tidak ditemukan', 404)
        try:
            apply_promo_fields(promo, get_json_body())
        except ValueError as e:
            db.session.rollback()
            return api_error(str(e), 400)
        db.session.commit()
        return api_success(promo.to_dict())
    except Exception as e:
        db.session.rollback()
        app.logger.exception("Failed to update promo")
        return api_error(str(e), 500)


@app.route('/api/promos/<int:promo_id>', methods=['DELETE'])
@login_required
@role_required('owner', 'manager')
def api_delete_promo(promo_id):
    promo = db.session.get(Promo, promo_id)
    if not promo:
        return api_error('Promo tidak ditemukan', 404)
    if Order.query.filter_by(promo_id=promo.id).first():
        promo.is_active = False
        message = 'Promo sudah dipakai, promo dinonaktifkan'
    else:
        db.session.delete(promo)
        message = 'Promo dihapus'
    db.session.commit()
    return api_success(None, message=message)


@app.route('/api/promos/<int:promo_id>/toggle', methods=['POST'])
@login_required
@role_required('owner', 'manager')
def api_toggle_promo(promo_id):
    promo = db.session.get(Promo, promo_id)
    if not promo:
        return api_error('Promo tidak ditemukan', 404)
    promo.is_active = not promo.is_active
    db.session.commit()
    return api_success(promo.to_dict())


# ============================================
# OWNER: SETTINGS
# ============================================

@app.route('/api/settings/all')
@login_required
@role_required('owner', 'manager')
def api_all_settings():
    settings = SystemSetting.query.order_by(SystemSetting.category, SystemSetting.key).all()
    return api_success([s.to_dict() for s in settings])


@app.route('/api/settings', methods=['PUT'])
@login_required
@role_required('owner')
def api_update_setting():
    data = get_json_body()
    category = data.get('category')
    key = data.get('key')
    if not category or not key or 'value' not in data:
        return api_error('Kategori, kunci, dan nilai wajib diisi', 400)
    if (category, key) == ('cafe', 'location'):
        value = data['value'] or {}
        try:
            lat = float(value['lat'])
            lng = float(value['lng'])
            radius = float(value.get('radius', app.config['CAFE_RADIUS_METERS']))
        except (KeyError, TypeError, ValueError):
            return api_error('Lokasi harus berisi lat, lng, dan radius', 400)
        if not -90 <= lat <= 90 or not -180 <= lng <= 180 or radius <= 0:
            return api_error('Koordinat atau radius tidak valid', 400)
    setting = set_setting(category, key, data['value'], data.get('description'))
    db.session.commit()
    return api_success(setting.to_dict(), message='Pengaturan disimpan')


# ============================================
# OWNER: TABLES
# ============================================

@app.route('/api/tables')
@login_required
@role_required('owner', 'manager')
def api_list_tables():
    tables = Table.query.order_by(Table.id).all()
    return api_success([t.to_dict() for t in tables])


@app.route('/api/tables', methods=['POST'])
@login_required
@role_required('owner', 'manager')
def api_create_table():
    data = get_json_body()
    number = str(data.get('table_number') or '').strip()
    if not number:
        return api_error('Nomor meja wajib diisi', 400)
    if Table.query.filter_by(table_number=number).first():
        return api_error(f'Meja {number} sudah ada', 400)
    table = Table(table_number=number, capacity=to_int(data.get('capacity'), 4),
                  location=data.get('location', 'indoor'))
    db.session.add(table)
    db.session.commit()
    return api_success(table.to_dict(), status=201)


@app.route('/api/tables/<int:table_id>', methods=['PUT'])
@login_required
@role_required('owner', 'manager')
def api_update_table(table_id):
    table = db.session.get(Table, table_id)
    if not table:
        return api_error('Meja tidak ditemukan', 404)
    data = get_json_body()
    if 'capacity' in data:
        table.capacity = to_int(data['capacity'], table.capacity)
    if 'location' in data:
        table.location = data['location']
    if 'is_active' in data:
        table.is_active = bool(data['is_active'])
    if data.get('status') == 'available':
        table.status = 'available'
        table.session_id = None
        table.occupied_since = None
    elif data.get('status') in ('reserved', 'maintenance'):
        table.status = data['status']
    db.session.commit()
    return api_success(table.to_dict())


@app.route('/api/tables/<int:table_id>', methods=['DELETE'])
@login_required
@role_required('owner', 'manager')
def api_delete_table(table_id):
    table = db.session.get(Table, table_id)
    if not table:
        return api_error('Meja tidak ditemukan', 404)
    open_order = table.orders.filter(Order.status.notin_(['completed', 'cancelled'])).first()
    if open_order:
        return api_error('Meja masih memiliki pesanan aktif', 400)
    number = table.table_number
    if table.orders.first():
        table.is_active = False
    else:
        db.session.delete(table)
    db.session.commit()
    return api_success(None, message=f'Meja {number} dihapus')


@app.route('/api/tables/<int:table_id>/qr')
@login_required
@role_required('owner', 'manager')
def api_table_qr(table_id):
    table = db.session.get(Table, table_id)
    if not table:
        return api_error('Meja tidak ditemukan', 404)
    url, img_str = generate_table_qr(table)
    return api_success({
        'table_id': table.id,
        'table_number': table.table_number,
        'url': url,
        'qr_code': f'data:image/png;base64,{img_str}',
    })


# ============================================
# OWNER: MENU ITEMS
# ============================================

def apply_menu_fields(item, data):
    if 'name' in data:
        item.name = data['name']
    if 'description' in data:
        item.description = data['description']
    if 'category' in data:
        item.category = (data['category'] or '').lower()
    if 'base_price' in data:
        price = to_int(data['base_price'])
        if price is None or price <= 0:
            raise ValueError('Harga harus lebih dari 0')
        item.base_price = price
    if 'cost_price' in data:
        item.cost_price = to_int(data['cost_price'], 0)
    if 'image_url' in data:
        item.image_url = data['image_url']
    if 'preparation_time' in data:
        item.preparation_time = to_int(data['preparation_time'], 10)
    if 'is_available' in data:
        item.is_available = bool(data['is_available'])


@app.route('/api/menu-items')
@login_required
@role_required('owner', 'manager')
def api_list_menu_items():
    items = MenuItem.query.order_by(MenuItem.category, MenuItem.name).all()
    return api_success([i.to_dict() for i in items])


@app.route('/api/menu-items', methods=['POST'])
@login_required
@role_required('owner', 'manager')
def api_create_menu_item():
    data = get_json_body()
    if not data.get('name') or not data.get('category') or data.get('base_price') is None:
        return api_error('Nama, kategori, dan harga wajib diisi', 400)
    item = MenuItem()
    try:
        apply_menu_fields(item, data)
    except ValueError as e:
        return api_error(str(e), 400)
    db.session.add(item)
    db.session.commit()
    return api_success(item.to_dict(), status=201)


@app.route('/api/menu-items/<int:item_id>', methods=['PUT'])
@login_required
@role_required('owner', 'manager')
def api_update_menu_item(item_id):
    item = db.session.get(MenuItem, item_id)
    if not item:
        return api_error('Menu tidak ditemukan', 404)
    try:
        apply_menu_fields(item, get_json_body())
    except ValueError as e:
        db.session.rollback()
        return api_error(str(e), 400)
    db.session.commit()
    return api_success(item.to_dict())


@app.route('/api/menu-items/<int:item_id>', methods=['DELETE'])
@login_required
@role_required('owner', 'manager')
def api_delete_menu_item(item_id):
    item = db.session.get(MenuItem, item_id)
    if not item:
        return api_error('Menu tidak ditemukan', 404)
    if OrderItem.query.filter_by(menu_item_id=item.id).first():
        item.is_available = False
        message = 'Menu sudah pernah dipesan, menu dinonaktifkan'
    else:
        db.session.delete(item)
        message = 'Menu dihapus'
    db.session.commit()
    return api_success(None, message=message)


@app.route('/api/menu-items/price-suggestion', methods=['POST'])
@login_required
@role_required('owner', 'manager')
def api_price_suggestion():
    data = get_json_body()
    try:
        suggestion = pricing.suggest_price(
            data.get('ingredients') or [],
            to_int(data.get('preparation_time'), 0),
            data.get('category') or 'food',
            current_price=to_int(data.get('current_price')),
            competitor_prices=data.get('competitor_prices'),
            demand_index=data.get('demand_index'),
        )
    except (ValueError, TypeError) as e:
        return api_error(str(e), 400)
    return api_success(suggestion)


# ============================================
# OWNER: OVERTIME & PAYROLL
# ============================================

@app.route('/api/overtime-requests')
@login_required
@role_required('owner', 'manager')
def api_list_overtime_requests():
    query = OvertimeRequest.query
    status = request.args.get('status')
    if status:
        query = query.filter_by(status=status)
    requests_ = query.order_by(OvertimeRequest.created_at.desc()).all()
    return api_success([r.to_dict() for r in requests_])


@app.route('/api/overtime-requests/<int:request_id>', methods=['PATCH'])
@login_required
@role_required('owner', 'manager')
def api_review_overtime_request(request_id):
    try:
        overtime = db.session.get(OvertimeRequest, request_id)
        if not overtime:
            return api_error('Permintaan lembur tidak ditemukan', 404)
        data = get_json_body()
        status = data.get('status')
        if status not in ('approved', 'rejected'):
            return api_error('Status harus approved atau rejected', 400)
        if overtime.status != 'pending':
            return api_error('Permintaan lembur sudah diproses', 400)
        admin_notes = data.get('admin_notes')
        if status == 'rejected' and not admin_notes:
            return api_error('Alasan penolakan wajib diisi', 400)

        overtime.status = status
        overtime.admin_notes = admin_notes
        overtime.reviewed_by = current_user.id
        overtime.reviewed_at = utc_now()

        if status == 'approved':
            attendance = Attendance.query.filter_by(employee_id=overtime.employee_id,
                                                    date=overtime.date).first()
            if attendance and attendance.overtime_hours:
                attendance.overtime_approved = True
                attendance.overtime_needs_approval = False
        db.session.commit()

        employee = overtime.employee
        if status == 'approved':
            _, _, days = payroll_calc.period_bounds(overtime.date.year, overtime.date.month)
            rate = payroll_calc.hourly_rate(employee.salary_type, employee.salary_amount, days)
            pay = payroll_calc.overtime_pay(overtime.hours, rate, employee.overtime_rate)
            text = notifier.overtime_approved_message(employee.full_name, overtime.date,
                                                      overtime.hours, pay, admin_notes)
        else:
            text = notifier.overtime_rejected_message(employee.full_name, overtime.date,
                                                      overtime.hours, admin_notes)
        notify_employee(employee, text)

        return api_success(overtime.to_dict())
    except Exception as e:
        db.session.rollback()
        app.logger.exception("Failed to review overtime request")
        return api_error(str(e), 500)


def build_payroll(employee, year, month):
    period_start, period_end, days = payroll_calc.period_bounds(year, month)
    rules = payroll_rules()
    today = local_now().date()

    records = Attendance.query.filter(
        Attendance.employee_id == employee.id,
        Attendance.date >= period_start, Attendance.date <= period_end
    ).all()
    scheduled_dates = {s.date for s in ShiftSchedule.query.filter(
        ShiftSchedule.employee_id == employee.id,
        ShiftSchedule.date >= period_start, ShiftSchedule.date <= period_end
    ).all()}

    attended_dates = {r.date for r in records if r.clock_in and r.status != 'absent'}
    marked_absent = {r.date for r in records if r.status == 'absent'}
    missed = {d for d in scheduled_dates if d <= today} - attended_dates
    absent_days = len(missed | marked_absent)
    present_days = len(attended_dates)
    late_days = sum(1 for r in records if r.status == 'late')

    regular_hours = round(sum(r.regular_hours or 0 for r in records), 2)
    overtime_hours = round(sum(r.overtime_hours or 0 for r in records if r.overtime_approved), 2)

    rate = payroll_calc.hourly_rate(employee.salary_type, employee.salary_amount, days)
    ot_pay = payroll_calc.overtime_pay(overtime_hours, rate,
                                       employee.overtime_rate or rules['overtime_rate'])
    basic = payroll_calc.basic_salary(employee.salary_type, employee.salary_amount,
                                      present_days, regular_hours)
    totals = payroll_calc.compute_payroll(basic, ot_pay, late_days, absent_days,
                                          rules['late_penalty'], rules['absence_penalty'])

    return Payroll(
        employee_id=employee.id,
        period_month=month,
        period_year=year,
        period_start=period_start,
        period_end=period_end,
        working_days=len(scheduled_dates),
        present_days=present_days,
        late_days=late_days,
        absent_days=absent_days,
        regular_hours=regular_hours,
        overtime_hours=overtime_hours,
        status='pending',
        **totals,
    )


@app.route('/api/payroll/generate', methods=['POST'])
@login_required
@role_required('owner')
def api_generate_payroll():
    try:
        data = get_json_body()
        employee = db.session.get(Employee, to_int(data.get('employee_id'), 0))
        if not employee:
            return api_error('Karyawan tidak ditemukan', 404)
        month = to_int(data.get('month'))
        year = to_int(data.get('year'))
        if not month or not year or not 1 <= month <= 12:
            return api_error('Bulan dan tahun tidak valid', 400)
        if Payroll.query.filter_by(employee_id=employee.id, period_month=month, period_year=year).first():
            return api_error('Payroll untuk periode ini sudah ada', 400)

        record = build_payroll(employee, year, month)
        record.notes = data.get('notes')
        db.session.add(record)
        db.session.commit()
        app.logger.info("Payroll generated for %s %02d/%d", employee.username, month, year)
        return api_success(record.to_dict(), message='Payroll berhasil dibuat', status=201)
    except Exception as e:
        db.session.rollback()
        app.logger.exception("Failed to generate payroll")
        return api_error(str(e), 500)


@app.route('/api/payroll')
@login_required
@role_required('owner', 'manager')
def api_list_payroll():
    query = Payroll.query
    for arg, column in (('month', Payroll.period_month), ('year', Payroll.period_year),
                        ('employee_id', Payroll.employee_id)):
        value = to_int(request.args.get(arg))
        if value:
            query = query.filter(column == value)
    status = request.args.get('status')
    if status:
        query = query.filter(Payroll.status == status)
    records = query.order_by(Payroll.period_year.desc(), Payroll.period_month.desc()).all()
    return api_success({
        'records': [r.to_dict() for r in records],
        'total_net': sum(r.net_salary for r in records),
    })


@app.route('/api/payroll/<int:payroll_id>', methods=['PATCH'])
@login_required
@role_required('owner')
def api_update_payroll(payroll_id):
    record = db.session.get(Payroll, payroll_id)
    if not record:
        return api_error('Payroll tidak ditemukan', 404)
    data = get_json_body()
    if data.get('status') not in ('pending', 'paid'):
        return api_error('Status harus pending atau paid', 400)
    record.status = data['status']
    if record.status == 'paid':
        record.payment_date = parse_date(data.get('payment_date')) or local_now().date()
    else:
        record.payment_date = None
    if 'notes' in data:
        record.notes = data['notes']
    db.session.commit()

    if record.status == 'paid':
        notify_employee(record.employee, notifier.payslip_message(
            record.employee.full_name, record.period_month, record.period_year, record.to_dict()))
    return api_success(record.to_dict())


@app.route('/api/payroll/<int:payroll_id>', methods=['DELETE'])
@login_required
@role_required('owner')
def api_delete_payroll(payroll_id):
    record = db.session.get(Payroll, payroll_id)
    if not record:
        return api_error('Payroll tidak ditemukan', 404)
    if record.status != 'pending':
        return api_error('Hanya payroll berstatus pending yang dapat dihapus', 400)
    db.session.delete(record)
    db.session.commit()
    return api_success(None, message='Payroll dihapus')


# ============================================
# OWNER: CASH RECONCILIATION & REPORTS
# ============================================

def cash_sales_for(day):
    start, end = local_day_bounds(day)
    return db.session.query(func.coalesce(func.sum(Order.total_amount), 0)).filter(
        Order.payment_method == 'cash',
        Order.status.in_(order_flow.PAID_STATUSES),
        Order.created_at >= start,
        Order.created_at < end,
    ).scalar()


@app.route('/api/cash-reconciliation/expected')
@login_required
@role_required('owner', 'manager')
def api_expected_cash():
    day = parse_date(request.args.get('date')) or local_now().date()
    starting = to_int(request.args.get('starting_cash'), app.config['STARTING_CASH'])
    sales = cash_sales_for(day)
    return api_success({
        'date': day.isoformat(),
        'starting_cash': starting,
        'system_cash_sales': sales,
        'expected_cash': starting + sales,
    })


@app.route('/api/cash-reconciliation')
@login_required
@role_required('owner', 'manager')
def api_list_cash_reconciliation():
    query = CashReconciliation.query
    start = parse_date(request.args.get('start'))
    end = parse_date(request.args.get('end'))
    if start:
        query = query.filter(CashReconciliation.date >= start)
    if end:
        query = query.filter(CashReconciliation.date <= end)
    records = query.order_by(CashReconciliation.date.desc()).all()
    return api_success([r.to_dict() for r in records])


@app.route('/api/cash-reconciliation', methods=['POST'])
@login_required
@role_required('owner', 'manager')
def api_create_cash_reconciliation():
    try:
        data = get_json_body()
        day = parse_date(data.get('date')) or local_now().date()
        if CashReconciliation.query.filter_by(date=day).first():
            return api_error('Rekonsiliasi untuk tanggal ini sudah ada', 400)

        denominations = data.get('denominations')
        try:
            if denominations:
                actual = reconciliation.count_denominations(denominations)
            else:
                actual = to_int(data.get('actual_cash'))
                if actual is None or actual < 0:
                    return api_error('Jumlah kas aktual wajib diisi', 400)
        except ValueError as e:
            return api_error(str(e), 400)

        starting = to_int(data.get('starting_cash'), app.config['STARTING_CASH'])
        result = reconciliation.reconcile(starting, cash_sales_for(day), actual,
                                          app.config['CASH_VARIANCE_THRESHOLD'])
        record = CashReconciliation(
            date=day,
            denominations=json.dumps(denominations) if denominations else None,
            notes=data.get('notes'),
            reconciled_by=current_user.id,
            **result,
        )
        db.session.add(record)
        db.session.commit()
        return api_success(record.to_dict(), status=201)
    except Exception as e:
        db.session.rollback()
        app.logger.exception("Failed to save cash reconciliation")
        return api_error(str(e), 500)


@app.route('/api/reports/sales')
@login_required
@role_required('owner', 'manager')
def api_sales_report():
    today = local_now().date()
    start_day = parse_date(request.args.get('start')) or today.replace(day=1)
    end_day = parse_date(request.args.get('end')) or today
    if end_day < start_day:
        return api_error('Tanggal akhir harus setelah tanggal awal', 400)
    start, _ = local_day_bounds(start_day)
    _, end = local_day_bounds(end_day)

    orders = Order.query.filter(
        Order.status.in_(order_flow.PAID_STATUSES),
        Order.created_at >= start, Order.created_at < end
    ).all()

    by_method = {}
    by_day = {}
    tz = cafe_tz()
    for order in orders:
        method = order.payment_method or 'unknown'
        by_method[method] = by_method.get(method, 0) + order.total_amount
        key = as_utc(order.created_at).astimezone(tz).date().isoformat()
        by_day[key] = by_day.get(key, 0) + order.total_amount

    top_items = db.session.query(
        OrderItem.name,
        func.sum(OrderItem.quantity).label('quantity'),
        func.sum(OrderItem.total_price).label('revenue')
    ).join(Order).filter(
        Order.status.in_(order_flow.PAID_STATUSES),
        Order.created_at >= start, Order.created_at < end
    ).group_by(OrderItem.name).order_by(func.sum(OrderItem.quantity).desc()).limit(10).all()

    total = sum(o.total_amount for o in orders)
    return api_success({
        'start': start_day.isoformat(),
        'end': end_day.isoformat(),
        'total_orders': len(orders),
        'total_revenue': total,
        'total_tax': sum(o.tax_amount for o in orders),
        'total_service_fee': sum(o.service_fee for o in orders),
        'total_discount': sum(o.discount_amount for o in orders),
        'average_order_value': round(total / len(orders)) if orders else 0,
        'by_payment_method': by_method,
        'by_day': [{'date': k, 'revenue': v} for k, v in sorted(by_day.items())],
        'top_items': [{'name': n, 'quantity': int(q), 'revenue': int(r)} for n, q, r in top_items],
    })


@app.route('/api/stats')
@login_required
@role_required('owner', 'manager')
def api_get_stats():
    today = local_now().date()
    start, end = local_day_bounds(today)

    today_stats = db.session.query(
        func.count(Order.id).label('total_orders'),
        func.coalesce(func.sum(Order.total_amount), 0).label('total_sales')
    ).filter(
        Order.created_at >= start, Order.created_at < end,
        Order.status.in_(order_flow.PAID_STATUSES)
    ).first()

    pending_payments = Order.query.filter(
        Order.status.in_(['pending_payment', 'payment_verification'])).count()
    active_orders = Order.query.filter(Order.status.in_(['confirmed', 'preparing', 'ready'])).count()
    clocked_in = Attendance.query.filter(Attendance.date == today, Attendance.clock_in != None,
                                         Attendance.clock_out == None).count()
    average_rating = db.session.query(func.avg(Rating.rating)).scalar()

    return api_success({
        'today_orders': today_stats.total_orders,
        'today_sales': int(today_stats.total_sales),
        'pending_payments': pending_payments,
        'active_orders': active_orders,
        'employees_on_duty': clocked_in,
        'occupied_tables': Table.query.filter_by(status='occupied').count(),
        'average_rating': round(float(average_rating), 2) if average_rating else None,
    })


# ============================================
# OWNER: NOTIFICATIONS
# ============================================

@app.route('/api/notifications')
@login_required
def api_get_notifications():
    query = Notification.query.filter(
        (Notification.user_id == None) | (Notification.user_id == current_user.id))
    if request.args.get('unread') == 'true':
        query = query.filter(Notification.is_read == False)
    notifications = query.order_by(Notification.created_at.desc()).limit(50).all()
    unread = query.filter(Notification.is_read == False).count()
    return api_success({
        'notifications': [n.to_dict() for n in notifications],
        'unread_count': unread,
    })


@app.route('/api/notifications/<int:notification_id>/read', methods=['POST'])
@login_required
def api_mark_notification_read(notification_id):
    notification = db.session.get(Notification, notification_id)
    if not notification:
        return api_error('Notifikasi tidak ditemukan', 404)
    notification.is_read = True
    notification.read_at = utc_now()
    db.session.commit()
    return api_success(notification.to_dict())


@app.route('/api/notifications/read-all', methods=['POST'])
@login_required
def api_mark_all_notifications_read():
    now = utc_now()
    Notification.query.filter(
        (Notification.user_id == None) | (Notification.user_id == current_user.id),
        Notification.is_read == False
    ).update({'is_read': True, 'read_at': now}, synchronize_session=False)
    db.session.commit()
    return api_success(None, message='Semua notifikasi ditandai sudah dibaca')


# ============================================
# EMPLOYEE PORTAL: AUTH
# ============================================

@app.route('/api/employee/login', methods=['POST'])
@csrf.exempt
@limiter.limit("10 per minute")
def api_employee_login():
    data = get_json_body()
    username = (data.get('username') or '').strip().lower()
    employee = Employee.query.filter_by(username=username, is_active=True).first()
    if not employee or not employee.check_password(data.get('password') or ''):
        return api_error('Username atau password salah', 401)
    employee.last_login = utc_now()
    db.session.commit()
    return api_success({
        'token': issue_employee_token(employee),
        'expires_in': app.config['EMPLOYEE_TOKEN_MAX_AGE'],
        'employee': employee.to_dict(),
    }, message='Login berhasil')


@app.route('/api/employee/me')
@csrf.exempt
@employee_token_required()
def api_employee_me():
    return api_success(g.employee.to_dict())


@app.route('/api/employee/change-password', methods=['POST'])
@csrf.exempt
@employee_token_required()
def api_employee_change_password():
    data = get_json_body()
    if not g.employee.check_password(data.get('current_password') or ''):
        return api_error('Password lama salah', 400)
    new_password = data.get('new_password') or ''
    if len(new_password) < 6:
        return api_error('Password baru minimal 6 karakter', 400)
    g.employee.set_password(new_password)
    db.session.commit()
    return api_success(None, message='Password berhasil diubah')


@app.route('/api/employee/notification-settings')
@csrf.exempt
@employee_token_required()
def api_employee_notification_settings():
    return api_success({
        'telegram_chat_id': g.employee.telegram_chat_id,
        'telegram_notifications': bool(g.employee.telegram_notifications),
    })


@app.route('/api/employee/notification-settings', methods=['PUT'])
@csrf.exempt
@employee_token_required()
def api_update_employee_notification_settings():
    data = get_json_body()
    if 'telegram_chat_id' in data:
        chat_id = str(data['telegram_chat_id'] or '').strip()
        if chat_id and not chat_id.lstrip('-').isdigit():
            return api_error('Chat ID Telegram harus berupa angka', 400)
        g.employee.telegram_chat_id = chat_id or None
    if 'telegram_notifications' in data:
        g.employee.telegram_notifications = bool(data['telegram_notifications'])
    db.session.commit()
    return api_success({
        'telegram_chat_id': g.employee.telegram_chat_id,
        'telegram_notifications': g.employee.telegram_notifications,
    }, message='Pengaturan notifikasi disimpan')


@app.route('/api/employee/notification-settings/test', methods=['POST'])
@csrf.exempt
@employee_token_required()
@limiter.limit("5 per minute")
def api_employee_test_notification():
    employee = g.employee
    if not employee.telegram_notifications:
        return api_error('Notifikasi tidak diaktifkan. Aktifkan notifikasi terlebih dahulu.', 400)
    if not employee.telegram_chat_id:
        return api_error('Chat ID belum diatur. Masukkan Chat ID Telegram Anda terlebih dahulu.', 400)
    if not telegram.send(employee.telegram_chat_id, notifier.connection_check_message(employee.full_name)):
        return api_error('Gagal mengirim notifikasi. Pastikan Chat ID Anda benar.', 502)
    return api_success(None, message='Notifikasi test berhasil dikirim')


# ============================================
# EMPLOYEE PORTAL: ATTENDANCE
# ============================================

def read_location(data):
    try:
        return float(data['latitude']), float(data['longitude'])
    except (KeyError, TypeError, ValueError):
        return None


def scheduled_datetimes(schedule, tz):
    start = datetime.combine(schedule.date, schedule.start_time, tzinfo=tz)
    end = datetime.combine(schedule.date, schedule.end_time, tzinfo=tz)
    if end <= start:
        end += timedelta(days=1)
    return start, end


@app.route('/api/employee/attendance/clock-in', methods=['POST'])
@csrf.exempt
@employee_token_required()
def api_clock_in():
    try:
        employee = g.employee
        position = read_location(get_json_body())
        if position is None:
            return api_error('Lokasi diperlukan untuk absensi', 400)
        try:
            distance = check_geofence(position[0], position[1], cafe_location())
        except OutOfRangeError as e:
            return api_error(str(e), 400)

        now = local_now()
        today = now.date()
        attendance = Attendance.query.filter_by(employee_id=employee.id, date=today).first()
        if attendance and attendance.clock_in:
            return api_error('Anda sudah clock in hari ini', 400)

        schedule = ShiftSchedule.query.filter_by(employee_id=employee.id, date=today).first()
        if not schedule:
            return api_error('Anda tidak memiliki jadwal shift hari ini', 400)

        rules = attendance_rules()
        scheduled_in, _ = scheduled_datetimes(schedule, now.tzinfo)
        late = payroll_calc.late_minutes(now, scheduled_in, rules['late_tolerance_minutes'])

        if attendance is None:
            attendance = Attendance(employee_id=employee.id, date=today)
            db.session.add(attendance)
        attendance.shift_schedule_id = schedule.id
        attendance.clock_in = now.astimezone(timezone.utc)
        attendance.clock_in_latitude = position[0]
        attendance.clock_in_longitude = position[1]
        attendance.clock_in_distance = round(distance, 2)
        attendance.late_minutes = late
        attendance.status = 'late' if late > 0 else 'present'
        db.session.commit()

        if late > 0:
            notify_employee(employee, notifier.late_warning_message(
                employee.full_name, now.strftime('%H:%M'), schedule.start_time.strftime('%H:%M'), late))

        message = f'Clock in berhasil. Anda terlambat {late} menit.' if late else 'Clock in berhasil'
        return api_success(attendance.to_dict(), message=message)
    except Exception as e:
        db.session.rollback()
        app.logger.exception("Clock in failed")
        return api_error(str(e), 500)


@app.route('/api/employee/attendance/clock-out', methods=['POST'])
@csrf.exempt
@employee_token_required()
def api_clock_out():
    try:
        employee = g.employee
        position = read_location(get_json_body())
        if position is None:
            return api_error('Lokasi diperlukan untuk absensi', 400)
        try:
            distance = check_geofence(position[0], position[1], cafe_location())
        except OutOfRangeError as e:
            return api_error(str(e), 400)

        now = local_now()
        attendance = Attendance.query.filter_by(employee_id=employee.id, date=now.date()).first()
        if attendance is None or attendance.clock_in is None:
            # overnight shifts clock out the day after they start
            attendance = Attendance.query.filter(
                Attendance.employee_id == employee.id,
                Attendance.date == now.date() - timedelta(days=1),
                Attendance.clock_in.isnot(None),
                Attendance.clock_out.is_(None),
            ).first() or attendance
        if attendance is None or attendance.clock_in is None:
            return api_error('Anda belum clock in hari ini', 400)
        if attendance.clock_out is not None:
            return api_error('Anda sudah clock out hari ini', 400)

        schedule = attendance.schedule
        break_minutes = (schedule.break_duration or 0) if schedule else 0
        worked = (now - as_utc(attendance.clock_in)).total_seconds() / 60 - break_minutes
        if schedule:
            planned = payroll_calc.scheduled_minutes(schedule.start_time, schedule.end_time) - break_minutes
            _, scheduled_out = scheduled_datetimes(schedule, now.tzinfo)
            attendance.early_leave_minutes = payroll_calc.early_leave_minutes(now, scheduled_out)
        else:
            planned = 8 * 60
        hours = payroll_calc.split_worked_minutes(worked, planned)

        rules = attendance_rules()
        approved_request = OvertimeRequest.query.filter_by(
            employee_id=employee.id, date=attendance.date, status='approved').first()
        approved, needs_approval = payroll_calc.overtime_decision(
            hours['overtime_hours'], approved_request is not None, rules['overtime_auto_approve_hours'])

        attendance.clock_out = now.astimezone(timezone.utc)
        attendance.clock_out_latitude = position[0]
        attendance.clock_out_longitude = position[1]
        attendance.clock_out_distance = round(distance, 2)
        attendance.total_hours = hours['total_hours']
        attendance.regular_hours = hours['regular_hours']
        attendance.overtime_hours = hours['overtime_hours']
        attendance.overtime_approved = approved
        attendance.overtime_needs_approval = needs_approval
        db.session.commit()

        message = 'Clock out berhasil'
        if needs_approval:
            message += '. Lembur lebih dari batas otomatis, ajukan permintaan lembur untuk persetujuan.'
        return api_success(attendance.to_dict(), message=message)
    except Exception as e:
        db.session.rollback()
        app.logger.exception("Clock out failed")
        return api_error(str(e), 500)


def send_attendance_reminders(now=None):
    """Telegram reminders for shifts not yet clocked in and shifts never clocked out.

    Clock-in reminders go out from 30 minutes before a shift until it ends.
    Clock-out reminders go out once the shift has ended.
    """
    now = now or local_now()
    today = now.date()
    sent = {'clock_in': 0, 'clock_out': 0}
    schedules = ShiftSchedule.query.filter(
        ShiftSchedule.date.in_([today - timedelta(days=1), today])).all()
    for schedule in schedules:
        employee = schedule.employee
        if employee is None or not employee.is_active:
            continue
        attendance = Attendance.query.filter_by(employee_id=employee.id, date=schedule.date).first()
        start, end = scheduled_datetimes(schedule, now.tzinfo)

        if attendance is None or attendance.clock_in is None:
            if start - timedelta(minutes=30) <= now < end:
                text = notifier.attendance_reminder_message(
                    employee.full_name, schedule.start_time.strftime('%H:%M'), schedule.end_time.strftime('%H:%M'))
                if notify_employee(employee, text):
                    sent['clock_in'] += 1
        elif attendance.clock_out is None and now >= end:
            clock_in = as_utc(attendance.clock_in).astimezone(now.tzinfo).strftime('%H:%M')
            text = notifier.missing_clock_out_message(employee.full_name, schedule.date, clock_in)
            if notify_employee(employee, text):
                sent['clock_out'] += 1
    return sent


@app.cli.command('send-reminders')
def send_reminders_command():
    """Send attendance reminders over Telegram."""
    sent = send_attendance_reminders()
    print(f"Reminders sent: {sent['clock_in']} clock in, {sent['clock_out']} clock out")


@app.route('/api/employee/attendance/today')
@csrf.exempt
@employee_token_required()
def api_attendance_today():
    today = local_now().date()
    schedule = ShiftSchedule.query.filter_by(employee_id=g.employee.id, date=today).first()
    attendance = Attendance.query.filter_by(employee_id=g.employee.id, date=today).first()
    return api_success({
        'date': today.isoformat(),
        'schedule': schedule.to_dict() if schedule else None,
        'attendance': attendance.to_dict() if attendance else None,
        'cafe_location': cafe_location(),
    })


@app.route('/api/employee/attendance/history')
@csrf.exempt
@employee_token_required()
def api_attendance_history():
    today = local_now().date()
    try:
        start, end, _ = payroll_calc.period_bounds(
            to_int(request.args.get('year'), today.year),
            to_int(request.args.get('month'), today.month))
    except ValueError as e:
        return api_error(str(e), 400)
    records = Attendance.query.filter(
        Attendance.employee_id == g.employee.id,
        Attendance.date >= start, Attendance.date <= end
    ).order_by(Attendance.date.desc()).all()
    return api_success({
        'records': [r.to_dict() for r in records],
        'summary': attendance_summary(records),
    })


# ============================================
# EMPLOYEE PORTAL: OVERTIME, SCHEDULE & PAYSLIP
# ============================================

@app.route('/api/employee/overtime')
@csrf.exempt
@employee_token_required()
def api_employee_overtime_list():
    records = g.employee.overtime_requests.order_by(OvertimeRequest.date.desc()).all()
    return api_success([r.to_dict() for r in records])


@app.route('/api/employee/overtime', methods=['POST'])
@csrf.exempt
@employee_token_required()
def api_employee_overtime_create():
    try:
        data = get_json_body()
        day = parse_date(data.get('date'))
        start = parse_time(data.get('start_time'))
        end = parse_time(data.get('end_time'))
        reason = (data.get('reason') or '').strip()
        if not day or not start or not end or not reason:
            return api_error('Tanggal, jam mulai, jam selesai, dan alasan wajib diisi', 400)
        if end <= start:
            return api_error('Jam selesai harus setelah jam mulai', 400)
        minutes = (datetime.combine(day, end) - datetime.combine(day, start)).total_seconds() / 60
        hours = round(minutes / 60, 2)
        if hours > attendance_rules()['max_overtime_hours']:
            return api_error('Lembur maksimal 12 jam', 400)

        overtime = OvertimeRequest(employee_id=g.employee.id, date=day, start_time=start,
                                   end_time=end, hours=hours, reason=reason)
        db.session.add(overtime)
        db.session.commit()

        safe_create_notification(
            type='overtime_request',
            title='Permintaan Lembur',
            message=f'{g.employee.full_name} mengajukan lembur {hours:.1f} jam',
            data={'overtime_request_id': overtime.id},
        )
        return api_success(overtime.to_dict(), message='Permintaan lembur diajukan', status=201)
    except Exception as e:
        db.session.rollback()
        app.logger.exception("Failed to create overtime request")
        return api_error(str(e), 500)


@app.route('/api/employee/overtime/<int:request_id>/cancel', methods=['PATCH'])
@csrf.exempt
@employee_token_required()
def api_employee_overtime_cancel(request_id):
    overtime = db.session.get(OvertimeRequest, request_id)
    if not overtime or overtime.employee_id != g.employee.id:
        return api_error('Permintaan lembur tidak ditemukan', 404)
    if overtime.status != 'pending':
        return api_error('Hanya permintaan yang masih pending yang dapat dibatalkan', 400)
    overtime.status = 'cancelled'
    db.session.commit()
    return api_success(overtime.to_dict(), message='Permintaan lembur dibatalkan')


@app.route('/api/employee/schedule')
@csrf.exempt
@employee_token_required()
def api_employee_schedule():
    today = local_now().date()
    start = parse_date(request.args.get('start')) or today - timedelta(days=today.weekday())
    end = parse_date(request.args.get('end')) or start + timedelta(days=6)
    schedules = g.employee.schedules.filter(
        ShiftSchedule.date >= start, ShiftSchedule.date <= end
    ).order_by(ShiftSchedule.date).all()
    return api_success([s.to_dict() for s in schedules])


@app.route('/api/employee/payslip')
@csrf.exempt
@employee_token_required()
def api_employee_payslip():
    query = g.employee.payrolls
    month = to_int(request.args.get('month'))
    year = to_int(request.args.get('year'))
    if month:
        query = query.filter(Payroll.period_month == month)
    if year:
        query = query.filter(Payroll.period_year == year)
    records = query.order_by(Payroll.period_year.desc(), Payroll.period_month.desc()).all()
    return api_success([r.to_dict() for r in records])


# ============================================
# EMPLOYEE PORTAL: KASIR & KITCHEN
# ============================================

@app.route('/api/kasir/orders/pending')
@csrf.exempt
@employee_token_required('kasir')
def api_kasir_pending_orders():
    orders = Order.query.filter(Order.status.in_(['pending_payment', 'payment_verification'])) \
        .order_by(Order.created_at.asc()).all()
    result = []
    for order in orders:
        d = order.to_dict()
        latest = order.transactions.order_by(PaymentTransaction.id.desc()).first()
        d['latest_transaction'] = latest.to_dict() if latest else None
        result.append(d)
    return api_success(result)


@app.route('/api/kasir/payments/<int:transaction_id>/verify', methods=['POST'])
@csrf.exempt
@employee_token_required('kasir')
def api_kasir_verify_payment(transaction_id):
    try:
        transaction = db.session.get(PaymentTransaction, transaction_id)
        if not transaction:
            return api_error('Transaksi tidak ditemukan', 404)
        if transaction.status not in ('pending', 'processing'):
            return api_error('Transaksi sudah diproses', 400)

        data = get_json_body()
        action = data.get('action')
        if action not in ('approve', 'reject'):
            return api_error('Aksi harus approve atau reject', 400)

        order = transaction.order
        verifier = g.employee.full_name
        now = utc_now()

        try:
            if action == 'approve':
                if transaction.payment_method == 'cash':
                    cash_received = to_int(data.get('cash_received'))
                    if cash_received is None or cash_received < transaction.amount:
                        return api_error('Uang yang diterima kurang dari total pembayaran', 400)
                    transaction.cash_received = cash_received
                    transaction.change_amount = cash_received - transaction.amount
                elif not transaction.proof_image_url:
                    return api_error('Bukti pembayaran belum diupload', 400)
                order_flow.confirm_payment(order, verifier)
                transaction.status = 'success'
            else:
                order_flow.reject_payment(order)
                transaction.status = 'failed'
        except InvalidTransition as e:
            return api_error(str(e), 400)

        transaction.verified_at = now
        transaction.verified_by = verifier
        if data.get('notes'):
            transaction.notes = data['notes']
        db.session.commit()
        app.logger.info("Payment %s %s by %s", transaction.id, transaction.status, g.employee.username)

        return api_success({
            'transaction': transaction.to_dict(),
            'order': order.to_dict(include_items=False),
        }, message='Pembayaran diverifikasi' if action == 'approve' else 'Pembayaran ditolak')
    except Exception as e:
        db.session.rollback()
        app.logger.exception("Payment verification failed")
        return api_error(str(e), 500)


@app.route('/api/staff/orders')
@csrf.exempt
@employee_token_required('dapur', 'pelayan', 'kasir')
def api_staff_orders():
    orders = Order.query.filter(Order.status.in_(['confirmed', 'preparing', 'ready', 'delivered'])) \
        .order_by(Order.confirmed_at.asc()).all()
    return api_success([o.to_dict() for o in orders])


@app.route('/api/staff/orders/<int:order_id>/status', methods=['PUT'])
@csrf.exempt
@employee_token_required('dapur', 'pelayan', 'kasir')
def api_staff_update_order_status(order_id):
    try:
        order = db.session.get(Order, order_id)
        if not order:
            return api_error('Pesanan tidak ditemukan', 404)
        status = get_json_body().get('status')
        if status not in STAFF_ORDER_STATUSES:
            return api_error('Status tidak valid', 400)
        try:
            order_flow.transition(order, status, actor=g.employee.full_name)
        except InvalidTransition as e:
            return api_error(str(e), 400)
        db.session.commit()
        return api_success(order.to_dict(include_items=False))
    except Exception as e:
        db.session.rollback()
        app.logger.exception("Failed to update order status")
        return api_error(str(e), 500)


if __name__ == '__main__':
    os.makedirs(app.config['UPLOAD_FOLDER'], exist_ok=True)

    # Initialize database
    init_db()

    # Use debug mode only in development (controlled by environment variable)
    debug_mode = os.environ.get('FLASK_DEBUG', 'false').lower() == 'true'
    app.run(debug=debug_mode, host='0.0.0.0', port=8000, use_reloader=debug_mode)
