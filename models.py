import json

from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from utils import utc_now, as_utc, isoformat

db = SQLAlchemy()

# Association table for User-Role many-to-many relationship
user_roles = db.Table('user_roles',
    db.Column('user_id', db.Integer, db.ForeignKey('users.id'), primary_key=True),
    db.Column('role_id', db.Integer, db.ForeignKey('roles.id'), primary_key=True)
)


class Role(db.Model):
    __tablename__ = 'roles'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), unique=True, nullable=False)  # owner, manager
    description = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=utc_now)

    def __repr__(self):
        return f'<Role {self.name}>'


class User(UserMixin, db.Model):
    """Owner dashboard account"""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    full_name = db.Column(db.String(120))
    phone = db.Column(db.String(20))
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now)
    last_login = db.Column(db.DateTime)

    roles = db.relationship('Role', secondary=user_roles,
                            backref=db.backref('users', lazy='dynamic'))

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def has_role(self, role_name):
        return any(r.name == role_name for r in self.roles)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'email': self.email,
            'full_name': self.full_name,
            'phone': self.phone,
            'roles': [r.name for r in self.roles],
            'last_login': isoformat(self.last_login),
        }

    def __repr__(self):
        return f'<User {self.username}>'


class Employee(db.Model):
    __tablename__ = 'employees'

    id = db.Column(db.Integer, primary_key=True)
    employee_code = db.Column(db.String(20), unique=True, nullable=False)
    username = db.Column(db.String(80), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    full_name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(120))
    phone = db.Column(db.String(20))
    position = db.Column(db.String(20), nullable=False)  # kasir, dapur, pelayan, stok
    salary_type = db.Column(db.String(20), default='monthly')  # monthly, daily, hourly
    salary_amount = db.Column(db.Integer, default=0)
    overtime_rate = db.Column(db.Float, default=1.5)
    hire_date = db.Column(db.Date)
    telegram_chat_id = db.Column(db.String(50))
    telegram_notifications = db.Column(db.Boolean, default=False)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now)
    last_login = db.Column(db.DateTime)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'employee_code': self.employee_code,
            'username': self.username,
            'full_name': self.full_name,
            'email': self.email,
            'phone': self.phone,
            'position': self.position,
            'salary_type': self.salary_type,
            'salary_amount': self.salary_amount,
            'overtime_rate': self.overtime_rate,
            'hire_date': self.hire_date.isoformat() if self.hire_date else None,
            'telegram_chat_id': self.telegram_chat_id,
            'telegram_notifications': self.telegram_notifications,
            'is_active': self.is_active,
            'created_at': isoformat(self.created_at),
        }

    def __repr__(self):
        return f'<Employee {self.username}>'


class Table(db.Model):
    __tablename__ = 'tables'

    id = db.Column(db.Integer, primary_key=True)
    table_number = db.Column(db.String(20), unique=True, nullable=False)
    capacity = db.Column(db.Integer, default=4)
    location = db.Column(db.String(50))  # indoor, outdoor, vip
    status = db.Column(db.String(20), default='available')  # available, occupied, reserved, maintenance
    session_id = db.Column(db.String(100))
    occupied_since = db.Column(db.DateTime)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=utc_now)

    orders = db.relationship('Order', backref='table', lazy='dynamic')

    def to_dict(self):
        return {
            'id': self.id,
            'table_number': self.table_number,
            'capacity': self.capacity,
            'location': self.location,
            'status': self.status,
            'session_id': self.session_id,
            'occupied_since': isoformat(self.occupied_since),
            'is_active': self.is_active,
        }

    def __repr__(self):
        return f'<Table {self.table_number}>'


class MenuItem(db.Model):
    __tablename__ = 'menu_items'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    category = db.Column(db.String(50), nullable=False)  # coffee, tea, food, dessert, beverage, specialty
    base_price = db.Column(db.Integer, nullable=False)
    cost_price = db.Column(db.Integer, default=0)
    image_url = db.Column(db.String(500))
    preparation_time = db.Column(db.Integer, default=10)  # minutes
    is_available = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'category': self.category,
            'base_price': self.base_price,
            'cost_price': self.cost_price,
            'image_url': self.image_url,
            'preparation_time': self.preparation_time,
            'is_available': self.is_available,
        }

    def __repr__(self):
        return f'<MenuItem {self.name}>'


class Order(db.Model):
    __tablename__ = 'orders'

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(50), unique=True, nullable=False)
    table_id = db.Column(db.Integer, db.ForeignKey('tables.id'))
    customer_name = db.Column(db.String(100), nullable=False)
    customer_phone = db.Column(db.String(20), nullable=False)
    customer_email = db.Column(db.String(120))
    # pending_payment, payment_verification, confirmed, preparing, ready, delivered, completed, cancelled
    status = db.Column(db.String(30), default='pending_payment')
    payment_method = db.Column(db.String(20))  # cash, qris, transfer
    payment_status = db.Column(db.String(20), default='pending')  # pending, processing, verified, failed, refunded
    payment_proof_url = db.Column(db.String(500))
    subtotal = db.Column(db.Integer, default=0)
    tax_amount = db.Column(db.Integer, default=0)
    service_fee = db.Column(db.Integer, default=0)
    discount_amount = db.Column(db.Integer, default=0)
    total_amount = db.Column(db.Integer, default=0)
    promo_code = db.Column(db.String(50))
    promo_id = db.Column(db.Integer, db.ForeignKey('promos.id'))
    special_instructions = db.Column(db.Text)
    session_id = db.Column(db.String(100))
    rated = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now)
    payment_verified_at = db.Column(db.DateTime)
    payment_verified_by = db.Column(db.String(100))
    confirmed_at = db.Column(db.DateTime)
    preparing_at = db.Column(db.DateTime)
    ready_at = db.Column(db.DateTime)
    delivered_at = db.Column(db.DateTime)
    completed_at = db.Column(db.DateTime)
    cancelled_at = db.Column(db.DateTime)

    items = db.relationship('OrderItem', backref='order', lazy='dynamic', cascade='all, delete-orphan')
    transactions = db.relationship('PaymentTransaction', backref='order', lazy='dynamic',
                                   cascade='all, delete-orphan')

    def to_dict(self, include_items=True):
        data = {
            'id': self.id,
            'order_number': self.order_number,
            'table_id': self.table_id,
            'table_number': self.table.table_number if self.table else None,
            'customer_name': self.customer_name,
            'customer_phone': self.customer_phone,
            'customer_email': self.customer_email,
            'status': self.status,
            'payment_method': self.payment_method,
            'payment_status': self.payment_status,
            'payment_proof_url': self.payment_proof_url,
            'subtotal': self.subtotal,
            'tax_amount': self.tax_amount,
            'service_fee': self.service_fee,
            'discount_amount': self.discount_amount,
            'total_amount': self.total_amount,
            'promo_code': self.promo_code,
            'special_instructions': self.special_instructions,
            'rated': self.rated,
            'created_at': isoformat(self.created_at),
            'payment_verified_at': isoformat(self.payment_verified_at),
            'payment_verified_by': self.payment_verified_by,
            'confirmed_at': isoformat(self.confirmed_at),
            'preparing_at': isoformat(self.preparing_at),
            'ready_at': isoformat(self.ready_at),
            'delivered_at': isoformat(self.delivered_at),
            'completed_at': isoformat(self.completed_at),
            'cancelled_at': isoformat(self.cancelled_at),
        }
        if include_items:
            data['items'] = [item.to_dict() for item in self.items]
        return data

    def __repr__(self):
        return f'<Order {self.order_number}>'


class OrderItem(db.Model):
    __tablename__ = 'order_items'

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=False)
    menu_item_id = db.Column(db.Integer, db.ForeignKey('menu_items.id'))
    name = db.Column(db.String(200), nullable=False)
    unit_price = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, default=1)
    total_price = db.Column(db.Integer, nullable=False)
    customizations = db.Column(db.Text)  # JSON: size, sugar, ice, extra shot...
    special_instructions = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=utc_now)

    menu_item = db.relationship('MenuItem')

    def to_dict(self):
        return {
            'id': self.id,
            'menu_item_id': self.menu_item_id,
            'name': self.name,
            'unit_price': self.unit_price,
            'quantity': self.quantity,
            'total_price': self.total_price,
            'customizations': json.loads(self.customizations) if self.customizations else None,
            'special_instructions': self.special_instructions,
        }

    def __repr__(self):
        return f'<OrderItem {self.name} x{self.quantity}>'


class PaymentTransaction(db.Model):
    __tablename__ = 'payment_transactions'

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=False)
    payment_method = db.Column(db.String(20), nullable=False)  # cash, qris, transfer
    amount = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(20), default='pending')  # pending, processing, success, failed, expired
    reference_number = db.Column(db.String(100))
    proof_image_url = db.Column(db.String(500))
    cash_received = db.Column(db.Integer)
    change_amount = db.Column(db.Integer)
    notes = db.Column(db.Text)
    expires_at = db.Column(db.DateTime)
    verified_at = db.Column(db.DateTime)
    verified_by = db.Column(db.String(100))
    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now)

    def to_dict(self):
        return {
            'id': self.id,
            'order_id': self.order_id,
            'payment_method': self.payment_method,
            'amount': self.amount,
            'status': self.status,
            'reference_number': self.reference_number,
            'proof_image_url': self.proof_image_url,
            'cash_received': self.cash_received,
            'change_amount': self.change_amount,
            'notes': self.notes,
            'expires_at': isoformat(self.expires_at),
            'verified_at': isoformat(self.verified_at),
            'verified_by': self.verified_by,
            'created_at': isoformat(self.created_at),
        }

    def __repr__(self):
        return f'<PaymentTransaction {self.id} - {self.status}>'


class Promo(db.Model):
    """Discount and promo model"""
    __tablename__ = 'promos'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    code = db.Column(db.String(50), unique=True, nullable=False)
    description = db.Column(db.Text)
    discount_type = db.Column(db.String(20), default='percentage')  # percentage, fixed_amount
    discount_value = db.Column(db.Integer, nullable=False)
    min_purchase = db.Column(db.Integer, default=0)
    max_discount = db.Column(db.Integer, nullable=True)  # cap for percentage promos
    usage_limit = db.Column(db.Integer, nullable=True)  # null = unlimited
    current_uses = db.Column(db.Integer, default=0)
    start_date = db.Column(db.DateTime, nullable=True)
    end_date = db.Column(db.DateTime, nullable=True)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now)

    def is_valid(self, subtotal=0):
        """Check if promo is valid for the given subtotal"""
        now = utc_now()

        if not self.is_active:
            return False, "Promo tidak aktif"

        if self.start_date and now < as_utc(self.start_date):
            return False, "Promo belum dimulai"

        if self.end_date and now > as_utc(self.end_date):
            return False, "Promo sudah berakhir"

        if self.usage_limit and (self.current_uses or 0) >= self.usage_limit:
            return False, "Promo sudah mencapai batas penggunaan"

        if subtotal < (self.min_purchase or 0):
            return False, f"Minimum pembelian Rp {self.min_purchase:,}".replace(",", ".")

        return True, "Valid"

    def calculate_discount(self, subtotal):
        """Calculate discount amount for given subtotal"""
        if self.discount_type == 'percentage':
            discount = int(subtotal * self.discount_value / 100)
            if self.max_discount and discount > self.max_discount:
                discount = self.max_discount
            return discount
        return min(self.discount_value, subtotal)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'code': self.code,
            'description': self.description,
            'discount_type': self.discount_type,
            'discount_value': self.discount_value,
            'min_purchase': self.min_purchase,
            'max_discount': self.max_discount,
            'usage_limit': self.usage_limit,
            'current_uses': self.current_uses,
            'start_date': isoformat(self.start_date),
            'end_date': isoformat(self.end_date),
            'is_active': self.is_active,
        }

    def __repr__(self):
        return f'<Promo {self.code}>'


class Rating(db.Model):
    __tablename__ = 'ratings'

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), unique=True, nullable=False)
    rating = db.Column(db.Integer, nullable=False)
    comment = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=utc_now)

    order = db.relationship('Order', backref=db.backref('rating', uselist=False))

    def to_dict(self):
        return {
            'id': self.id,
            'order_id': self.order_id,
            'rating': self.rating,
            'comment': self.comment,
            'created_at': isoformat(self.created_at),
        }


class ShiftTemplate(db.Model):
    __tablename__ = 'shift_templates'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)
    break_duration = db.Column(db.Integer, default=60)  # minutes
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=utc_now)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'start_time': self.start_time.strftime('%H:%M'),
            'end_time': self.end_time.strftime('%H:%M'),
            'break_duration': self.break_duration,
            'is_active': self.is_active,
        }


class ShiftSchedule(db.Model):
    __tablename__ = 'shift_schedules'
    __table_args__ = (db.UniqueConstraint('employee_id', 'date', name='uq_schedule_employee_date'),)

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey('employees.id'), nullable=False)
    date = db.Column(db.Date, nullable=False)
    shift_template_id = db.Column(db.Integer, db.ForeignKey('shift_templates.id'))
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)
    break_duration = db.Column(db.Integer, default=60)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=utc_now)

    employee = db.relationship('Employee', backref=db.backref('schedules', lazy='dynamic'))
    template = db.relationship('ShiftTemplate')

    def to_dict(self):
        return {
            'id': self.id,
            'employee_id': self.employee_id,
            'employee_name': self.employee.full_name if self.employee else None,
            'date': self.date.isoformat(),
            'shift_template_id': self.shift_template_id,
            'shift_name': self.template.name if self.template else None,
            'start_time': self.start_time.strftime('%H:%M'),
            'end_time': self.end_time.strftime('%H:%M'),
            'break_duration': self.break_duration,
            'notes': self.notes,
        }


class Attendance(db.Model):
    __tablename__ = 'attendance'
    __table_args__ = (db.UniqueConstraint('employee_id', 'date', name='uq_attendance_employee_date'),)

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey('employees.id'), nullable=False)
    date = db.Column(db.Date, nullable=False)
    shift_schedule_id = db.Column(db.Integer, db.ForeignKey('shift_schedules.id'))
    clock_in = db.Column(db.DateTime)
    clock_out = db.Column(db.DateTime)
    clock_in_latitude = db.Column(db.Float)
    clock_in_longitude = db.Column(db.Float)
    clock_in_distance = db.Column(db.Float)
    clock_out_latitude = db.Column(db.Float)
    clock_out_longitude = db.Column(db.Float)
    clock_out_distance = db.Column(db.Float)
    status = db.Column(db.String(20), default='present')  # present, late, absent, half_day
    late_minutes = db.Column(db.Integer, default=0)
    early_leave_minutes = db.Column(db.Integer, default=0)
    total_hours = db.Column(db.Float, default=0)
    regular_hours = db.Column(db.Float, default=0)
    overtime_hours = db.Column(db.Float, default=0)
    overtime_approved = db.Column(db.Boolean, default=False)
    overtime_needs_approval = db.Column(db.Boolean, default=False)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now)

    employee = db.relationship('Employee', backref=db.backref('attendance_records', lazy='dynamic'))
    schedule = db.relationship('ShiftSchedule')

    def to_dict(self):
        return {
            'id': self.id,
            'employee_id': self.employee_id,
            'employee_name': self.employee.full_name if self.employee else None,
            'date': self.date.isoformat(),
            'clock_in': isoformat(self.clock_in),
            'clock_out': isoformat(self.clock_out),
            'clock_in_distance': self.clock_in_distance,
            'clock_out_distance': self.clock_out_distance,
            'status': self.status,
            'late_minutes': self.late_minutes,
            'early_leave_minutes': self.early_leave_minutes,
            'total_hours': self.total_hours,
            'regular_hours': self.regular_hours,
            'overtime_hours': self.overtime_hours,
            'overtime_approved': self.overtime_approved,
            'overtime_needs_approval': self.overtime_needs_approval,
            'notes': self.notes,
        }


class OvertimeRequest(db.Model):
    __tablename__ = 'overtime_requests'

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey('employees.id'), nullable=False)
    date = db.Column(db.Date, nullable=False)
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)
    hours = db.Column(db.Float, nullable=False)
    reason = db.Column(db.Text, nullable=False)
    status = db.Column(db.String(20), default='pending')  # pending, approved, rejected, cancelled
    admin_notes = db.Column(db.Text)
    reviewed_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    reviewed_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=utc_now)

    employee = db.relationship('Employee', backref=db.backref('overtime_requests', lazy='dynamic'))

    def to_dict(self):
        return {
            'id': self.id,
            'employee_id': self.employee_id,
            'employee_name': self.employee.full_name if self.employee else None,
            'date': self.date.isoformat(),
            'start_time': self.start_time.strftime('%H:%M'),
            'end_time': self.end_time.strftime('%H:%M'),
            'hours': self.hours,
            'reason': self.reason,
            'status': self.status,
            'admin_notes': self.admin_notes,
            'reviewed_at': isoformat(self.reviewed_at),
            'created_at': isoformat(self.created_at),
        }


class Payroll(db.Model):
    __tablename__ = 'payroll'
    __table_args__ = (db.UniqueConstraint('employee_id', 'period_month', 'period_year',
                                          name='uq_payroll_employee_period'),)

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey('employees.id'), nullable=False)
    period_month = db.Column(db.Integer, nullable=False)
    period_year = db.Column(db.Integer, nullable=False)
    period_start = db.Column(db.Date, nullable=False)
    period_end = db.Column(db.Date, nullable=False)
    working_days = db.Column(db.Integer, default=0)
    present_days = db.Column(db.Integer, default=0)
    late_days = db.Column(db.Integer, default=0)
    absent_days = db.Column(db.Integer, default=0)
    regular_hours = db.Column(db.Float, default=0)
    overtime_hours = db.Column(db.Float, default=0)
    basic_salary = db.Column(db.Integer, default=0)
    overtime_pay = db.Column(db.Integer, default=0)
    gross_salary = db.Column(db.Integer, default=0)
    deductions = db.Column(db.Integer, default=0)
    net_salary = db.Column(db.Integer, default=0)
    status = db.Column(db.String(20), default='pending')  # pending, paid
    payment_date = db.Column(db.Date)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=utc_now)
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now)

    employee = db.relationship('Employee', backref=db.backref('payrolls', lazy='dynamic'))

    def to_dict(self):
        return {
            'id': self.id,
            'employee_id': self.employee_id,
            'employee_name': self.employee.full_name if self.employee else None,
            'period_month': self.period_month,
            'period_year': self.period_year,
            'period_start': self.period_start.isoformat(),
            'period_end': self.period_end.isoformat(),
            'working_days': self.working_days,
            'present_days': self.present_days,
            'late_days': self.late_days,
            'absent_days': self.absent_days,
            'regular_hours': self.regular_hours,
            'overtime_hours': self.overtime_hours,
            'basic_salary': self.basic_salary,
            'overtime_pay': self.overtime_pay,
            'gross_salary': self.gross_salary,
            'deductions': self.deductions,
            'net_salary': self.net_salary,
            'status': self.status,
            'payment_date': self.payment_date.isoformat() if self.payment_date else None,
            'notes': self.notes,
        }


class SystemSetting(db.Model):
    __tablename__ = 'system_settings'
    __table_args__ = (db.UniqueConstraint('category', 'key', name='uq_setting_category_key'),)

    id = db.Column(db.Integer, primary_key=True)
    category = db.Column(db.String(50), nullable=False)
    key = db.Column(db.String(100), nullable=False)
    value = db.Column(db.Text)  # JSON
    description = db.Column(db.String(255))
    updated_at = db.Column(db.DateTime, default=utc_now, onupdate=utc_now)

    def get_value(self):
        return json.loads(self.value) if self.value else None

    def to_dict(self):
        return {
            'category': self.category,
            'key': self.key,
            'value': self.get_value(),
            'description': self.description,
            'updated_at': isoformat(self.updated_at),
        }

    def __repr__(self):
        return f'<SystemSetting {self.category}.{self.key}>'


class CashReconciliation(db.Model):
    __tablename__ = 'cash_reconciliation'

    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.Date, unique=True, nullable=False)
    starting_cash = db.Column(db.Integer, default=0)
    system_cash_sales = db.Column(db.Integer, default=0)
    expected_cash = db.Column(db.Integer, default=0)
    actual_cash = db.Column(db.Integer, default=0)
    variance = db.Column(db.Integer, default=0)
    variance_percentage = db.Column(db.Float, default=0)
    denominations = db.Column(db.Text)  # JSON
    status = db.Column(db.String(20), default='balanced')  # balanced, pending_review, discrepancy
    notes = db.Column(db.Text)
    reconciled_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    created_at = db.Column(db.DateTime, default=utc_now)

    def to_dict(self):
        return {
            'id': self.id,
            'date': self.date.isoformat(),
            'starting_cash': self.starting_cash,
            'system_cash_sales': self.system_cash_sales,
            'expected_cash': self.expected_cash,
            'actual_cash': self.actual_cash,
            'variance': self.variance,
            'variance_percentage': self.variance_percentage,
            'denominations': json.loads(self.denominations) if self.denominations else None,
            'status': self.status,
            'notes': self.notes,
            'created_at': isoformat(self.created_at),
        }


class Notification(db.Model):
    """In-app notification for the owner dashboard"""
    __tablename__ = 'notifications'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)  # null = broadcast to all
    type = db.Column(db.String(50), nullable=False)  # order_new, payment_proof, overtime_request
    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text)
    data = db.Column(db.Text)  # JSON data for additional info
    is_read = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=utc_now)
    read_at = db.Column(db.DateTime, nullable=True)

    user = db.relationship('User', backref=db.backref('notifications', lazy='dynamic'))

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'type': self.type,
            'title': self.title,
            'message': self.message,
            'data': json.loads(self.data) if self.data else None,
            'is_read': self.is_read,
            'created_at': isoformat(self.created_at),
            'read_at': isoformat(self.read_at),
        }

    def __repr__(self):
        return f'<Notification {self.id} - {self.type}>'
