"""Order lifecycle: every change to an order's status or payment state goes through here."""
from datetime import timedelta

from utils import as_utc, isoformat, round_half_up, utc_now

ORDER_STATUSES = (
    'pending_payment', 'payment_verification', 'confirmed', 'preparing',
    'ready', 'delivered', 'completed', 'cancelled',
)
PAYMENT_STATUSES = ('pending', 'processing', 'verified', 'failed', 'refunded')
PAYMENT_METHODS = ('cash', 'qris', 'transfer')

TRANSITIONS = {
    'pending_payment': {'payment_verification', 'confirmed', 'cancelled'},
    'payment_verification': {'confirmed', 'pending_payment', 'cancelled'},
    'confirmed': {'preparing', 'cancelled'},
    'preparing': {'ready', 'cancelled'},
    'ready': {'delivered', 'completed'},
    'delivered': {'completed'},
    'completed': set(),
    'cancelled': set(),
}

TIMESTAMP_FIELDS = {
    'confirmed': 'confirmed_at',
    'preparing': 'preparing_at',
    'ready': 'ready_at',
    'delivered': 'delivered_at',
    'completed': 'completed_at',
    'cancelled': 'cancelled_at',
}

PAID_STATUSES = ('confirmed', 'preparing', 'ready', 'delivered', 'completed')


class InvalidTransition(ValueError):
    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f'Status pesanan tidak dapat diubah dari {current} ke {target}')


class PaymentError(ValueError):
    pass


def can_transition(current, target):
    return target in TRANSITIONS.get(current, set())


def allowed_transitions(current):
    return sorted(TRANSITIONS.get(current, set()))


def transition(order, new_status, actor=None):
    """Move ``order`` to ``new_status`` and apply the side effects of that step.

    ``actor`` is recorded as the payment verifier when the order is confirmed.
    """
    if new_status not in ORDER_STATUSES:
        raise InvalidTransition(order.status, new_status)
    if not can_transition(order.status, new_status):
        raise InvalidTransition(order.status, new_status)

    now = utc_now()
    order.status = new_status

    field = TIMESTAMP_FIELDS.get(new_status)
    if field:
        setattr(order, field, now)

    if new_status == 'payment_verification':
        order.payment_status = 'processing'
    elif new_status == 'confirmed':
        order.payment_status = 'verified'
        order.payment_verified_at = now
        order.payment_verified_by = actor
    elif new_status == 'pending_payment':
        order.payment_status = 'pending'
        order.payment_verified_at = None
        order.payment_verified_by = None
        order.confirmed_at = None

    if new_status in ('completed', 'cancelled') and order.table is not None:
        order.table.status = 'available'
        order.table.session_id = None
        order.table.occupied_since = None

    return order


def change_payment_method(order, method):
    if method not in PAYMENT_METHODS:
        raise PaymentError('Metode pembayaran tidak valid')
    if order.payment_status == 'verified':
        raise PaymentError('Order sudah dibayar')
    if order.status == 'cancelled':
        raise PaymentError('Order sudah dibatalkan')
    if order.status == 'payment_verification':
        raise PaymentError('Pembayaran sedang diverifikasi kasir')
    order.payment_method = method
    order.payment_status = 'pending'
    return order


def start_payment(order, method):
    """Attach a payment method to an unpaid order; non-cash payments await a proof."""
    change_payment_method(order, method)
    if method != 'cash':
        order.payment_status = 'processing'
    return order


def confirm_payment(order, verifier):
    return transition(order, 'confirmed', actor=verifier)


def reject_payment(order):
    """Send an order back to waiting for payment after a rejected proof."""
    if order.status == 'payment_verification':
        return transition(order, 'pending_payment')
    if order.status != 'pending_payment':
        raise InvalidTransition(order.status, 'pending_payment')
    order.payment_status = 'pending'
    return order


def calculate_totals(subtotal, discount=0, tax_rate=0.10, service_rate=0.05, minimum=1000):
    tax = round_half_up(subtotal * tax_rate)
    service_fee = round_half_up(subtotal * service_rate)
    total = max(minimum, subtotal + tax + service_fee - discount)
    return {
        'subtotal': subtotal,
        'tax_amount': tax,
        'service_fee': service_fee,
        'discount_amount': discount,
        'total_amount': total,
    }


def estimated_completion(order, minutes=30):
    if not order.created_at:
        return None
    return isoformat(as_utc(order.created_at) + timedelta(minutes=minutes))


def _step(label, completed, timestamp=None):
    step = {'step': label, 'completed': completed}
    if completed:
        step['timestamp'] = isoformat(timestamp)
    return step


def progress_steps(order):
    status = order.status
    steps = [_step('Pesanan Diterima', True, order.created_at)]

    if status == 'pending_payment':
        steps.append(_step('Menunggu Pembayaran', False))
    elif status == 'payment_verification':
        steps.append(_step('Menunggu Verifikasi Pembayaran', False))
    elif status != 'cancelled' or order.payment_verified_at:
        steps.append(_step('Pembayaran Diverifikasi', True, order.payment_verified_at))

    if status in PAID_STATUSES:
        steps.append(_step('Pesanan Dikonfirmasi Dapur', True, order.confirmed_at))
    elif status == 'payment_verification':
        steps.append(_step('Menunggu Konfirmasi Dapur', False))

    if status in ('preparing', 'ready', 'delivered', 'completed'):
        steps.append(_step('Sedang Diproses di Dapur', True, order.preparing_at))
    elif status == 'confirmed':
        steps.append(_step('Menunggu Diproses di Dapur', False))

    if status in ('ready', 'delivered', 'completed'):
        steps.append(_step('Siap Disajikan', True, order.ready_at))
    elif status == 'preparing':
        steps.append(_step('Akan Segera Siap', False))

    if status in ('delivered', 'completed'):
        steps.append(_step('Diantar ke Meja', True, order.delivered_at))
    elif status == 'ready':
        steps.append(_step('Menunggu Diantar', False))

    if status == 'completed':
        steps.append(_step('Pesanan Selesai', True, order.completed_at))
    elif status == 'delivered':
        steps.append(_step('Menunggu Konfirmasi Selesai', False))

    if status == 'cancelled':
        steps.append(_step('Pesanan Dibatalkan', True, order.cancelled_at))

    return steps


def payment_overview(transaction):
    """Customer facing summary of where a payment stands."""
    order = transaction.order
    status, message, next_action = 'pending', 'Menunggu pembayaran', None

    if transaction.status == 'success' and order is not None and order.payment_status == 'verified':
        status, message = 'completed', 'Pembayaran berhasil diverifikasi'
    elif transaction.status == 'pending' and transaction.proof_image_url:
        status, message = 'pending_verification', 'Menunggu verifikasi dari kasir'
    elif transaction.status == 'processing':
        status, message = 'processing', 'Pembayaran sedang diproses'
    elif transaction.status == 'failed':
        status, message = 'failed', 'Pembayaran gagal'
        next_action = 'Silakan coba lagi atau hubungi kasir'
    elif transaction.status == 'expired':
        status, message = 'expired', 'Pembayaran kadaluarsa'
        next_action = 'Silakan buat pembayaran baru'
    elif transaction.payment_method == 'transfer':
        status, message = 'waiting_proof', 'Menunggu upload bukti pembayaran'
        next_action = 'Upload bukti transfer'
    elif transaction.payment_method == 'qris':
        status, message = 'waiting_payment', 'Menunggu pembayaran QRIS'
        next_action = 'Scan QR code dengan aplikasi e-wallet'
    elif transaction.payment_method == 'cash':
        status, message = 'waiting_payment', 'Menunggu pembayaran tunai'
        next_action = 'Bayar ke kasir'

    return {
        'transaction_id': transaction.id,
        'status': status,
        'message': message,
        'next_action': next_action,
        'payment_method': transaction.payment_method,
        'amount': transaction.amount,
        'created_at': isoformat(transaction.created_at),
        'verified_at': isoformat(transaction.verified_at),
        'proof_url': transaction.proof_image_url,
        'order': {
            'id': order.id,
            'order_number': order.order_number,
            'status': order.status,
            'payment_status': order.payment_status,
            'total_amount': order.total_amount,
        } if order is not None else None,
    }
