"""End of day cash drawer reconciliation."""

DENOMINATIONS = (100000, 50000, 20000, 10000, 5000, 2000, 1000, 500, 200, 100)


def count_denominations(breakdown):
    """Total a ``{denomination: count}`` mapping of notes and coins."""
    total = 0
    for denomination, count in (breakdown or {}).items():
        value = int(denomination)
        if value not in DENOMINATIONS:
            raise ValueError(f'Pecahan tidak dikenal: {denomination}')
        count = int(count)
        if count < 0:
            raise ValueError('Jumlah lembar tidak boleh negatif')
        total += value * count
    return total


def reconcile(starting_cash, system_cash_sales, actual_cash, threshold=10000):
    expected = starting_cash + system_cash_sales
    variance = actual_cash - expected
    percentage = round(variance / expected * 100, 2) if expected else 0

    if variance == 0:
        status = 'balanced'
    elif abs(variance) <= threshold:
        status = 'pending_review'
    else:
        status = 'discrepancy'

    return {
        'starting_cash': starting_cash,
        'system_cash_sales': system_cash_sales,
        'expected_cash': expected,
        'actual_cash': actual_cash,
        'variance': variance,
        'variance_percentage': percentage,
        'status': status,
    }
