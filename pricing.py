"""Menu price suggestion from ingredient costs, preparation time and a market range.

The market data is simulated around the cost-based price unless the caller
supplies competitor prices of its own.
"""
import math

from utils import format_rupiah

MIN_MARGIN = 0.60
MAX_MARGIN = 0.70
DEFAULT_MARGIN = 0.65
LABOR_COST_PER_MINUTE = 500
OVERHEAD_RATE = 0.15
ROUNDING_STEP = 500
DEFAULT_DEMAND_INDEX = 0.8

CATEGORY_MULTIPLIERS = {
    'coffee': 1.2,
    'tea': 1.1,
    'food': 1.0,
    'dessert': 1.3,
    'beverage': 1.1,
    'specialty': 1.4,
}

SIMULATED_COMPETITOR_FACTORS = (0.9, 1.1, 1.2, 0.95, 1.15)


def round_to_step(value, step=ROUNDING_STEP):
    return int(math.floor(value / step + 0.5)) * step


def ingredient_cost(ingredients):
    """Sum of quantity * cost_per_unit over ``[{'quantity', 'cost_per_unit'}, ...]``."""
    total = 0.0
    for item in ingredients:
        quantity = float(item.get('quantity') or 0)
        unit_cost = float(item.get('cost_per_unit') or 0)
        if quantity < 0 or unit_cost < 0:
            raise ValueError('Jumlah dan harga bahan tidak boleh negatif')
        total += quantity * unit_cost
    return total


def category_multiplier(category):
    return CATEGORY_MULTIPLIERS.get((category or '').lower(), 1.0)


def simulated_market(base_price, category):
    multiplier = category_multiplier(category)
    return {
        'category_average': base_price * multiplier * 1.1,
        'competitor_prices': [base_price * f for f in SIMULATED_COMPETITOR_FACTORS],
        'demand_index': DEFAULT_DEMAND_INDEX,
    }


def clamp_to_market(price, competitor_min, competitor_max):
    """Clamp into the market band, snapping to a 500 step that stays inside it."""
    low = competitor_min * 0.9
    high = competitor_max * 1.1
    price = min(max(price, low), high)

    step_low = math.ceil(low / ROUNDING_STEP) * ROUNDING_STEP
    step_high = math.floor(high / ROUNDING_STEP) * ROUNDING_STEP
    if step_low > step_high:
        # band narrower than one step
        return price
    return min(max(round_to_step(price), step_low), step_high)


def suggest_price(ingredients, preparation_minutes, category, current_price=None,
                  competitor_prices=None, demand_index=None):
    if preparation_minutes is None or preparation_minutes < 0:
        raise ValueError('Waktu persiapan tidak boleh negatif')

    ingredients = ingredients or []
    ing_cost = ingredient_cost(ingredients)
    labor_cost = preparation_minutes * LABOR_COST_PER_MINUTE
    overhead_cost = ing_cost * OVERHEAD_RATE
    total_cost = ing_cost + labor_cost + overhead_cost
    if total_cost <= 0:
        raise ValueError('Total biaya harus lebih dari 0')

    base_price = total_cost / (1 - DEFAULT_MARGIN)
    market = simulated_market(base_price, category)
    if competitor_prices:
        if any(float(p) <= 0 for p in competitor_prices):
            raise ValueError('Harga kompetitor harus lebih dari 0')
        market['competitor_prices'] = [float(p) for p in competitor_prices]
        market['category_average'] = sum(market['competitor_prices']) / len(competitor_prices)
    if demand_index is not None:
        market['demand_index'] = float(demand_index)

    multiplier = category_multiplier(category)
    demand_adjustment = 1 + (market['demand_index'] - 0.5) * 0.2
    price = base_price * multiplier * demand_adjustment

    if (price - total_cost) / price < MIN_MARGIN:
        price = total_cost / (1 - MIN_MARGIN)

    competitor_min = min(market['competitor_prices'])
    competitor_max = max(market['competitor_prices'])
    price = clamp_to_market(price, competitor_min, competitor_max)

    margin = price - total_cost
    margin_percentage = margin / price

    confidence = 0.8
    if not ingredients:
        confidence *= 0.7
    if current_price and abs(price - current_price) / current_price > 0.3:
        confidence *= 0.8
    average = market['category_average']
    if average and abs(price - average) / average < 0.1:
        confidence *= 1.2
    confidence = min(confidence, 1.0)

    reasoning = [
        f'Biaya bahan: {format_rupiah(ing_cost)}',
        f'Biaya tenaga kerja: {format_rupiah(labor_cost)} ({preparation_minutes} menit)',
        f'Biaya overhead: {format_rupiah(overhead_cost)}',
        f'Target margin: {DEFAULT_MARGIN * 100:.0f}%',
    ]
    if multiplier != 1.0:
        reasoning.append(f'Penyesuaian kategori: {(multiplier - 1) * 100:.0f}% untuk {category}')
    if abs(demand_adjustment - 1) > 0.05:
        reasoning.append(f'Penyesuaian permintaan: {(demand_adjustment - 1) * 100:.0f}%')
    reasoning.append(f'Rentang pasar: {format_rupiah(competitor_min)} - {format_rupiah(competitor_max)}')
    if current_price:
        change = (price - current_price) / current_price * 100
        reasoning.append(f"Perubahan dari harga sekarang: {'+' if change > 0 else ''}{change:.1f}%")

    return {
        'suggested_price': price,
        'total_cost': round(total_cost, 2),
        'ingredient_cost': round(ing_cost, 2),
        'labor_cost': labor_cost,
        'overhead_cost': round(overhead_cost, 2),
        'margin': round(margin, 2),
        'margin_percentage': round(margin_percentage, 4),
        'confidence': round(confidence, 2),
        'market_range': {
            'min': round(competitor_min * 0.9, 2),
            'max': round(competitor_max * 1.1, 2),
        },
        'reasoning': reasoning,
        'alternatives': {
            'conservative': round_to_step(total_cost / (1 - MIN_MARGIN)),
            'aggressive': round_to_step(total_cost / (1 - MAX_MARGIN)),
            'premium': round_to_step(price * 1.2),
        },
    }
