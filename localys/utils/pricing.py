import math
from typing import Iterable, NamedTuple, Optional


# Display heuristic constants, tuned by product.
LOW_PRICE_CUTOFF = 70
LOW_PRICE_STEP = 10
HIGH_PRICE_STEP = 25
LOW_PRICE_SPREAD = 0.35
HIGH_PRICE_SPREAD = 0.30


class PriceRange(NamedTuple):
    min: float
    max: float


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def compute_rounded_price_range(prices: Iterable[float]) -> Optional[PriceRange]:
    """
    Turn a business's item prices into a short "$min - $max" band.

    Cheap menus are bucketed by 10, pricier ones by 25, and the band is widened
    one step when prices are spread out. The lower bound is then pulled up to
    at least half of the upper bound so near-uniform menus don't show an
    implausibly wide band.
    """
    prices = list(prices)
    if not prices:
        return None

    avg = sum(prices) / len(prices)
    variance = sum((price - avg) ** 2 for price in prices) / len(prices)
    std_dev = math.sqrt(variance)

    if avg < LOW_PRICE_CUTOFF:
        min_price = math.floor(avg / LOW_PRICE_STEP) * LOW_PRICE_STEP
        max_price = min_price + LOW_PRICE_STEP
        if std_dev > avg * LOW_PRICE_SPREAD:
            max_price += LOW_PRICE_STEP
    else:
        min_price = _round_half_up(avg / HIGH_PRICE_STEP) * HIGH_PRICE_STEP
        max_price = min_price + HIGH_PRICE_STEP
        if std_dev > avg * HIGH_PRICE_SPREAD:
            max_price += HIGH_PRICE_STEP

    if min_price < 0:
        min_price = 0
    if max_price <= min_price:
        max_price = min_price + LOW_PRICE_STEP

    tight_lower_bound = max_price / 2
    if min_price < tight_lower_bound:
        step = 10 if max_price >= 100 else 5
        min_price = math.ceil(tight_lower_bound / step) * step
        if min_price >= max_price:
            min_price = max(0, max_price - step)

    return PriceRange(min=min_price, max=max_price)


def compute_average_price(price_range: Optional[PriceRange]) -> Optional[int]:
    if price_range is None:
        return None
    return _round_half_up((price_range.min + price_range.max) / 2)


def ranges_overlap(range_min: float, range_max: float, filter_min: float, filter_max: float) -> bool:
    return not (range_max < filter_min or range_min > filter_max)
