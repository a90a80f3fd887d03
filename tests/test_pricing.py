from localys.utils.pricing import (
    PriceRange,
    compute_average_price,
    compute_rounded_price_range,
    ranges_overlap,
)


def test_no_prices_has_no_range():
    assert compute_rounded_price_range([]) is None


def test_single_cheap_price():
    assert compute_rounded_price_range([50]) == PriceRange(50, 60)


def test_spread_out_cheap_prices_widen_the_band():
    # avg 50, std dev 40 > 35% of avg
    assert compute_rounded_price_range([10, 90]) == PriceRange(50, 70)


def test_expensive_prices_bucket_by_25():
    assert compute_rounded_price_range([100]) == PriceRange(100, 125)
    assert compute_rounded_price_range([80, 80]) == PriceRange(75, 100)


def test_lower_bound_pulled_up_to_half_the_upper_bound():
    # avg 5 -> 0..10, then the lower bound is raised to 5
    assert compute_rounded_price_range([5]) == PriceRange(5, 10)


def test_bounds_are_ordered():
    for prices in ([1], [3, 200], [69.99], [70], [12.5, 13, 400]):
        price_range = compute_rounded_price_range(prices)
        assert 0 <= price_range.min < price_range.max


def test_average_price():
    assert compute_average_price(PriceRange(50, 60)) == 55
    assert compute_average_price(PriceRange(75, 100)) == 88
    assert compute_average_price(None) is None


def test_ranges_overlap_is_inclusive():
    assert ranges_overlap(50, 60, 60, 100)
    assert ranges_overlap(50, 60, 0, 50)
    assert not ranges_overlap(50, 60, 0, 40)
    assert not ranges_overlap(50, 60, 61, 100)
