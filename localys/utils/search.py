from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .geo import distance_km, is_valid_coordinate
from .pricing import ranges_overlap


# Maps common food keywords to related terms for broader matching.
SEMANTIC_MAP: Dict[str, List[str]] = {
    # Noodles
    "noodle": ["pho", "ramen", "spaghetti", "pasta", "udon", "soba", "lo mein", "chow mein", "pad thai", "laksa", "noodle"],
    "pho": ["pho", "noodle", "vietnamese", "soup"],
    "ramen": ["ramen", "noodle", "japanese", "soup"],
    "pasta": ["pasta", "spaghetti", "fettuccine", "penne", "linguine", "italian", "noodle"],
    "spaghetti": ["spaghetti", "pasta", "italian", "noodle"],
    "udon": ["udon", "noodle", "japanese", "soup"],
    # Rice
    "rice": ["rice", "fried rice", "biryani", "risotto", "sushi", "poke", "bibimbap"],
    "sushi": ["sushi", "sashimi", "japanese", "rice", "maki", "nigiri"],
    # Bread and baked goods
    "bread": ["bread", "bakery", "baguette", "sourdough", "croissant", "pastry"],
    "pizza": ["pizza", "italian", "flatbread", "calzone"],
    "burger": ["burger", "hamburger", "cheeseburger", "fast food", "american"],
    # Drinks
    "coffee": ["coffee", "espresso", "latte", "cappuccino", "cafe", "mocha", "americano"],
    "tea": ["tea", "boba", "bubble tea", "matcha", "chai", "bbt"],
    "boba": ["boba", "bubble tea", "bbt", "tea", "milk tea", "taro"],
    # Cuisines
    "chinese": ["chinese", "dim sum", "dumpling", "wonton", "szechuan", "cantonese"],
    "japanese": ["japanese", "sushi", "ramen", "udon", "tempura", "teriyaki", "izakaya"],
    "korean": ["korean", "bbq", "bibimbap", "kimchi", "bulgogi", "tteokbokki"],
    "mexican": ["mexican", "taco", "burrito", "quesadilla", "enchilada", "salsa"],
    "italian": ["italian", "pasta", "pizza", "risotto", "gelato", "tiramisu"],
    "indian": ["indian", "curry", "naan", "biryani", "tandoori", "masala"],
    "thai": ["thai", "pad thai", "curry", "tom yum", "satay", "green curry"],
    "vietnamese": ["vietnamese", "pho", "banh mi", "spring roll", "bun"],
    # General
    "dessert": ["dessert", "cake", "ice cream", "pastry", "gelato", "pie", "cookie", "brownie"],
    "breakfast": ["breakfast", "brunch", "pancake", "waffle", "eggs", "bacon", "toast"],
    "seafood": ["seafood", "fish", "shrimp", "lobster", "crab", "oyster", "salmon"],
    "steak": ["steak", "beef", "ribeye", "filet", "grill", "bbq"],
    "salad": ["salad", "healthy", "greens", "bowl", "vegan"],
    "soup": ["soup", "pho", "ramen", "chowder", "stew", "broth", "bisque"],
    "sandwich": ["sandwich", "sub", "wrap", "panini", "deli", "hoagie"],
    "taco": ["taco", "mexican", "burrito", "quesadilla", "taqueria"],
    "curry": ["curry", "indian", "thai", "japanese curry", "masala"],
    "dumpling": ["dumpling", "gyoza", "wonton", "momo", "pierogi", "chinese"],
    "bbq": ["bbq", "barbecue", "grill", "smoked", "ribs", "brisket"],
    "vegan": ["vegan", "plant-based", "vegetarian", "healthy", "salad"],
    "halal": ["halal", "mediterranean", "middle eastern", "kebab"],
    "brunch": ["brunch", "breakfast", "mimosa", "benedict", "french toast"],
}

# Price bounds assumed when a filter side is left open.
DEFAULT_PRICE_FLOOR = 0
DEFAULT_PRICE_CEILING = 1000

VIDEO_RATING_WEIGHT = 10
VIDEO_RECENCY_DIVISOR = 1000
VIDEO_BOOST_WEIGHT = 5
VIDEO_VIEW_CAP = 1000
VIDEO_VIEW_DIVISOR = 100

BUSINESS_RATING_WEIGHT = 20
BUSINESS_REVIEW_CAP = 50
BUSINESS_PROXIMITY_RANGE_KM = 50


def expand_search_query(query: str) -> List[str]:
    """
    Expand a free-text query with related terms.

    The normalized query always comes first; each word that appears in
    SEMANTIC_MAP adds its related terms. Order is first-seen, no duplicates.
    """
    normalized = query.lower().strip()
    terms = {normalized: None}

    for word in normalized.split():
        for term in SEMANTIC_MAP.get(word, []):
            terms.setdefault(term, None)

    return list(terms)


LIKE_ESCAPE = "\\"


def contains_pattern(term: str) -> str:
    """LIKE pattern matching the term literally anywhere in the column"""
    for char in (LIKE_ESCAPE, "%", "_"):
        term = term.replace(char, LIKE_ESCAPE + char)
    return f"%{term}%"


def business_distance(business: Dict[str, Any], latitude: float, longitude: float) -> Optional[float]:
    """
    Distance to the closest known point of a business: its main coordinates or
    any of its branch locations. None when the business has no coordinates.
    """
    candidates = [(business.get("latitude"), business.get("longitude"))]
    for location in business.get("locations") or []:
        candidates.append((location.get("latitude"), location.get("longitude")))
    points = [(lat, lng) for lat, lng in candidates if is_valid_coordinate(lat, lng)]

    if not points:
        return None
    return min(distance_km(latitude, longitude, lat, lng) for lat, lng in points)


def _has_location(filters) -> bool:
    return filters.latitude is not None and filters.longitude is not None


def _price_filter_active(filters) -> bool:
    return filters.price_min is not None or filters.price_max is not None


def build_business_predicates(filters) -> List[Callable[[Optional[Dict[str, Any]]], bool]]:
    """
    Predicate chain for the active filters. A candidate with no data for an
    active filter (no business, no rating, no price range) fails it; a business
    with no coordinates passes the radius check since its distance is unknown.
    """
    predicates = []

    if filters.category:
        category = getattr(filters.category, "value", filters.category)
        predicates.append(lambda biz: biz is not None and biz.get("category") == category)

    if filters.min_rating:
        predicates.append(
            lambda biz: biz is not None
            and biz.get("average_rating") is not None
            and biz["average_rating"] >= filters.min_rating
        )

    if _price_filter_active(filters):
        filter_min = filters.price_min if filters.price_min is not None else DEFAULT_PRICE_FLOOR
        filter_max = filters.price_max if filters.price_max is not None else DEFAULT_PRICE_CEILING

        def price_matches(biz):
            if biz is None or biz.get("price_range_min") is None or biz.get("price_range_max") is None:
                return False
            return ranges_overlap(biz["price_range_min"], biz["price_range_max"], filter_min, filter_max)

        predicates.append(price_matches)

    if filters.max_distance and _has_location(filters):
        def within_radius(biz):
            if biz is None:
                return True
            dist = business_distance(biz, filters.latitude, filters.longitude)
            return dist is None or dist <= filters.max_distance

        predicates.append(within_radius)

    return predicates


def filter_businesses(businesses: List[Dict[str, Any]], filters) -> List[Dict[str, Any]]:
    predicates = build_business_predicates(filters)
    return [biz for biz in businesses if all(check(biz) for check in predicates)]


def filter_videos(videos: List[Dict[str, Any]], filters) -> List[Dict[str, Any]]:
    predicates = build_business_predicates(filters)
    return [video for video in videos if all(check(video.get("business")) for check in predicates)]


def _timestamp(value) -> float:
    if value is None:
        return 0.0
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    return value.timestamp()


def score_video(video: Dict[str, Any]) -> float:
    score = 0.0
    business = video.get("business")
    if business and business.get("average_rating"):
        score += business["average_rating"] * VIDEO_RATING_WEIGHT

    score += _timestamp(video.get("created_at")) / VIDEO_RECENCY_DIVISOR
    score += (video.get("boost_value") or 0) * VIDEO_BOOST_WEIGHT
    score += min(video.get("view_count") or 0, VIDEO_VIEW_CAP) / VIDEO_VIEW_DIVISOR
    return score


def score_business(business: Dict[str, Any], filters) -> float:
    score = 0.0
    if business.get("average_rating"):
        score += business["average_rating"] * BUSINESS_RATING_WEIGHT
    if business.get("total_reviews"):
        score += min(business["total_reviews"], BUSINESS_REVIEW_CAP)

    if _has_location(filters):
        dist = business_distance(business, filters.latitude, filters.longitude)
        if dist is not None:
            score += max(0.0, BUSINESS_PROXIMITY_RANGE_KM - dist)
    return score


def rank_video_results(videos: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    # sorted() is stable, so equal scores keep their input order
    return sorted(videos, key=score_video, reverse=True)


def rank_business_results(businesses: List[Dict[str, Any]], filters) -> List[Dict[str, Any]]:
    return sorted(businesses, key=lambda biz: score_business(biz, filters), reverse=True)
