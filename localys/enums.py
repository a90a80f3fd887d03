import enum


class BusinessCategory(str, enum.Enum):
    FOOD = "food"
    RETAIL = "retail"
    SERVICES = "services"


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class CheckoutType(str, enum.Enum):
    COINS = "coins"
    ITEMS = "items"
