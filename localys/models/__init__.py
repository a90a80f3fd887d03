from .business import Business, BusinessLocation
from .coupon import Coupon, UserCoupon
from .menu_item import MenuItem
from .message import Chat, ChatMember, Message
from .order import CoinPurchase, ItemPurchase
from .profile import Profile
from .review import Review
from .social import Bookmark, Comment, CommentLike, Like
from .video import PromotionHistory, Video


__all__ = [
    "Bookmark",
    "Business",
    "BusinessLocation",
    "Chat",
    "ChatMember",
    "CoinPurchase",
    "Comment",
    "CommentLike",
    "Coupon",
    "ItemPurchase",
    "Like",
    "MenuItem",
    "Message",
    "Profile",
    "PromotionHistory",
    "Review",
    "UserCoupon",
    "Video",
]
