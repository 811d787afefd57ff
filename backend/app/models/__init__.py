"""SQLAlchemy models."""

from app.models.employee import EmployeeRequest, PlaceEmployee
from app.models.marketing import Affiliate, AffiliateTransaction, DiscountCode
from app.models.message import Message
from app.models.notification import Notification
from app.models.package import Package, UserSubscription
from app.models.place import Place, PlaceVisit, SiteVisit
from app.models.post import Post
from app.models.product import Product, ProductImage, ProductVariant, ProductVideo
from app.models.user import UserProfile

__all__ = [
    "Affiliate",
    "AffiliateTransaction",
    "DiscountCode",
    "EmployeeRequest",
    "Message",
    "Notification",
    "Package",
    "Place",
    "PlaceEmployee",
    "PlaceVisit",
    "Post",
    "Product",
    "ProductImage",
    "ProductVariant",
    "ProductVideo",
    "SiteVisit",
    "UserProfile",
    "UserSubscription",
]
