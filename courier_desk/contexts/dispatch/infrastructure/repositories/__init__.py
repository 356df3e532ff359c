from .delivery_repository import DeliveryRepository
from .item_repository import ItemRepository
from .quote_repository import QuoteRepository
from .user_repository import UserRepository
from .webhook_event_repository import WebhookEventRepository

__all__ = [
    "DeliveryRepository",
    "ItemRepository",
    "QuoteRepository",
    "UserRepository",
    "WebhookEventRepository",
]
