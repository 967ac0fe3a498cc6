from hidden_gems.models.user import User
from hidden_gems.models.gem import Gem, GemMedia
from hidden_gems.models.rating import Rating
from hidden_gems.models.favorite import Favorite
from hidden_gems.models.payment import Payment
from hidden_gems.models.notification import Notification
from hidden_gems.models.page_view import PageView

__all__ = [
    "User", "Gem", "GemMedia", "Rating", "Favorite",
    "Payment", "Notification", "PageView",
]
