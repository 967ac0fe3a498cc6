from hidden_gems.client.feed import NotificationFeed

__all__ = ["NotificationFeed"]
