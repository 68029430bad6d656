"""Messaging adapters package."""
from emailflow.services.adapters.messaging.ghl import GHLAdapter
from emailflow.services.adapters.messaging.mock import MockMessagingAdapter

__all__ = ["GHLAdapter", "MockMessagingAdapter"]
