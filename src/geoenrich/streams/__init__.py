"""
Streams Package

Consumer-group stream access for the enrichment worker.
"""
from src.geoenrich.streams.broker import RedisStreamBroker, StreamBroker, StreamMessage

__all__ = ["RedisStreamBroker", "StreamBroker", "StreamMessage"]
