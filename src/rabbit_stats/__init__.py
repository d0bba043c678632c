"""
RabbitMQ Management API client

Thin sync and async bindings for the RabbitMQ HTTP Management API.
"""

__version__ = "0.1.0"

from .client import AsyncRabbitStats, ManagementAPI, RabbitStats, encode_segment
from .config import Settings
from .errors import ManagementAPIError

__all__ = [
    "AsyncRabbitStats",
    "ManagementAPI",
    "ManagementAPIError",
    "RabbitStats",
    "Settings",
    "encode_segment",
]
