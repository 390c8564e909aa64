"""
Middlewares for the Telegram bot.

Currently includes:
- ServicesMiddleware: exposes the plan service and settings to handlers.
"""

from .services import ServicesMiddleware

__all__ = ["ServicesMiddleware"]
