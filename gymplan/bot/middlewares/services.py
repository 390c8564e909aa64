from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict

from aiogram import BaseMiddleware
from aiogram.types import TelegramObject

from gymplan.core import Settings
from gymplan.scheduling.service import PlanService


class ServicesMiddleware(BaseMiddleware):
    """
    Middleware that attaches the plan service and settings to handler data.

    Handlers receive them as the `plans` and `settings` keyword arguments.
    Works for both Message and CallbackQuery events.
    """

    def __init__(self, plans: PlanService, settings: Settings) -> None:
        self.plans = plans
        self.settings = settings

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        data["plans"] = self.plans
        data["settings"] = self.settings
        return await handler(event, data)
