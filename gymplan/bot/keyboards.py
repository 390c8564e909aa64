from __future__ import annotations

from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup

from gymplan.db.models import Mesocycle, PlanStatus, RenewalPriority
from gymplan.scheduling.templates import effective_days_per_week

STATUS_LABELS = {
    PlanStatus.ACTIVE: "✅ Активный",
    PlanStatus.FUTURE: "🕒 Будущий",
    PlanStatus.EXPIRED: "📅 Завершён",
    PlanStatus.ARCHIVED: "🗄 Архив",
}

PRIORITY_LABELS = {
    RenewalPriority.EXPIRED: "❌ Истёк",
    RenewalPriority.NONE: "⚪️ Нет плана",
    RenewalPriority.URGENT: "⏰ Срочно",
    RenewalPriority.GOOD: "🟢 В порядке",
}


class Keyboards:
    """
    Keyboard builders for the plan wizard.
    """

    @staticmethod
    def template_days_filter(days_options: list[int]) -> InlineKeyboardMarkup:
        filter_row = [InlineKeyboardButton(text="Все", callback_data="tpldays:all")]
        filter_row.extend(
            InlineKeyboardButton(text=f"{d} дн.", callback_data=f"tpldays:{d}")
            for d in days_options
        )
        return InlineKeyboardMarkup(inline_keyboard=[filter_row])

    @staticmethod
    def templates(templates: list[Mesocycle]) -> InlineKeyboardMarkup:
        buttons = [
            [
                InlineKeyboardButton(
                    text=f"📋 {t.name} ({effective_days_per_week(t)} дн.)",
                    callback_data=f"tpl:{t.id}",
                )
            ]
            for t in templates
        ]
        buttons.append([InlineKeyboardButton(text="➡️ Без шаблона", callback_data="tpl:none")])
        return InlineKeyboardMarkup(inline_keyboard=buttons)

    @staticmethod
    def overlap_choice() -> InlineKeyboardMarkup:
        buttons = [
            [InlineKeyboardButton(text="📅 Другая дата начала", callback_data="overlap:retry")],
            [InlineKeyboardButton(text="🗄 Заменить пересекающиеся", callback_data="overlap:replace")],
        ]
        return InlineKeyboardMarkup(inline_keyboard=buttons)
