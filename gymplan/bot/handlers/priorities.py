from __future__ import annotations

from aiogram import Router
from aiogram.filters import Command
from aiogram.types import Message

from gymplan.bot.keyboards import PRIORITY_LABELS
from gymplan.core.logging import configure_logging
from gymplan.db.models import CustomerPriority, RenewalPriority
from gymplan.db.supabase import SupabaseError
from gymplan.scheduling.service import PlanService

router = Router(name="priorities")
logger = configure_logging()


def format_priority(row: CustomerPriority) -> str:
    label = PRIORITY_LABELS[row.priority]
    name = row.customer.display_name
    if row.priority == RenewalPriority.NONE:
        return f"  • {name} — {label}"
    if row.days_remaining is None:
        return f"  • {name} — {label} (без срока)"
    if row.priority == RenewalPriority.EXPIRED:
        return f"  • {name} — {label} {-row.days_remaining} дн. назад"
    return f"  • {name} — {label}, осталось {row.days_remaining} дн."


def format_priorities(rows: list[CustomerPriority], *, only_pending: bool = False) -> str:
    if only_pending:
        rows = [r for r in rows if r.priority != RenewalPriority.GOOD]

    lines = ["<b>🏋️ Приоритеты обновления планов</b>\n"]
    if not rows:
        lines.append("Всем клиентам план не требуется.")
    lines.extend(format_priority(row) for row in rows)
    return "\n".join(lines)


@router.message(Command("priorities"))
async def cmd_priorities(message: Message, plans: PlanService) -> None:
    """
    Show active customers ordered by how soon they need a new plan.
    """

    try:
        rows = await plans.training_priorities()
    except SupabaseError as exc:
        logger.exception("Failed to build training priorities: %s", exc)
        await message.answer("❌ Не удалось получить список.")
        return

    await message.answer(format_priorities(rows))
