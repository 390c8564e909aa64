from __future__ import annotations

import html

from aiogram import Router
from aiogram.filters import Command, CommandObject
from aiogram.types import Message

from gymplan.bot.keyboards import STATUS_LABELS
from gymplan.core.logging import configure_logging
from gymplan.db.models import PlanView
from gymplan.db.supabase import SupabaseError
from gymplan.scheduling.service import PlanService, count_by_status
from gymplan.scheduling.templates import effective_days_per_week

router = Router(name="plans")
logger = configure_logging()


def parse_id(command: CommandObject) -> int | None:
    if not command.args:
        return None
    value = command.args.split()[0]
    if not value.isdigit():
        return None
    return int(value)


def _format_dates(view: PlanView) -> str:
    plan = view.plan
    start = plan.start_date.strftime("%d.%m.%Y") if plan.start_date else "—"
    end = plan.end_date.strftime("%d.%m.%Y") if plan.end_date else "без срока"
    return f"{start} → {end}"


def format_plan(view: PlanView) -> str:
    plan = view.plan
    text = (
        f"#{plan.id} <b>{html.escape(plan.name)}</b> — {STATUS_LABELS[view.status]}\n"
        f"  {_format_dates(view)}, {effective_days_per_week(plan)} дн./нед."
    )
    if plan.drive_link:
        text += f"\n  ☁️ <a href=\"{html.escape(plan.drive_link, quote=True)}\">Drive</a>"
    return text


@router.message(Command("plans"))
async def cmd_plans(
    message: Message,
    command: CommandObject,
    plans: PlanService,
) -> None:
    """
    List a customer's plans with their current status.

    Drive links are re-checked in the background while the list is shown.
    """

    customer_id = parse_id(command)
    if customer_id is None:
        await message.answer("Укажи id клиента: /plans 42")
        return

    try:
        views = await plans.list_plans(customer_id)
    except SupabaseError as exc:
        logger.exception("Failed to load plans for customer %s: %s", customer_id, exc)
        await message.answer("❌ Не удалось загрузить планы.")
        return

    if not views:
        await message.answer("У клиента пока нет планов. Создать: /new_plan")
        return

    counts = count_by_status(views)
    lines = [
        f"<b>📋 Планы клиента #{customer_id}</b>\n",
        " | ".join(f"{STATUS_LABELS[s]}: {n}" for s, n in counts.items() if n),
        "",
    ]
    lines.extend(format_plan(view) for view in views)

    await message.answer("\n".join(lines), disable_web_page_preview=True)


@router.message(Command("archive_plan"))
async def cmd_archive_plan(
    message: Message,
    command: CommandObject,
    plans: PlanService,
) -> None:
    plan_id = parse_id(command)
    if plan_id is None:
        await message.answer("Укажи id плана: /archive_plan 7")
        return

    try:
        view = await plans.get_plan(plan_id)
        if view is None or view.plan.is_template:
            await message.answer("План не найден.")
            return
        await plans.archive_plan(plan_id)
    except SupabaseError as exc:
        logger.exception("Failed to archive plan %s: %s", plan_id, exc)
        await message.answer("❌ Ошибка при архивации плана.")
        return

    await message.answer(f"🗄 План <b>{view.plan.name}</b> перенесён в архив.")
