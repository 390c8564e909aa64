from __future__ import annotations

from datetime import date

from aiogram import F, Router
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import State, StatesGroup
from aiogram.types import CallbackQuery, Message

from gymplan.bot.keyboards import Keyboards
from gymplan.core import Settings
from gymplan.core.errors import OverlapError, ValidationError
from gymplan.core.logging import configure_logging
from gymplan.core.validation import parse_user_date, validate_weeks
from gymplan.db.models import Routine
from gymplan.db.supabase import SupabaseError
from gymplan.scheduling.dates import project_end_date
from gymplan.scheduling.service import PlanService
from gymplan.scheduling.templates import PlanDraft, effective_days_per_week, filter_templates

router = Router(name="new_plan")
logger = configure_logging()

MONTHS = (
    "Январь", "Февраль", "Март", "Апрель", "Май", "Июнь",
    "Июль", "Август", "Сентябрь", "Октябрь", "Ноябрь", "Декабрь",
)

ACCEPT_WORDS = {"ок", "ok", "да", "+"}


class NewPlanStates(StatesGroup):
    waiting_for_customer = State()
    waiting_for_template = State()
    waiting_for_start = State()
    waiting_for_weeks = State()
    waiting_for_overlap_choice = State()
    waiting_for_name = State()


def auto_name(customer_name: str, start: date) -> str:
    return f"{customer_name} - {MONTHS[start.month - 1]} {start.year}"


@router.message(Command("new_plan"))
async def cmd_new_plan(message: Message, state: FSMContext) -> None:
    """
    Start the plan builder: ask which customer.
    """

    await state.clear()
    await state.set_state(NewPlanStates.waiting_for_customer)
    await message.answer(
        "Отправь <b>id клиента</b>, для которого создаём план.\n\n"
        "Для отмены напиши /cancel."
    )


@router.message(NewPlanStates.waiting_for_customer, F.text.isdigit())
async def new_plan_customer(message: Message, state: FSMContext, plans: PlanService) -> None:
    customer_id = int(message.text)

    try:
        customer = await plans.get_customer(customer_id)
        templates = await plans.list_templates()
    except SupabaseError as exc:
        logger.exception("Failed to start plan builder: %s", exc)
        await state.clear()
        await message.answer("❌ Ошибка базы данных. Попробуй позже.")
        return

    if customer is None:
        await message.answer("Клиент не найден. Отправь другой id.")
        return

    await state.update_data(customer_id=customer.id, customer_name=customer.display_name)
    await state.set_state(NewPlanStates.waiting_for_template)

    if not templates:
        await message.answer(
            f"Клиент: <b>{customer.display_name}</b>\n\nШаблонов пока нет.",
            reply_markup=Keyboards.templates([]),
        )
        return

    days_options = sorted({effective_days_per_week(t) for t in templates})
    await message.answer(
        f"Клиент: <b>{customer.display_name}</b>\n\n"
        "Фильтр шаблонов по количеству дней:",
        reply_markup=Keyboards.template_days_filter(days_options),
    )
    await message.answer("Выбери шаблон:", reply_markup=Keyboards.templates(templates))


@router.callback_query(NewPlanStates.waiting_for_template, F.data.startswith("tpldays:"))
async def new_plan_filter_templates(callback: CallbackQuery, plans: PlanService) -> None:
    value = callback.data.split(":", 1)[1]
    days = None if value == "all" else int(value)

    templates = filter_templates(await plans.list_templates(), days)
    text = "Выбери шаблон:" if templates else "Нет шаблонов с таким количеством дней."
    await callback.message.answer(text, reply_markup=Keyboards.templates(templates))
    await callback.answer()


@router.callback_query(NewPlanStates.waiting_for_template, F.data.startswith("tpl:"))
async def new_plan_template(callback: CallbackQuery, state: FSMContext, plans: PlanService) -> None:
    value = callback.data.split(":", 1)[1]
    data = await state.get_data()
    customer_id = data["customer_id"]

    lines: list[str] = []
    if value == "none":
        draft = PlanDraft(routines=[Routine(name="День 1")])
    else:
        try:
            draft = await plans.draft_from_template(int(value))
        except ValidationError:
            await callback.answer("Шаблон не найден", show_alert=True)
            return
        lines.append(f"📋 Шаблон: <b>{draft.source_template_name}</b> ({draft.days_per_week} дн.)")
        orphans = await plans.orphaned_fields(draft)
        if orphans:
            keys = sorted({k for ks in orphans.values() for k in ks})
            lines.append(f"⚠️ Поля без настройки (сохранены): {', '.join(keys)}")

    suggested = await plans.suggest_start_date(customer_id)
    await state.update_data(draft=draft.model_dump(mode="json"), suggested=suggested.isoformat())
    await state.set_state(NewPlanStates.waiting_for_start)

    lines.append(
        "\nОтправь <b>дату начала</b> (ДД.ММ.ГГГГ) или «ок» для "
        f"<b>{suggested.strftime('%d.%m.%Y')}</b>."
    )
    await callback.message.answer("\n".join(lines))
    await callback.answer()


@router.message(NewPlanStates.waiting_for_start)
async def new_plan_start(message: Message, state: FSMContext, settings: Settings) -> None:
    text = (message.text or "").strip()
    data = await state.get_data()

    if text.lower() in ACCEPT_WORDS and data.get("suggested"):
        start = date.fromisoformat(data["suggested"])
    else:
        try:
            start = parse_user_date(text)
        except ValidationError:
            await message.answer("Не понял дату. Формат: 01.02.2025.")
            return

    await state.update_data(start_date=start.isoformat())
    await state.set_state(NewPlanStates.waiting_for_weeks)
    await message.answer(
        f"Начало: <b>{start.strftime('%d.%m.%Y')}</b>\n\n"
        f"Сколько <b>недель</b> длится план? «ок» — {settings.default_plan_weeks}."
    )


@router.message(NewPlanStates.waiting_for_weeks)
async def new_plan_weeks(
    message: Message,
    state: FSMContext,
    plans: PlanService,
    settings: Settings,
) -> None:
    text = (message.text or "").strip()
    try:
        weeks = settings.default_plan_weeks if text.lower() in ACCEPT_WORDS else int(text)
        validate_weeks(weeks)
    except (ValueError, ValidationError):
        await message.answer("Отправь количество недель числом, например: 4.")
        return

    data = await state.get_data()
    start = date.fromisoformat(data["start_date"])
    end = project_end_date(start, weeks)
    await state.update_data(end_date=end.isoformat())

    try:
        result = await plans.check_overlap(data["customer_id"], start, end)
    except SupabaseError as exc:
        logger.exception("Failed to check plan overlap: %s", exc)
        await message.answer("❌ Ошибка базы данных. Попробуй ещё раз.")
        return

    if result.has_overlap:
        await _ask_overlap(message, state, result.conflict_ids)
        return

    await _ask_name(message, state, start, end)


async def _ask_overlap(message: Message, state: FSMContext, conflict_ids: list[int]) -> None:
    await state.set_state(NewPlanStates.waiting_for_overlap_choice)
    ids = ", ".join(f"#{i}" for i in conflict_ids)
    await message.answer(
        f"⚠️ Даты пересекаются с активным планом {ids}.\n"
        "Выбери другую дату начала или замени пересекающиеся планы.",
        reply_markup=Keyboards.overlap_choice(),
    )


async def _ask_name(message: Message, state: FSMContext, start: date, end: date) -> None:
    data = await state.get_data()
    suggestion = auto_name(data["customer_name"], start)
    await state.update_data(suggested_name=suggestion)
    await state.set_state(NewPlanStates.waiting_for_name)
    await message.answer(
        f"Период: <b>{start.strftime('%d.%m.%Y')} → {end.strftime('%d.%m.%Y')}</b>\n\n"
        f"Отправь <b>название плана</b> или «ок» для «{suggestion}»."
    )


@router.callback_query(NewPlanStates.waiting_for_overlap_choice, F.data == "overlap:retry")
async def new_plan_overlap_retry(callback: CallbackQuery, state: FSMContext) -> None:
    await state.set_state(NewPlanStates.waiting_for_start)
    await callback.message.answer("Отправь другую <b>дату начала</b> (ДД.ММ.ГГГГ).")
    await callback.answer()


@router.callback_query(NewPlanStates.waiting_for_overlap_choice, F.data == "overlap:replace")
async def new_plan_overlap_replace(callback: CallbackQuery, state: FSMContext, plans: PlanService) -> None:
    await state.update_data(supersede=True)
    data = await state.get_data()
    await callback.answer()
    if data.get("name"):
        await _save(callback.message, state, plans)
        return
    await _ask_name(
        callback.message,
        state,
        date.fromisoformat(data["start_date"]),
        date.fromisoformat(data["end_date"]),
    )


@router.message(NewPlanStates.waiting_for_name)
async def new_plan_name(message: Message, state: FSMContext, plans: PlanService) -> None:
    text = (message.text or "").strip()
    data = await state.get_data()
    name = data["suggested_name"] if text.lower() in ACCEPT_WORDS else text
    await state.update_data(name=name)
    await _save(message, state, plans)


async def _save(message: Message, state: FSMContext, plans: PlanService) -> None:
    data = await state.get_data()
    draft = PlanDraft.model_validate(data["draft"])

    try:
        plan = draft.finalize(
            customer_id=data["customer_id"],
            name=data["name"],
            start_date=date.fromisoformat(data["start_date"]),
            end_date=date.fromisoformat(data["end_date"]),
        )
        plan_id = await plans.save_plan(plan, supersede=bool(data.get("supersede")))
    except OverlapError as exc:
        # Someone else saved a colliding plan meanwhile; keep the draft and re-prompt
        await _ask_overlap(message, state, exc.conflict_ids)
        return
    except ValidationError as exc:
        logger.info("Plan rejected: %s", exc)
        await state.set_state(NewPlanStates.waiting_for_name)
        await message.answer("⚠️ Название не может быть пустым. Отправь название плана.")
        return
    except SupabaseError as exc:
        logger.exception("Failed to save plan: %s", exc)
        await state.clear()
        await message.answer("❌ Ошибка при сохранении плана.")
        return

    await state.clear()
    await message.answer(
        "✅ План сохранён!\n\n"
        f"<b>#{plan_id} {plan.name}</b>\n"
        f"{plan.start_date.strftime('%d.%m.%Y')} → {plan.end_date.strftime('%d.%m.%Y')}\n"
        f"Дней в неделю: {plan.days_per_week}"
    )
