from __future__ import annotations

from aiogram import Router
from aiogram.filters import Command, CommandStart
from aiogram.fsm.context import FSMContext
from aiogram.types import Message

router = Router(name="start")

HELP_LINES = [
    "🏋️ <b>Планы тренировок и оплата</b>",
    "",
    "/plans &lt;id клиента&gt; — планы клиента и их статус",
    "/new_plan — создать план (можно из шаблона)",
    "/archive_plan &lt;id плана&gt; — отправить план в архив",
    "/priorities — кому пора обновить план",
    "/charge &lt;id клиента&gt; &lt;ГГГГ-ММ&gt; — сумма к оплате за месяц",
    "/debts &lt;id клиента&gt; — неоплаченные месяцы",
    "/cancel — отменить текущий диалог",
]


@router.message(CommandStart())
async def cmd_start(message: Message) -> None:
    await message.answer("\n".join(HELP_LINES))


@router.message(Command("help"))
async def cmd_help(message: Message) -> None:
    await message.answer("\n".join(HELP_LINES))


@router.message(Command("cancel"))
async def cmd_cancel(message: Message, state: FSMContext) -> None:
    """
    Cancel any active dialog.
    """

    current_state = await state.get_state()
    if current_state is None:
        await message.answer("Нет активной операции.")
        return

    await state.clear()
    await message.answer("Операция отменена.")
