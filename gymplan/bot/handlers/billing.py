from __future__ import annotations

from decimal import Decimal

from aiogram import Router
from aiogram.filters import Command, CommandObject
from aiogram.types import Message

from gymplan.billing.proration import compute_charge
from gymplan.billing.statements import find_unpaid_months, is_debtor, paid_in_month, statement_line
from gymplan.core.errors import ValidationError
from gymplan.core.logging import configure_logging
from gymplan.core.validation import parse_billing_month
from gymplan.db.supabase import SupabaseError
from gymplan.scheduling.service import PlanService

router = Router(name="billing")
logger = configure_logging()


@router.message(Command("charge"))
async def cmd_charge(message: Message, command: CommandObject, plans: PlanService) -> None:
    """
    Amount due for one month, prorated when the customer joined that month.
    """

    args = (command.args or "").split()
    if len(args) != 2 or not args[0].isdigit():
        await message.answer("Формат: /charge &lt;id клиента&gt; &lt;ГГГГ-ММ&gt;")
        return

    try:
        year, month = parse_billing_month(args[1])
    except ValidationError:
        await message.answer("Месяц в формате 2025-03.")
        return

    customer_id = int(args[0])
    try:
        customer = await plans.get_customer(customer_id)
        if customer is None:
            await message.answer("Клиент не найден.")
            return
        payments = await plans.store.list_payments_for_customer(customer_id)
    except SupabaseError as exc:
        logger.exception("Failed to compute charge for %s: %s", customer_id, exc)
        await message.answer("❌ Ошибка базы данных.")
        return

    tariff_amount = customer.tariff.amount if customer.tariff else None
    charge = compute_charge(tariff_amount, year, month, customer.joined_date)
    line = statement_line(charge, paid_in_month(payments, year, month))

    lines = [
        f"<b>💳 {customer.display_name}</b> — {month:02d}.{year}",
        f"Тариф: {charge.base}",
    ]
    if charge.is_prorated:
        lines.append(
            f"Пропорционально: {charge.days_charged} дн. с "
            f"{charge.from_date.strftime('%d.%m.%Y')} → <b>{charge.charged}</b>"
        )
    else:
        lines.append(f"К оплате: <b>{charge.charged}</b>")
    lines.append(f"Оплачено: {line.paid}")
    lines.append("✅ Оплачено" if line.is_paid else f"❗️ Долг: {line.debt}")

    await message.answer("\n".join(lines))


@router.message(Command("debts"))
async def cmd_debts(message: Message, command: CommandObject, plans: PlanService) -> None:
    args = (command.args or "").split()
    if not args or not args[0].isdigit():
        await message.answer("Формат: /debts &lt;id клиента&gt;")
        return

    customer_id = int(args[0])
    try:
        customer = await plans.get_customer(customer_id)
        if customer is None:
            await message.answer("Клиент не найден.")
            return
        payments = await plans.store.list_payments_for_customer(customer_id)
    except SupabaseError as exc:
        logger.exception("Failed to load debts for %s: %s", customer_id, exc)
        await message.answer("❌ Ошибка базы данных.")
        return

    if customer.joined_date is None:
        await message.answer("У клиента не указана дата начала членства.")
        return

    tariff_amount = customer.tariff.amount if customer.tariff else None
    unpaid = find_unpaid_months(tariff_amount, customer.joined_date, payments, plans.clock.today())
    if not unpaid:
        await message.answer(f"✅ У {customer.display_name} нет долгов.")
        return

    total = sum((m.outstanding for m in unpaid), Decimal("0"))
    lines = [f"<b>❗️ {customer.display_name}</b>"]
    if is_debtor(unpaid):
        lines.append("Более двух неоплаченных месяцев.")
    lines.extend(f"  • {m.month:02d}.{m.year}: {m.outstanding}" for m in unpaid)
    lines.append(f"\nИтого: <b>{total}</b>")
    await message.answer("\n".join(lines))
