# chat_ledger/reports.py
from datetime import date
from typing import Iterable, Optional

from chat_ledger.core.models import Transaction

DATE_WIDTH = 8
NAME_WIDTH = 14
AMOUNT_WIDTH = 10


def format_amount(amount: int) -> str:
    """``25000`` -> ``25,000``"""
    return f"{int(amount):,}"


def format_rupiah(amount: int) -> str:
    """``25000`` -> ``Rp25.000`` (Indonesian thousands separator)."""
    return "Rp" + format_amount(amount).replace(",", ".")


def render_table(transactions: Iterable[Transaction]) -> str:
    """Monospaced ``Date | Expense | Amount`` table with a total row."""
    lines = [
        "```",
        f"{'Date':<{DATE_WIDTH}} | {'Expense':<{NAME_WIDTH}} | {'Amount':<{AMOUNT_WIDTH}}",
        f"{'-' * (DATE_WIDTH + 1)}|{'-' * (NAME_WIDTH + 2)}|{'-' * (AMOUNT_WIDTH + 1)}",
    ]
    total = 0
    for tx in transactions:
        lines.append(
            f"{tx.date.strftime('%d/%m/%y'):<{DATE_WIDTH}} | "
            f"{tx.description[:NAME_WIDTH]:<{NAME_WIDTH}} | "
            f"{format_amount(tx.amount):>{AMOUNT_WIDTH}}"
        )
        total += tx.amount
    lines.append(f"{'-' * (DATE_WIDTH + 1)}|{'-' * (NAME_WIDTH + 2)}|{'-' * (AMOUNT_WIDTH + 1)}")
    lines.append(f"{'Total':<{DATE_WIDTH}} | {'':<{NAME_WIDTH}} | {format_rupiah(total)}")
    lines.append("```")
    return "\n".join(lines)


def empty_report_message(start: date, end: date, today: Optional[date] = None,
                         locale: str = "id") -> str:
    """Text shown when a report window holds no transactions."""
    if today is not None and start == end == today:
        return "Belum ada transaksi hari ini." if locale == "id" else "No transactions for today."
    s, e = start.isoformat(), end.isoformat()
    if locale == "id":
        if start == end:
            return f"Tidak ada transaksi pada {s}."
        return f"Tidak ada transaksi pada {s} s/d {e}."
    if start == end:
        return f"No transactions on {s}."
    return f"No transactions between {s} and {e}."


def transaction_card(tx: Transaction) -> str:
    return "\n".join([
        f"*Record date:* {tx.date.strftime('%a %b %d %Y')}",
        f"*Transaction ID:* `{tx.id}`",
        f"*Type:* {tx.kind.value}",
        f"*Name:* {tx.description}",
        f"*Amount:* Rp{format_amount(tx.amount)}",
        f"*Category:* {tx.category or ' '}",
        f"*Tag:* {tx.tag or ' '}",
        f"*Account:* {tx.account or ' '}",
        f"*Note:* {tx.note or ' '}",
    ])


def recorded_message(tx: Transaction) -> str:
    """Confirmation for a transaction added through an interpreted intent."""
    label = "expense" if tx.kind.value == "spending" else "income"
    return (
        f"✅ Recorded {label}: *{tx.description}*\n"
        f"Amount: {format_rupiah(tx.amount)}\n"
        f"Category: {tx.category or 'Uncategorized'}\n"
        f"Tag: {tx.tag or '-'}\n"
        f"ID: {tx.id}"
    )
