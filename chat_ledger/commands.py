# chat_ledger/commands.py
"""Grammar for slash commands, hashtag shortcuts and menu buttons."""
import re
from dataclasses import dataclass, field
from typing import Optional, Tuple

from chat_ledger.core.errors import UnknownField

SLASH_COMMANDS = ("start", "help", "ping", "whoiam", "update", "exit", "cancel")

SPENDING_RE = re.compile(r"#Spending (.+) (\d+)", re.IGNORECASE)
INCOME_RE = re.compile(r"#Income (.+) (\d+)", re.IGNORECASE)
DELETE_RE = re.compile(r"#Delete ([0-9A-Za-z]{4})\b", re.IGNORECASE)
UPDATE_RE = re.compile(r"#Update (\w+)", re.IGNORECASE)
TRANSACTIONS_RE = re.compile(r"#Transactions (\d+)", re.IGNORECASE)
BACKDATE_RE = re.compile(r"Backdate", re.IGNORECASE)

UPDATE_FLAGS = {
    "-cat": "category",
    "-tag": "tag",
    "-amount": "amount",
    "-note": "note",
    "-expensesname": "description",
    "-account": "account",
}

MENU_BUTTONS = (
    ("add_spending", re.compile(r"Add Spending", re.IGNORECASE)),
    ("add_income", re.compile(r"Add Income", re.IGNORECASE)),
    ("view_spending", re.compile(r"view\s*spending", re.IGNORECASE)),
    ("add_category", re.compile(r"Add Default Category", re.IGNORECASE)),
    ("delete_last", re.compile(r"Delete This|Last Transaction", re.IGNORECASE)),
    ("settings", re.compile(r"^[^\w]*settings$", re.IGNORECASE)),
    ("help", re.compile(r"^[^\w]*help$", re.IGNORECASE)),
    ("main_menu", re.compile(r"Back to Main Menu", re.IGNORECASE)),
)


class FlagFormatError(UnknownField):
    def __init__(self, flag: str):
        super().__init__(f'Wrong format for flag `{flag}`.\nExample: `{flag} "value"`')
        self.flag = flag


@dataclass
class Command:
    name: str
    args: dict = field(default_factory=dict)


def parse_slash(text: str) -> Optional[str]:
    """``/help@MyBot extra`` -> ``help``; None for unknown commands."""
    match = re.match(r"^/(\w+)(?:@\w+)?(?:\s|$)", (text or "").strip())
    if not match:
        return None
    name = match.group(1).lower()
    return name if name in SLASH_COMMANDS else None


def split_backdate(name: str) -> Tuple[str, bool]:
    """Strip the ``Backdate`` marker from a transaction name."""
    if not BACKDATE_RE.search(name):
        return name.strip(), False
    return BACKDATE_RE.sub("", name, count=1).strip(), True


def parse_update_flags(text: str) -> Optional[Tuple[str, str]]:
    """First ``-flag "value"`` pair in ``text`` as ``(field, value)``.

    Returns None when no known flag is present and raises
    :class:`FlagFormatError` when a flag has no quoted value.
    """
    for flag, field_name in UPDATE_FLAGS.items():
        if re.search(rf"{flag}\b", text):
            match = re.search(rf'{flag} "([^"]+)"', text)
            if not match:
                raise FlagFormatError(flag)
            return field_name, match.group(1)
    return None


def parse_command(text: str) -> Optional[Command]:
    text = (text or "").strip()
    if not text:
        return None

    slash = parse_slash(text)
    if slash:
        return Command(slash)
    if text.startswith("/"):
        return None

    match = SPENDING_RE.search(text) or INCOME_RE.search(text)
    if match:
        kind = "spending" if match.re is SPENDING_RE else "income"
        name, backdated = split_backdate(match.group(1))
        return Command(kind, {"name": name, "amount": int(match.group(2)), "backdate": backdated})

    match = DELETE_RE.search(text)
    if match:
        return Command("delete", {"id": match.group(1)})

    match = UPDATE_RE.search(text)
    if match:
        return Command("update", {"id": match.group(1), "text": text})

    match = TRANSACTIONS_RE.search(text)
    if match:
        return Command("transactions", {"count": int(match.group(1))})

    for name, pattern in MENU_BUTTONS:
        if pattern.search(text):
            return Command(name)
    return None
