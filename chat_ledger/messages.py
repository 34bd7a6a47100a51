# chat_ledger/messages.py
"""User-facing text and keyboard layouts. No logic beyond string formatting."""
from dataclasses import dataclass, field
from typing import List, Optional

FAILURE = "❌"

KB_MAIN_MENU = [
    ["💸 Add Spending", "💰 Add Income"],
    ["📊 View Spending"],
    ["❓ Help", "⚙️ Settings"],
]

KB_TRANSACTION_ENTRY = [
    ["📊 View Spending"],
    ["🗑️ Delete Last Transaction"],
]

KB_TRANSACTION_MENU = [
    ["📊 View Spending"],
    ["🗑️ Delete Last Transaction"],
]

KB_SETTINGS_MENU = [
    ["Add Default Category"],
    ["Back to Main Menu"],
]

KB_CANCEL = [["❌ Cancel"]]

KB_DRAFT_CONFIRM = [["✅ Saved"], ["❌ Cancel"]]

KB_WIZARD_CONFIRM = [["✅ Ya", "❌ Tidak"]]

KB_VIEW_DAYS = [["1", "3", "7"], ["❌ Cancel"]]


@dataclass
class Reply:
    text: str
    keyboard: Optional[List[List[str]]] = None
    parse_mode: Optional[str] = None
    extra: List["Reply"] = field(default_factory=list)

    def all(self) -> List["Reply"]:
        """This reply followed by any follow-up messages."""
        return [self] + [r for e in self.extra for r in e.all()]


MSG_START = "😀 Hi {name}! I'm your finance assistant. Ready to help you manage your money."

MSG_HELP = """🤖 <b>List of Commands:</b>

/start - Start interacting with the bot.

💸 <b>Spending:</b> #Spending Name Amount
e.g. #Spending Ice Cream 20000

💰 <b>Income:</b> #Income Name Amount
e.g. #Income November Salary 20000000

Add the word Backdate to the name to record it for yesterday.

🗑️ <b>Delete Transaction:</b> #Delete TransactionID
e.g. #Delete kbtf

🔄 <b>Update Transaction:</b> #Update TransactionID -cat "New Category"
e.g. #Update kbtf -tag "Food"

📅 <b>Recent Transactions:</b> #Transactions N
e.g. #Transactions 5

You can also just tell me what you spent, or send a photo of a receipt. 😊"""

MSG_REJECT = f"{FAILURE} Akses ditolak. Kamu tidak memiliki izin untuk menggunakan bot ini."

MSG_UPDATE_COMMANDS = """#Update ID -cat "New Category"
#Update ID -tag "New Tag"
#Update ID -amount "New Amount"
#Update ID -note "New Note"
#Update ID -expensesname "New Name"
#Update ID -account "New Account\""""

MSG_PONG = "🏓 Pong!"

MSG_WHOAMI = "👤 Name: {name}\n🆔 Chat ID: {chat_id}"

MSG_EXIT = "✅ Scene exited successfully!"

MSG_SETTINGS = "⚙️ Settings"

MSG_UNKNOWN = "🤔 Sorry, I didn't understand that. Type /help to see what I can do."

MSG_INTENT_NOT_RECOGNIZED = f"{FAILURE} Intent not recognized."

MSG_NO_TRANSACTIONS = "No transactions recorded yet."

MSG_RECEIPT_LOW_CONFIDENCE = (
    "🧾 I read this from the receipt but I'm not sure it's right:\n\n`{text}`\n\n"
    "Send it back (edited if needed) to record it."
)

MSG_INTERNAL_ERROR = f"{FAILURE} Something went wrong. Please try again."


def failure(message: str) -> str:
    if message.startswith(FAILURE):
        return message
    return f"{FAILURE} {message}"
