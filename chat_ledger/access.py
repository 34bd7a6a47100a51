# chat_ledger/access.py
import logging
import os
from typing import Iterable, Optional

from chat_ledger.core.errors import AccessDenied
from chat_ledger.messages import MSG_REJECT

logger = logging.getLogger(__name__)


class AccessList:
    """Allow-list of chat ids. An empty list denies everyone."""

    def __init__(self, users: Iterable[dict] = ()):
        self.users = {}
        for entry in users:
            chat_id = str(entry.get("chat_id", entry.get("chatId", ""))).strip()
            if chat_id:
                self.users[chat_id] = entry.get("name", "")

    @classmethod
    def from_config(cls, config: dict, env: Optional[dict] = None) -> "AccessList":
        env = os.environ if env is None else env
        users = list(config.get("allowed_users") or [])
        extra = env.get("CHATLEDGER_ALLOWED_USERS", "")
        users += [{"chat_id": c.strip()} for c in extra.split(",") if c.strip()]
        return cls(users)

    def is_allowed(self, actor_id) -> bool:
        allowed = str(actor_id) in self.users
        if not allowed:
            logger.warning("Rejected message from chat id %s", actor_id)
        return allowed

    def require(self, actor_id) -> None:
        if not self.is_allowed(actor_id):
            raise AccessDenied(MSG_REJECT)

    def name_of(self, actor_id) -> str:
        return self.users.get(str(actor_id), "")
