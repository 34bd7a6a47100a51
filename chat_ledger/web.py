from __future__ import annotations

import hmac
import json
import logging
import urllib.request
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any

from chat_ledger.bot import LedgerBot
from chat_ledger.messages import MSG_INTERNAL_ERROR, Reply

logger = logging.getLogger(__name__)

API_URL = "https://api.telegram.org"
SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"
MAX_BODY = 1_000_000


class TelegramClient:
    """The three Bot API calls the webhook needs, over plain urllib."""

    def __init__(self, token: str, timeout: float = 30.0, base_url: str = API_URL):
        self.token = token
        self.timeout = timeout
        self.base_url = base_url

    def _call(self, method: str, payload: dict) -> Any:
        data = json.dumps(payload).encode("utf-8")
        req = urllib.request.Request(f"{self.base_url}/bot{self.token}/{method}", data=data, method="POST")
        req.add_header("Content-Type", "application/json")
        with urllib.request.urlopen(req, timeout=self.timeout) as resp:
            body = json.load(resp)
        if not body.get("ok"):
            raise RuntimeError(f"Telegram {method} failed: {body}")
        return body.get("result")

    def send_message(self, chat_id, reply: Reply) -> None:
        for part in reply.all():
            payload: dict = {"chat_id": chat_id, "text": part.text}
            if part.parse_mode:
                payload["parse_mode"] = part.parse_mode
            if part.keyboard:
                payload["reply_markup"] = {
                    "keyboard": part.keyboard,
                    "resize_keyboard": True,
                    "one_time_keyboard": True,
                }
            self._call("sendMessage", payload)

    def download_file(self, file_id: str) -> tuple[bytes, str]:
        info = self._call("getFile", {"file_id": file_id})
        file_path = info.get("file_path", "")
        url = f"{self.base_url}/file/bot{self.token}/{file_path}"
        with urllib.request.urlopen(url, timeout=self.timeout) as resp:
            content = resp.read()
        return content, guess_mime_type(file_path)


def guess_mime_type(file_path: str) -> str:
    lower = file_path.lower()
    if lower.endswith(".png"):
        return "image/png"
    if lower.endswith(".webp"):
        return "image/webp"
    return "image/jpeg"


def process_update(bot: LedgerBot, client, update: dict) -> Reply | None:
    """Handle one Telegram update and send the reply; returns what was sent."""
    message = update.get("message") or update.get("edited_message")
    if not message:
        return None
    chat_id = message.get("chat", {}).get("id")
    sender = message.get("from", {})
    actor_id = sender.get("id", chat_id)
    first_name = sender.get("first_name", "")

    if message.get("photo"):
        # Telegram lists sizes smallest first
        file_id = message["photo"][-1]["file_id"]
        image, mime = client.download_file(file_id)
        reply = bot.handle_photo(actor_id, chat_id, image, mime, first_name)
    elif "text" in message:
        reply = bot.handle_text(actor_id, chat_id, message["text"], first_name)
    else:
        return None
    client.send_message(chat_id, reply)
    return reply


def secret_matches(provided: str | None, expected: str) -> bool:
    if not expected:
        return True
    return provided is not None and hmac.compare_digest(provided, expected)


def _json_response(handler: BaseHTTPRequestHandler, payload: Any, status: int = 200) -> None:
    body = json.dumps(payload).encode("utf-8")
    handler.send_response(status)
    handler.send_header("Content-Type", "application/json")
    handler.send_header("Cache-Control", "no-store")
    handler.send_header("Content-Length", str(len(body)))
    handler.end_headers()
    handler.wfile.write(body)


class WebhookHandler(BaseHTTPRequestHandler):
    bot: LedgerBot | None = None
    client: TelegramClient | None = None
    secret: str = ""
    path_prefix: str = "/webhook"

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("%s - %s", self.address_string(), format % args)

    def do_GET(self) -> None:
        if self.path == "/health":
            _json_response(self, {"ok": True})
            return
        _json_response(self, {"error": "not found"}, status=404)

    def do_POST(self) -> None:
        if self.path != self.path_prefix:
            _json_response(self, {"error": "not found"}, status=404)
            return
        if not secret_matches(self.headers.get(SECRET_HEADER), self.secret):
            logger.warning("Rejected webhook call with a bad secret token")
            _json_response(self, {"error": "unauthorized"}, status=401)
            return

        length = int(self.headers.get("Content-Length") or 0)
        if length <= 0 or length > MAX_BODY:
            _json_response(self, {"error": "bad request"}, status=400)
            return
        try:
            update = json.loads(self.rfile.read(length))
        except ValueError:
            _json_response(self, {"error": "invalid json"}, status=400)
            return

        try:
            process_update(self.bot, self.client, update)
        except Exception:
            # Telegram retries non-2xx responses; report and acknowledge.
            logger.exception("Failed to process update %s", update.get("update_id"))
            chat_id = (update.get("message") or {}).get("chat", {}).get("id")
            if chat_id is not None:
                try:
                    self.client.send_message(chat_id, Reply(MSG_INTERNAL_ERROR))
                except Exception:
                    logger.exception("Could not notify chat %s", chat_id)
        _json_response(self, {"ok": True})


def build_server(bot: LedgerBot, client: TelegramClient, host: str, port: int,
                 secret: str = "") -> HTTPServer:
    handler = type(
        "ChatLedgerWebhookHandler",
        (WebhookHandler,),
        {"bot": bot, "client": client, "secret": secret},
    )
    return HTTPServer((host, port), handler)
