"""
Authentication handler for the demo bot.
Logs a fresh session in, either by QR login or by a login code sent to the phone.
"""

import asyncio
import logging
from typing import Any, Dict

from aioconsole import ainput
from telethon.errors import PhoneCodeInvalidError, SessionPasswordNeededError

from .base_handler import BaseHandler

logger = logging.getLogger(__name__)

QR_WAIT_TIMEOUT = 60
MAX_CODE_ATTEMPTS = 3


class AuthenticationHandler(BaseHandler):
    """Handles login for a client that has no stored authorization yet."""

    def __init__(self, bot, prompt=None):
        super().__init__(bot)
        self._prompt = prompt or ainput
        self._auth_state = "none"  # none, code_sent, qr_shown, requires_2fa, authenticated

    def get_auth_state(self) -> str:
        """Get current authentication state."""
        return self._auth_state

    async def ensure_authorized(self, client) -> bool:
        """Log in if needed. Returns True if a new login took place."""
        if await client.is_user_authorized():
            self._auth_state = "authenticated"
            return False

        if self.settings.use_pairing_code:
            await self._login_with_code(client)
        else:
            await self._login_with_qr(client)

        self._auth_state = "authenticated"
        me = await client.get_me()
        logger.info(f"✅ Logged in as {getattr(me, 'username', None) or getattr(me, 'id', '?')}")
        return True

    async def _login_with_code(self, client):
        phone_number = self.settings.phone_number
        if not phone_number:
            phone_number = (await self._prompt("Please enter your phone number:\n")).strip()

        sent_code = await client.send_code_request(phone_number)
        delivery_info = self._parse_code_delivery_info(sent_code)
        self._auth_state = "code_sent"
        print(f"Login code sent via {delivery_info['method']} ({delivery_info['length']} digits)")

        for attempt in range(1, MAX_CODE_ATTEMPTS + 1):
            code = (await self._prompt("Please enter the login code:\n")).strip()
            try:
                await client.sign_in(phone_number, code)
                return
            except SessionPasswordNeededError:
                await self._complete_2fa(client)
                return
            except PhoneCodeInvalidError:
                logger.warning(f"Invalid login code (attempt {attempt}/{MAX_CODE_ATTEMPTS})")
                if attempt == MAX_CODE_ATTEMPTS:
                    raise

    async def _login_with_qr(self, client):
        qr_login = await client.qr_login()
        self._auth_state = "qr_shown"
        while True:
            print(f"Scan this login URL as a QR code from Telegram > Devices:\n{qr_login.url}")
            try:
                await qr_login.wait(timeout=QR_WAIT_TIMEOUT)
                return
            except asyncio.TimeoutError:
                logger.info("QR login token expired, generating a new one")
                await qr_login.recreate()
            except SessionPasswordNeededError:
                await self._complete_2fa(client)
                return

    async def _complete_2fa(self, client):
        self._auth_state = "requires_2fa"
        password = await self._prompt("Two-step verification password:\n")
        await client.sign_in(password=password.strip())

    def _parse_code_delivery_info(self, sent_code) -> Dict[str, Any]:
        """Parse code delivery information from Telegram response."""
        code_type = getattr(sent_code, "type", None)
        type_name = type(code_type).__name__ if code_type is not None else ""

        if type_name == "SentCodeTypeApp":
            delivery_method = "telegram_app"
        elif type_name == "SentCodeTypeSms":
            delivery_method = "sms"
        elif type_name == "SentCodeTypeCall":
            delivery_method = "phone_call"
        else:
            delivery_method = type_name.lower() or "unknown"

        return {"method": delivery_method, "length": getattr(code_type, "length", 5)}
