"""防伪令牌 — 按时间片计算 HMAC，当前与上一时间片内有效"""

from __future__ import annotations

import hashlib
import hmac
import math
import time

GENERATE_ACTION = "genai_tools_generate_image"
DEFAULT_LIFETIME_SECONDS = 86400
_TOKEN_LENGTH = 16


class NonceVerifier:
    def __init__(self, secret: str, lifetime_seconds: int = DEFAULT_LIFETIME_SECONDS) -> None:
        if not secret:
            raise ValueError("令牌密钥不能为空")
        self._secret = secret.encode("utf-8")
        self._lifetime = lifetime_seconds

    def _tick(self, now: float | None = None) -> int:
        current = time.time() if now is None else now
        return math.ceil(current / (self._lifetime / 2))

    def _digest(self, tick: int, action: str, user_id: str) -> str:
        message = f"{tick}|{action}|{user_id}".encode("utf-8")
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()[-_TOKEN_LENGTH:]

    def create(self, action: str, user_id: str, now: float | None = None) -> str:
        return self._digest(self._tick(now), action, user_id)

    def verify(self, token: str, action: str, user_id: str, now: float | None = None) -> bool:
        if not token:
            return False
        tick = self._tick(now)
        return any(
            hmac.compare_digest(token, self._digest(t, action, user_id))
            for t in (tick, tick - 1)
        )
