# mission/client/hints.py
from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger(__name__)

FALLBACK_HINT = "보안 채널 접속 불가. 시스템 오프라인."
EMPTY_HINT = "통신 잡음 발생. 다시 요청바람."


class HintProvider(Protocol):
    """Turns a location's hint context and the player's question into a hint line."""

    async def get_hint(self, context: str, query: str) -> str: ...


class StaticHintProvider:
    """Answers every question with the location's own hint context."""

    async def get_hint(self, context: str, query: str) -> str:
        return context.strip()


async def ask_hint(provider: HintProvider, context: str, query: str) -> str:
    # the caller has already spent the hint, so this must always return text
    try:
        text = await provider.get_hint(context, query or "도움이 필요합니다.")
    except Exception:
        logger.exception("hint provider failed")
        return FALLBACK_HINT
    return text or EMPTY_HINT
