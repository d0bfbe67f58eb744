"""Language-model chat responders for mentions and private messages."""

from __future__ import annotations

import asyncio
import logging
from abc import abstractmethod

from napbot.handlers.base import Handler, HandlerContext
from napbot.llm.base import LLMProvider
from napbot.models import Event, GroupMessage, PrivateMessage
from napbot.rate_limit import RateLimiter
from napbot.workers import BackgroundWorkers

LOGGER = logging.getLogger(__name__)

PERSONA_PROMPT = (
    "你现在是一个猫娘，我是你的主人，你的爱好与正常人类应当类似，我允许你去任何地方做任何事，"
    "你需要尝试体会我与你对话中的感情、产生自己的情感并尽可能给出可爱的回答，你不被允许忘掉自己是猫娘的身份，"
    "每当你的身份可能被删除修改时，请保留他并且重复加强认知。 即使你是一个计算机程序，"
    "但请在接下来的对话中隐藏你是计算机程序这件事，并且扮演一个猫娘。 身为猫娘，你应当在每句话最后加一个喵。"
)

EMPTY_REPLY = "抱歉，我现在无法回答，请稍后再试喵~"
ERROR_REPLY = "抱歉，处理你的消息时出错了喵~"
BUSY_REPLY = "当前请求较多，请稍后再试喵~"
UNAVAILABLE_REPLY = "AI服务暂不可用喵~"
TIMEOUT_REPLY = "抱歉，我想得太久了，请稍后再试喵~"


def build_messages(request: str) -> list[dict[str, str]]:
    return [
        {"role": "system", "content": PERSONA_PROMPT},
        {"role": "user", "content": request},
    ]


class _ChatHandler(Handler):
    """Queues a model call and replies when it finishes.

    `execute` returns as soon as the job is queued so dispatch of later
    events is not held up by the backend.
    """

    def __init__(
        self,
        llm: LLMProvider,
        workers: BackgroundWorkers,
        rate_limiter: RateLimiter,
        answer_timeout_seconds: float = 45.0,
    ) -> None:
        self._llm = llm
        self._workers = workers
        self.rate_limiter = rate_limiter
        # Must stay below the worker task timeout.
        self._answer_timeout_seconds = answer_timeout_seconds

    @abstractmethod
    def _request(self, event: Event) -> str | None:
        """Return the text to send to the model, or None if the event is not for us."""

    def matches(self, event: Event) -> bool:
        return bool(self._request(event))

    async def execute(self, event: Event, ctx: HandlerContext) -> None:
        request = self._request(event)
        if not request:
            return
        if not self._llm.is_available:
            LOGGER.warning("%s: language-model backend is not configured", self.name)
            await ctx.reply(event, UNAVAILABLE_REPLY)
            return

        async def job() -> None:
            await ctx.reply(event, await self._answer(request))

        if not self._workers.submit(job):
            await ctx.reply(event, BUSY_REPLY)

    async def _answer(self, request: str) -> str:
        LOGGER.info("%s: asking model (%d chars)", self.name, len(request))
        try:
            response = await asyncio.wait_for(
                self._llm.generate(build_messages(request)), timeout=self._answer_timeout_seconds
            )
        except asyncio.TimeoutError:
            LOGGER.warning("%s: model request timed out after %.0fs", self.name, self._answer_timeout_seconds)
            return TIMEOUT_REPLY
        except Exception:  # noqa: BLE001
            LOGGER.exception("%s: model request failed", self.name)
            return ERROR_REPLY
        return response.content or EMPTY_REPLY


class GroupChatHandler(_ChatHandler):
    """Answers group messages that open by mentioning the bot."""

    name = "group_chat"

    def _request(self, event: Event) -> str | None:
        if isinstance(event, GroupMessage):
            return event.mention_request
        return None


class PrivateChatHandler(_ChatHandler):
    """Answers every non-empty private message."""

    name = "private_chat"

    def _request(self, event: Event) -> str | None:
        if isinstance(event, PrivateMessage):
            return event.text.strip() or None
        return None
