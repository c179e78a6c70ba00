"""Chat command router sitting between a transport and the session manager."""

from __future__ import annotations

from typing import Protocol

from medsim_api.core.errors import SessionStateError
from medsim_api.core.logging import get_logger
from medsim_api.domain.enums import Difficulty, UserLevel
from medsim_api.services.formatting import (
    HELP_TEXT,
    WELCOME_TEXT,
    format_case,
    format_evaluation,
    format_hints,
    format_levels,
    format_stats,
)
from medsim_api.services.sessions import CaseSessionManager

logger = get_logger(__name__)

GENERATING_NOTICE = "Generating a new emergency department case, please wait..."
EVALUATING_NOTICE = "Evaluating your response..."

# Bare numeric replies pick a training level while no case is open.
LEVEL_SHORTCUTS = {
    "1": UserLevel.STUDENT,
    "2": UserLevel.RESIDENT,
    "3": UserLevel.ATTENDING,
}


class ChatTransport(Protocol):
    async def send(self, user_id: str, text: str) -> None: ...


class ChatService:
    """Maps inbound chat text onto session operations and renders the replies."""

    def __init__(self, manager: CaseSessionManager, transport: ChatTransport | None = None) -> None:
        self._manager = manager
        self._transport = transport

    async def handle(self, user_id: str, text: str) -> list[str]:
        text = text.strip()
        if not text:
            return []
        command, _, argument = text.partition(" ")
        if not command.startswith("/"):
            if text in LEVEL_SHORTCUTS:
                session = await self._manager.session(user_id)
                if session.active_case is None:
                    return await self._set_level(user_id, LEVEL_SHORTCUTS[text])
            return await self._submit(user_id, text)

        # Telegram-style "/practice@botname" suffixes are ignored.
        name = command[1:].split("@", 1)[0].lower()
        argument = argument.strip().lower()
        log = logger.bind(user_id=user_id, command=name)
        log.debug("chat_command_received")
        try:
            if name == "start":
                await self._manager.session(user_id)
                return [WELCOME_TEXT]
            if name == "help":
                return [HELP_TEXT]
            if name == "practice":
                return await self._practice(user_id, argument)
            if name == "cancel":
                await self._manager.cancel(user_id)
                return ["Case cancelled. Use /practice to start a new one."]
            if name == "hint":
                return [format_hints(await self._manager.hints(user_id))]
            if name in {"stats", "progress"}:
                return [format_stats(await self._manager.stats(user_id))]
            if name == "level":
                return await self._level(user_id, argument)
            if name in {"list", "scenarios"}:
                session = await self._manager.session(user_id)
                return [format_levels(session.level)]
        except SessionStateError as exc:
            log.info("chat_command_rejected", reason=str(exc))
            return [str(exc)]
        return [f"Unknown command /{name}. Use /help to see what I can do."]

    async def deliver(self, user_id: str, text: str) -> list[str]:
        """Handle ``text`` and push each reply through the transport."""
        replies = await self.handle(user_id, text)
        if self._transport is None:
            return replies
        for reply in replies:
            await self._transport.send(user_id, reply)
        return replies

    async def _practice(self, user_id: str, argument: str) -> list[str]:
        difficulty: Difficulty | None = None
        if argument:
            try:
                difficulty = Difficulty(argument)
            except ValueError:
                return [
                    f"Unknown difficulty '{argument}'. "
                    "Choose one of: basic, intermediate, advanced."
                ]
        active = await self._manager.request_case(user_id, difficulty)
        if active is None:
            return [GENERATING_NOTICE, "The case request was cancelled."]
        return [GENERATING_NOTICE, format_case(active.case, source=active.source)]

    async def _level(self, user_id: str, argument: str) -> list[str]:
        if not argument:
            session = await self._manager.session(user_id)
            return [
                f"Your training level is {session.level.value}. "
                "Change it with /level student, /level resident or /level attending, "
                "or reply 1, 2 or 3."
            ]
        try:
            level = UserLevel(argument)
        except ValueError:
            return [f"Unknown level '{argument}'. Choose one of: student, resident, attending."]
        return await self._set_level(user_id, level)

    async def _set_level(self, user_id: str, level: UserLevel) -> list[str]:
        await self._manager.set_level(user_id, level)
        return [
            f"Training level set to {level.value}. "
            f"New cases default to {level.default_difficulty.value} difficulty."
        ]

    async def _submit(self, user_id: str, text: str) -> list[str]:
        try:
            outcome = await self._manager.submit(user_id, text)
        except SessionStateError as exc:
            return [str(exc)]
        if outcome is None:
            return [EVALUATING_NOTICE, "The case was cancelled before feedback was ready."]
        logger.info(
            "chat_submission_evaluated",
            user_id=user_id,
            correct_diagnosis=outcome.evaluation.correct_diagnosis,
        )
        return [EVALUATING_NOTICE, *format_evaluation(outcome)]


__all__ = ["ChatService", "ChatTransport", "EVALUATING_NOTICE", "GENERATING_NOTICE"]
