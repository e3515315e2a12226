"""Per-role generator session lifecycle.

A session is the conversation a role's generator has accumulated. Small
models drift as that conversation grows, so each role's session is dropped
after ``reset_threshold`` uses, and every session is dropped together every
``global_reset_turns`` turns.
"""

from __future__ import annotations

import logging

from adventure_engine.config import EngineConfig
from adventure_engine.models import SessionState
from adventure_engine.prompts import role_instructions

logger = logging.getLogger(__name__)


class SessionHandle:
    """Static instructions plus the prompts sent during this session."""

    def __init__(self, role: str, instructions: str, transcript_chars: int) -> None:
        self.role = role
        self.instructions = instructions
        self._transcript_chars = transcript_chars
        self._transcript: list[str] = []

    def compose(self, prompt: str) -> str:
        parts = [self.instructions] if self.instructions else []
        parts.extend(self._transcript)
        parts.append(prompt)
        return "\n\n".join(parts)

    def remember(self, prompt: str) -> None:
        self._transcript.append(prompt[: self._transcript_chars])


class SessionManager:
    def __init__(
        self,
        config: EngineConfig,
        states: dict[str, SessionState] | None = None,
        turns: int = 0,
    ) -> None:
        self._config = config
        self._states: dict[str, SessionState] = {
            role: state.model_copy() for role, state in (states or {}).items()
        }
        self._handles: dict[str, SessionHandle] = {}
        self._turns = turns

    @property
    def turns(self) -> int:
        return self._turns

    def state(self, role: str) -> SessionState:
        if role not in self._states:
            self._states[role] = SessionState(reset_threshold=self._config.session_threshold(role))
        return self._states[role]

    def get_session(self, role: str) -> SessionHandle:
        handle = self._handles.get(role)
        if handle is None:
            handle = SessionHandle(role, role_instructions(role), self._config.session_transcript_chars)
            self._handles[role] = handle
        return handle

    def record_use(self, role: str) -> None:
        self.state(role).use_count += 1

    def reset_if_needed(self, role: str) -> bool:
        state = self.state(role)
        if state.use_count < state.reset_threshold:
            return False
        logger.info("session %s reset after %d uses", role, state.use_count)
        self._reset(role)
        return True

    def increment_turn(self) -> None:
        self._turns += 1

    def global_reset_if_needed(self) -> bool:
        if self._turns < self._config.global_reset_turns:
            return False
        logger.info("global session reset after %d turns", self._turns)
        for role in list(self._states):
            self._reset(role)
        self._handles.clear()
        self._turns = 0
        return True

    def snapshot(self) -> tuple[dict[str, SessionState], int]:
        return {role: s.model_copy() for role, s in self._states.items()}, self._turns

    def _reset(self, role: str) -> None:
        self.state(role).use_count = 0
        self._handles.pop(role, None)
