# recruitflow/services/chat/assistant.py
"""Project Q&A assistant grounded on the session's canonical phase data."""
from __future__ import annotations

import json
import logging

from recruitflow.core.errors import GenerationError
from recruitflow.schemas.phases import Phase
from recruitflow.schemas.project import ChatMessage
from recruitflow.services.common.llm_client import load_prompt
from recruitflow.services.phases.service import PipelineSession
from recruitflow.services.persistence.adapter import strip_undefined

logger = logging.getLogger("pipeline.chat")

CHAT_PROMPT = load_prompt("chat/assistant.prompt.txt")
CHAT_USAGE_LABEL = "Chat Assistant"
APOLOGY = "Sorry, something went wrong while asking the AI. Please try again."
MAX_HISTORY_TURNS = 20


class ChatAssistant:
    def __init__(self, session: PipelineSession):
        self.session = session

    def _project_data(self) -> str:
        m = self.session.machine
        sections = [
            ("PHASE 1 - ALIGNMENT", m.phase1, "Not filled in yet."),
            ("PHASE 2 - INTERVIEWS", [{"name": c.name, "data": c.phase2_data} for c in m.candidates] or None,
             "No interviews processed yet."),
            ("PHASE 3 - SHORTLIST", m.shortlist or None, "Shortlist not generated yet."),
            ("PHASE 4 - DECISION", m.canonical(Phase.DECISION), "Decision report not generated yet."),
        ]
        parts = [f"=== PROJECT {self.session.context.project_id or 'N/A'} ==="]
        for title, value, empty in sections:
            body = json.dumps(strip_undefined(value), ensure_ascii=False, indent=2) if value is not None else empty
            parts.append(f"[{title}]\n{body}")
        return "\n\n".join(parts)

    def _user_prompt(self, message: str) -> str:
        history = self.session.machine.chat_history[-MAX_HISTORY_TURNS:]
        lines = [f"{'USER' if m.role == 'user' else 'ASSISTANT'}: {m.text}" for m in history]
        lines.append(f"USER: {message}")
        return "CONVERSATION:\n" + "\n".join(lines)

    async def ask(self, message: str) -> str:
        session = self.session
        system_prompt = f"{CHAT_PROMPT}\n\n{self._project_data()}"
        user_prompt = self._user_prompt(message)
        session.machine.chat_history.append(ChatMessage(role="user", text=message))
        try:
            reply = await session.client.generate_text(
                system_prompt,
                user_prompt,
                session.context.usage_tags(phase=CHAT_USAGE_LABEL),
            )
        except GenerationError as e:
            logger.error("Chat generation failed: %s", e)
            reply = None
        else:
            session.machine.chat_history.append(ChatMessage(role="model", text=reply))
        finally:
            session.save()
        return reply if reply is not None else APOLOGY
