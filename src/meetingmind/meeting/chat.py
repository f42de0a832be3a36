"""
Chat about a finished session.
"""

from typing import Callable, Optional

from ..errors import ProviderError, ProviderErrorKind
from ..logger import log_info, log_warning
from .models import ChatMessage, Session


class SessionChat:
    """Question-and-answer over one session's transcript."""

    def __init__(self, session: Session, factory, save: Optional[Callable[[Session], object]] = None):
        self.session = session
        self.factory = factory
        self._save = save
        self._ai = None

    @property
    def ai_provider(self):
        if self._ai is None:
            self._ai = self.factory.ai()
        return self._ai

    async def ask(self, message: str) -> ChatMessage:
        """
        Send a message and return the assistant's reply.

        The user message is recorded even when the provider fails; the
        error is raised to the caller.
        """
        # Prior turns, before this message is appended
        history = [(m.role, m.content) for m in self.session.chat_messages]

        self.session.chat_messages.append(ChatMessage(content=message, is_user=True))
        self._persist()

        try:
            reply = await self.ai_provider.chat(message, self.session.transcript_text, history)
        except ProviderError as e:
            if e.kind is not ProviderErrorKind.MODEL_UNAVAILABLE:
                raise
            log_warning(f"[Chat] {e} Retrying with the cloud provider")
            self._ai = self.factory.ai(on_device=False)
            reply = await self._ai.chat(message, self.session.transcript_text, history)

        answer = ChatMessage(content=reply, is_user=False)
        self.session.chat_messages.append(answer)
        self._persist()
        log_info(f"[Chat] Reply: {len(reply)} chars")
        return answer

    def _persist(self):
        if self._save is not None:
            self._save(self.session)
