"""
Tests for chatting about a finished session.
"""

import pytest
from fakes import FakeAssistant, FakeFactory, RecordingSave

from meetingmind.errors import ProviderError, ProviderErrorKind
from meetingmind.meeting.chat import SessionChat
from meetingmind.meeting.models import ChatMessage, Session


def finished_session() -> Session:
    return Session(title="Budget", transcript_text="we approved the budget for next year")


class TestSessionChat:

    @pytest.mark.asyncio
    async def test_reply_is_recorded_and_persisted(self):
        assistant = FakeAssistant(chat_reply="It was approved.")
        save = RecordingSave()
        session = finished_session()
        chat = SessionChat(session, FakeFactory(assistant=assistant), save)

        answer = await chat.ask("Was the budget approved?")

        assert answer.content == "It was approved."
        assert not answer.is_user
        assert [(m.role, m.content) for m in session.chat_messages] == [
            ("user", "Was the budget approved?"),
            ("assistant", "It was approved."),
        ]
        assert save.count == 2
        assert assistant.chat_calls[0][1] == session.transcript_text

    @pytest.mark.asyncio
    async def test_history_excludes_current_message(self):
        assistant = FakeAssistant()
        session = finished_session()
        session.chat_messages.extend([
            ChatMessage(content="Who attended?", is_user=True),
            ChatMessage(content="Ana and Luis.", is_user=False),
        ])
        chat = SessionChat(session, FakeFactory(assistant=assistant))

        await chat.ask("Anything else?")

        message, _, history = assistant.chat_calls[0]
        assert message == "Anything else?"
        assert history == [("user", "Who attended?"), ("assistant", "Ana and Luis.")]

    @pytest.mark.asyncio
    async def test_model_unavailable_retries_on_cloud(self):
        local = FakeAssistant(chat_error=ProviderError(ProviderErrorKind.MODEL_UNAVAILABLE, "not loaded"),
                              on_device=True)
        cloud = FakeAssistant(chat_reply="From the cloud.")
        factory = FakeFactory(assistant=local, cloud_assistant=cloud)
        chat = SessionChat(finished_session(), factory)

        answer = await chat.ask("Summarize")

        assert answer.content == "From the cloud."
        assert factory.ai_requests == [True, False]
        assert chat.ai_provider is cloud

    @pytest.mark.asyncio
    async def test_other_errors_propagate(self):
        failing = FakeAssistant(chat_error=ProviderError.network_failure("Claude", "offline"))
        save = RecordingSave()
        session = finished_session()
        chat = SessionChat(session, FakeFactory(assistant=failing), save)

        with pytest.raises(ProviderError) as exc_info:
            await chat.ask("Hello?")

        assert exc_info.value.kind is ProviderErrorKind.NETWORK_FAILURE
        # The question stays in the history
        assert [m.content for m in session.chat_messages] == ["Hello?"]
        assert save.count == 1
