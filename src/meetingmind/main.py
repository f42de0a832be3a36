"""
MeetingMind terminal entry point.

    meetingmind                          record a session (Enter stops it)
    meetingmind record --title "Standup"
    meetingmind chat SESSION_ID "What did we decide?"
    meetingmind list
"""

import argparse
import asyncio
import sys
from typing import Optional

from dotenv import load_dotenv

from .credentials import CredentialStore
from .errors import ProviderError
from .logger import MeetingMindLogger, log_error, log_info
from .meeting.capture import AudioCapture, AudioSettings
from .meeting.chat import SessionChat
from .meeting.session import SessionConfig, SessionOrchestrator
from .meeting.storage import SessionStore, format_duration
from .providers import ProviderFactory, ProviderPreferences
from .utils import ConfigManager


def setup(config_path: Optional[str] = None):
    """Load .env, configuration and logging."""
    load_dotenv()
    ConfigManager.initialize(config_path=config_path)

    MeetingMindLogger.set_level(ConfigManager.get_config_value('misc', 'log_level') or 'INFO')
    if ConfigManager.get_config_value('misc', 'print_to_terminal'):
        MeetingMindLogger.enable_console()


def build_factory() -> ProviderFactory:
    preferences = ProviderPreferences.from_config(ConfigManager.get_config_section('providers'))
    return ProviderFactory(preferences, CredentialStore())


def build_store() -> SessionStore:
    return SessionStore(ConfigManager.get_config_value('storage', 'sessions_dir'))


async def record(title: Optional[str]) -> int:
    store = build_store()
    orchestrator = SessionOrchestrator(
        factory=build_factory(),
        audio_source=AudioCapture(AudioSettings.from_config(ConfigManager.get_config_section('audio'))),
        save=store.save,
        config=SessionConfig.from_config(ConfigManager.get_config_section('session_options')),
        audio_path_for=store.audio_path_for,
    )

    def on_change(field_name, value):
        if field_name == "transcript_text" and value:
            print(f"\r\033[K{value[-100:]}", end="", flush=True)
        elif field_name == "live_questions" and value:
            print(f"\n[?] {value[-1].text}")
        elif field_name == "error" and value:
            print(f"\n[!] {value}")

    orchestrator.add_listener(on_change)

    if not await orchestrator.start_recording(title):
        return 1

    print("Recording... press Enter to stop.")
    try:
        await asyncio.to_thread(sys.stdin.readline)
        print("\nFinalizing...")
        orchestrator.stop_recording()
        await orchestrator.wait_until_ready()
        await orchestrator.wait_for_pending_questions()
    finally:
        await orchestrator.close()

    session = orchestrator.current_session
    print_session(session)
    path = store.export_markdown(session)
    print(f"\nSaved to: {path}")
    return 0


async def chat(session_id: str, message: str) -> int:
    store = build_store()
    try:
        session = store.load(session_id)
    except FileNotFoundError:
        print(f"No session with id {session_id}")
        return 1

    try:
        reply = await SessionChat(session, build_factory(), save=store.save).ask(message)
    except ProviderError as e:
        log_error(f"[Main] Chat failed: {e}")
        print(f"Chat failed: {e}")
        return 1
    print(reply.content)
    return 0


def list_sessions() -> int:
    sessions = build_store().list_sessions()
    if not sessions:
        print("No sessions recorded yet.")
        return 0
    for session in sessions:
        print(f"{session.id}  {session.started_at:%Y-%m-%d %H:%M}  "
              f"{format_duration(session.duration):>8}  {session.status.value:<10}  {session.title}")
    return 0


def print_session(session):
    print(f"\n# {session.title} ({format_duration(session.duration)})")
    if session.summary_text:
        print(f"\n{session.summary_text}")
    if session.key_points:
        print("\nKey points:")
        for point in session.key_points:
            print(f"  - {point}")
    if session.action_items:
        print("\nAction items:")
        for item in session.action_items:
            print(f"  - {item}")
    if session.questions:
        print("\nQuestions:")
        for question in session.questions:
            print(f"  - {question.text}")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="meetingmind", description="Live meeting transcription and notes")
    parser.add_argument("--config", help="Path to a config.yaml with overrides")
    subparsers = parser.add_subparsers(dest="command")

    record_parser = subparsers.add_parser("record", help="Record a session (default)")
    record_parser.add_argument("--title", "-t", help="Session title")

    chat_parser = subparsers.add_parser("chat", help="Ask a question about a recorded session")
    chat_parser.add_argument("session_id", help="Session id (see 'list')")
    chat_parser.add_argument("message", help="Your question")

    subparsers.add_parser("list", help="List recorded sessions")

    args = parser.parse_args(argv)
    setup(args.config)
    log_info(f"[Main] Command: {args.command or 'record'}")

    if args.command == "chat":
        return asyncio.run(chat(args.session_id, args.message))
    if args.command == "list":
        return list_sessions()
    return asyncio.run(record(getattr(args, "title", None)))


if __name__ == "__main__":
    sys.exit(main())
