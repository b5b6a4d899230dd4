#!/usr/bin/env python3
"""
Main entry point for the interview room.
Allows running the package with: python -m interview_room
"""
import asyncio
import os
import sys

from pydantic import ValidationError

from .config import get_config, Config
from .infrastructure.clock import LoopClock
from .interview import (
    InterviewFlow, SessionStateMachine, SessionPhase, SessionEventBus, EventLogger,
    EventType, MediaController, SpeechTurnCoordinator, QuestionService, ScoringService,
    InterviewAIEngine, Credentials, Session, SessionStateError
)
from .interview.schemas import first_validation_message
from .utils import setup_logging

COMMANDS = """
  [s] speak question   [l] start answering   [t] stop answering
  [n] next question    [p] capture photo     [v] toggle video
  [m] toggle mic       [q] quit
"""


def build_ai_client(config: Config):
    if config.ai_backend == "vertex":
        from .infrastructure.llm import VertexRestClient
        llm = VertexRestClient(
            project=config.google_cloud_project,
            location=config.vertex_location,
            model=config.model_name,
            credentials_json=config.google_application_credentials,
        )
        return InterviewAIEngine(llm, question_count=config.question_count)

    from .infrastructure.llm import EdgeFunctionClient
    return EdgeFunctionClient(config.function_url, config.supabase_key)


async def ask(prompt: str) -> str:
    return (await asyncio.to_thread(input, prompt)).strip()


def print_notice(event) -> None:
    icons = {"error": "❌", "warning": "⚠️", "success": "✅"}
    print(f"{icons.get(event.level, 'ℹ️')} {event.message}")


async def sign_in_if_needed(auth) -> None:
    if await auth.current_identity() is not None:
        return
    answer = await ask("Sign in to save your photos? [y/N] ")
    if answer.lower() != "y":
        return
    from .infrastructure.storage import AuthFailed
    try:
        credentials = Credentials(email=await ask("Email: "), password=await ask("Password: "))
    except ValidationError as e:
        print(f"❌ {first_validation_message(e)}")
        return
    try:
        await auth.sign_in(credentials)
        print("✅ Welcome back!")
    except AuthFailed as e:
        print(f"❌ {e}")


async def run_preview(preview, machine: SessionStateMachine) -> None:
    while machine.phase == SessionPhase.IN_PROGRESS:
        if not preview.render():
            break
        await asyncio.sleep(1 / 15)
    preview.detach()


async def run_questions(machine: SessionStateMachine) -> None:
    session = machine.session
    print(COMMANDS)
    while machine.phase == SessionPhase.IN_PROGRESS:
        print(f"\nQuestion {session.current_index + 1} of {len(session.questions)} "
              f"({session.progress:.0f}%): {session.current_question}")
        command = (await ask("> ")).lower()
        try:
            if command == "s":
                await machine.speak_question()
            elif command == "l":
                if machine.start_listening():
                    print("🎧 Listening... (t to stop)")
            elif command == "t":
                answer = machine.stop_listening()
                print(f"💬 \"{answer.strip() or '(no speech detected)'}\"")
            elif command == "n":
                await machine.advance()
            elif command == "p":
                if machine.capture_photo():
                    print(f"📸 Photo {len(session.captured_artifacts)}/{session.captured_artifacts.cap} captured")
            elif command == "v":
                print(f"🎥 Video {'on' if machine.toggle_video() else 'off'}")
            elif command == "m":
                print(f"🎙️ Mic {'on' if machine.toggle_mic() else 'off'}")
            elif command == "q":
                machine.shutdown()
                return
        except SessionStateError as e:
            print(f"⚠️ {e}")


def print_results(payload, analysis) -> None:
    print("\n" + "=" * 50)
    print(f"Interview complete: {payload.candidate_name} ({payload.category})")
    print(f"Score: {analysis.score}/100 ({analysis.score_band})")
    print(f"Recommendation: {analysis.recommendation_label}")
    print(f"\n{analysis.analysis}\n")
    if analysis.strengths:
        print("Strengths:")
        for item in analysis.strengths:
            print(f"  + {item}")
    if analysis.improvements:
        print("Areas for improvement:")
        for item in analysis.improvements:
            print(f"  - {item}")
    if payload.durable_artifact_url:
        print(f"\nPhotos: {payload.durable_artifact_url}")
    print("=" * 50)


async def run(config: Config, use_tts: bool) -> None:
    from .infrastructure.media import LocalMediaAcquirer, MirroredPreview
    from .infrastructure.speech import (
        GoogleSpeechSynthesizer, ConsoleSpeechSynthesizer, GoogleStreamingTranscriber
    )
    from .infrastructure.storage import SupabaseAuth, SupabaseStorage, connect

    client = connect(config.supabase_url, config.supabase_key)
    auth = SupabaseAuth(client)
    storage = SupabaseStorage(client, config.storage_bucket)
    ai_client = build_ai_client(config)

    bus = SessionEventBus()
    bus.subscribe_all(EventLogger().handle_event)
    bus.subscribe(EventType.NOTICE, print_notice)

    def make_session(session: Session) -> SessionStateMachine:
        media = MediaController(LocalMediaAcquirer())
        synthesizer = GoogleSpeechSynthesizer(config.tts_voice, config.language_code) if use_tts \
            else ConsoleSpeechSynthesizer()
        transcriber = GoogleStreamingTranscriber(lambda: media.stream.audio if media.stream else None)
        speech = SpeechTurnCoordinator(
            synthesizer, transcriber,
            language=config.language_code, rate=config.speech_rate, pitch=config.speech_pitch,
        )
        return SessionStateMachine(
            session=session,
            question_service=QuestionService(ai_client, config.question_count),
            media=media,
            speech=speech,
            clock=LoopClock(),
            auth=auth,
            storage=storage,
            event_bus=bus,
            capture_offsets=config.capture_offsets,
            signed_url_ttl=config.signed_url_ttl,
        )

    flow = InterviewFlow(make_session, ScoringService(ai_client), config.categories, config.max_captures)
    await sign_in_if_needed(auth)

    while True:
        try:
            flow.submit_name(await ask("Your name: "))
            break
        except ValueError as e:
            print(f"❌ {e}")

    ids = list(flow.categories)
    for i, category_id in enumerate(ids, 1):
        print(f"  {i}. {flow.categories[category_id]}")
    while flow.category is None:
        choice = await ask("Category: ")
        try:
            flow.select_category(ids[int(choice) - 1] if choice.isdigit() else choice)
        except (ValueError, IndexError):
            print("❌ Pick one of the listed categories")

    machine = flow.start_interview()
    print(f"\n🔍 Preparing your {flow.category_name} interview...")
    while not await machine.load_questions():
        if (await ask("Retry? [Y/n] ")).lower() == "n":
            flow.restart()
            return

    preview = MirroredPreview()
    while machine.phase == SessionPhase.AWAITING_MEDIA:
        await ask("Press Enter to enable camera and microphone...")
        await machine.enable_media(preview)

    preview_task = asyncio.create_task(run_preview(preview, machine))
    try:
        await run_questions(machine)
    finally:
        machine.shutdown()
        await preview_task

    if not machine.is_complete:
        print("👋 Interview abandoned")
        return

    payload = flow.complete()
    print("\n🧠 Analyzing your interview...")
    analysis = await flow.score()
    print_results(payload, analysis)


def main():
    """Command-line interface for the interview room."""

    # Flags override environment before configuration is validated
    for arg in sys.argv[1:]:
        if arg.startswith("--backend="):
            backend = arg.split("=", 1)[1]
            if backend not in ("function", "vertex"):
                print("❌ Invalid backend. Use --backend=function or --backend=vertex")
                sys.exit(1)
            os.environ["INTERVIEW_AI_BACKEND"] = backend

    try:
        config = get_config()
    except ValueError as e:
        print(f"❌ Configuration Error: {e}")
        sys.exit(1)

    use_tts = config.enable_tts and "--text" not in sys.argv
    if use_tts:
        print("🔊 Speech Mode: questions will be spoken aloud")
        print("   (Use --text to disable speech)")
    else:
        print("📝 Text Mode: questions will be displayed as text only")

    setup_logging(config.log_file, config.log_level)

    try:
        asyncio.run(run(config, use_tts))
    except KeyboardInterrupt:
        print("\n👋 Bye")


if __name__ == "__main__":
    main()
