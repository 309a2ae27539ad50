"""
Talk With Doc CLI
"""

import asyncio
import logging
import os
import uuid
from pathlib import Path
from typing import Optional

import typer
import uvicorn

from talk_with_doc.core.settings import Settings
from talk_with_doc.core.settings import reload_settings

app = typer.Typer(help="Talk With Doc CLI")


def _load_settings(config: Optional[str]) -> Settings:
    if config:
        os.environ["TWD_CONFIG"] = config
    return reload_settings()


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Host to bind to"),
    port: Optional[int] = typer.Option(None, help="Port to bind to"),
    reload: bool = typer.Option(False, help="Enable auto-reload"),
    config: Optional[str] = typer.Option(None, help="Config file path"),
):
    """Run the voice server."""
    settings = _load_settings(config)

    uvicorn.run(
        "talk_with_doc.app.main:create_app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        factory=True,
    )


@app.command()
def ask(
    question: str = typer.Argument(..., help="Question about the document"),
    doc: Optional[Path] = typer.Option(None, exists=True, dir_okay=False, help="Document text file"),
    config: Optional[str] = typer.Option(None, help="Config file path"),
):
    """Run one text turn of the critic/creative dialogue and print it."""
    from talk_with_doc.app.services.init import build_orchestrator
    from talk_with_doc.app.services.init import create_provider_pool
    from talk_with_doc.dialogue.router import ModelRoutingJudge
    from talk_with_doc.voice.generation import OpenAIAudioGenerator

    settings = _load_settings(config)
    logging.basicConfig(level=logging.WARNING)
    document = doc.read_text(encoding="utf-8") if doc else ""

    async def run():
        provider_pool = create_provider_pool(settings)
        await provider_pool.initialize()
        try:
            generator = OpenAIAudioGenerator(
                provider_pool,
                model=settings.persona_model,
                text_model=settings.text_fallback_model,
                audio_format=settings.persona_audio_format,
            )
            orchestrator = build_orchestrator(
                settings, generator, ModelRoutingJudge(provider_pool, settings.router_model)
            )

            async def show(message):
                typer.echo(f"{message.speaker}: {message.text}")

            return await orchestrator.run_turn(question, document, on_output=show)
        finally:
            await provider_pool.shutdown()

    result = asyncio.run(run())
    if not result.outputs:
        typer.echo("No reply.", err=True)
        raise typer.Exit(code=1)


@app.command()
def talk(
    document_id: str = typer.Option(..., help="Document to talk about"),
    user_id: str = typer.Option("cli-user", help="User identifier"),
    session_id: Optional[str] = typer.Option(None, help="Session identifier"),
    url: Optional[str] = typer.Option(None, help="Voice WebSocket URL"),
    config: Optional[str] = typer.Option(None, help="Config file path"),
):
    """Talk to the critic and the creative through the microphone."""
    from talk_with_doc.client.capture import VoiceCapture
    from talk_with_doc.client.microphone import MicrophoneCapture
    from talk_with_doc.client.microphone import MicrophoneError
    from talk_with_doc.client.playback import FfplayPlayer
    from talk_with_doc.client.streaming import AudioStreamingClient
    from talk_with_doc.client.vad import VoiceActivityMonitor

    settings = _load_settings(config)
    logging.basicConfig(level=settings.log_level.upper())

    async def run():
        client = AudioStreamingClient(
            url or settings.ws_url,
            user_id=user_id,
            session_id=session_id or str(uuid.uuid4()),
            document_id=document_id,
            player=FfplayPlayer(),
            sample_rate=settings.sample_rate,
        )

        async def show_transcript(event):
            if event.get("text"):
                typer.echo(f"you: {event['text']}")

        async def show_reply(event):
            typer.echo(f"{event.get('agentId')}: {event.get('text')}")

        async def show_error(event):
            typer.echo(f"error: {event.get('message')}", err=True)

        client.on_transcript = show_transcript
        client.on_agent_response = show_reply
        client.on_error = show_error

        microphone = MicrophoneCapture(
            sample_rate=settings.sample_rate,
            block_size=settings.vad.chunk_size,
            analysis_window=settings.vad.analysis_window,
        )
        capture = VoiceCapture(client, microphone, VoiceActivityMonitor(settings.vad))

        await client.connect()
        try:
            await capture.run()
        except MicrophoneError as e:
            typer.echo(e.user_message, err=True)
            raise typer.Exit(code=1) from e
        finally:
            await client.disconnect()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        typer.echo("Bye.")


if __name__ == "__main__":
    app()
