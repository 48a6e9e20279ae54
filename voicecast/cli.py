"""CLI interface with subcommand routing and pipeline orchestration."""

import argparse
import asyncio
import contextlib
import json
import logging
import os
import signal
import sys
from datetime import datetime, timezone

from voicecast.artifacts import init_episode_dir, write_manifest
from voicecast.config import Settings, load_settings
from voicecast.constants import VERSION
from voicecast.costs import calculate_cost
from voicecast.elevenlabs import ElevenLabsClient
from voicecast.errors import ConfigurationError, ProcessorStateError
from voicecast.mapper import SpeakerMapper
from voicecast.models import VoiceSettings
from voicecast.parser import clean_dialogue, parse_script
from voicecast.processor import TTSProcessor
from voicecast.reporting import health_check, log_export
from voicecast.storage import JsonFileStore


def _fail(message: str) -> None:
    print(f"Error: {message}", file=sys.stderr)
    raise SystemExit(1)


def _read_script(path: str) -> str:
    if not os.path.exists(path):
        _fail(f"File not found: {path}")
    with open(path, encoding="utf-8") as f:
        return f.read()


def _settings() -> Settings:
    try:
        return load_settings()
    except ConfigurationError as e:
        _fail(str(e))


def _client(settings: Settings, output_dir: str | None = None) -> ElevenLabsClient:
    try:
        api_key = settings.require_api_key()
    except ConfigurationError as e:
        _fail(str(e))
    return ElevenLabsClient(
        api_key,
        output_dir=output_dir or settings.output_dir,
        base_url=settings.base_url,
        model_id=settings.model_id,
        output_format=settings.output_format,
        timeout=settings.timeout,
    )


def _load_mapper(settings: Settings, voice_client=None) -> SpeakerMapper:
    mapper = SpeakerMapper(store=JsonFileStore(settings.store_path), voice_client=voice_client)
    mapper.load_mapping()
    return mapper


def cmd_parse(args):
    """Parse a script and report speakers, dialogue stats and cost."""
    settings = _settings()
    result = parse_script(_read_script(args.file))

    if not result.dialogues:
        print("No speaker cues found.")
        return

    stats = result.stats
    print(f"Speakers: {', '.join(result.speakers)}")
    print(f"Dialogues: {stats['total_dialogues']} ({stats['total_stage_directions']} stage directions removed)")
    print(f"Characters: {stats['total_characters']} spoken / {result.total_characters} in file")
    for speaker, info in stats["speaker_breakdown"].items():
        print(f"  {speaker:<15} {info['dialogue_count']:>4} lines  {info['character_count']:>7} chars  {info['percentage']:>3}%")

    estimate = calculate_cost(stats["total_characters"], args.quota_used, settings.subscription_quota)
    if estimate.within_quota:
        print(f"Cost: within quota ({estimate.quota_remaining} characters remaining)")
    else:
        print(f"Cost: ${estimate.cost:.4f} for {estimate.overage_characters} overage characters [{estimate.warning}]")


def cmd_voices(args):
    """List voices from the catalog."""
    client = _client(_settings())

    async def fetch():
        async with client:
            mapper = SpeakerMapper(voice_client=client)
            voices = await mapper.fetch_voices()
            return voices, mapper.last_fetch_error

    voices, error = asyncio.run(fetch())
    if error is not None:
        _fail(f"Could not fetch voices: {error}")

    if args.filter:
        needle = args.filter.lower()
        voices = [v for v in voices if needle in v["name"].lower()]
    if not voices:
        print("No matching voices found.")
        return
    print("Available voices:")
    for v in voices:
        print(f"  {v['voice_id']}  {v['name']:<20} {v['category']}")


def cmd_map(args):
    """Assign a voice to a speaker and save the mapping."""
    settings = _settings()
    mapper = _load_mapper(settings)

    overrides = {
        "stability": args.stability,
        "similarity_boost": args.similarity_boost,
        "style": args.style,
        "use_speaker_boost": None if args.speaker_boost is None else args.speaker_boost == "on",
    }
    try:
        voice_settings = VoiceSettings.from_dict(overrides)
    except ValueError as e:
        _fail(str(e))

    mapper.map_speaker_to_voice(args.speaker, args.voice_id, voice_settings)
    if not mapper.save_mapping():
        _fail(f"Could not save mapping to {settings.store_path}")
    print(f"Updated: {args.speaker} → {args.voice_id}")


def cmd_unmap(args):
    """Remove a speaker from the mapping."""
    settings = _settings()
    mapper = _load_mapper(settings)
    if not mapper.remove_speaker(args.speaker):
        _fail(f"Speaker '{args.speaker}' is not mapped")
    if not mapper.save_mapping():
        _fail(f"Could not save mapping to {settings.store_path}")
    print(f"Removed: {args.speaker}")


def cmd_mapping(args):
    """Show the saved mapping, optionally validated against a script."""
    settings = _settings()
    mapper = _load_mapper(settings)
    mapping = mapper.get_speaker_mapping()

    if not mapping:
        print("No speakers mapped.")
    for speaker, profile in mapping.items():
        s = profile.settings
        print(
            f"  {speaker:<15} → {profile.voice_id} "
            f"(stability={s.stability}, similarity={s.similarity_boost}, "
            f"style={s.style}, speaker_boost={'on' if s.use_speaker_boost else 'off'})"
        )

    if args.file:
        result = parse_script(_read_script(args.file))
        validation = mapper.validate_mapping(result.speakers)
        if validation.is_valid:
            print(f"All {len(result.speakers)} speakers are mapped.")
        else:
            print(f"Unmapped speakers: {', '.join(validation.unmapped_speakers)}")
        for dup in validation.duplicate_voices:
            print(f"Warning: {dup['voice_id']} is used for multiple speakers: {', '.join(dup['speakers'])}")


async def _run_queue(processor: TTSProcessor, mapping: dict) -> None:
    loop = asyncio.get_running_loop()
    with contextlib.suppress(NotImplementedError):
        loop.add_signal_handler(signal.SIGINT, processor.stop_processing)
    try:
        await processor.start_processing(mapping)
    finally:
        with contextlib.suppress(NotImplementedError):
            loop.remove_signal_handler(signal.SIGINT)


def cmd_run(args):
    """Parse a script and synthesize one clip per dialogue unit."""
    settings = _settings()
    result = parse_script(_read_script(args.file))
    if not result.dialogues:
        _fail(f"Could not parse any dialogue from: {args.file}")
    if not settings.api_key:
        _fail("ElevenLabs API key not configured. Set ELEVENLABS_API_KEY in the environment or a .env file.")

    mapper = _load_mapper(settings)
    validation = mapper.validate_mapping(result.speakers)
    if not validation.is_valid:
        print(
            f"Warning: no voice mapped for {', '.join(validation.unmapped_speakers)}; their lines will fail.",
            file=sys.stderr,
        )

    episode_dir = init_episode_dir(args.file, output_base=args.output_dir or settings.output_dir)
    throttle = settings.throttle if args.throttle is None else args.throttle
    started_at = datetime.now(timezone.utc)

    async def run():
        async with _client(settings, output_dir=episode_dir) as client:
            extension = ".wav" if client.output_format.startswith("pcm_") else ".mp3"
            processor = TTSProcessor(client, throttle_delay=throttle, file_extension=extension)
            for unit in result.dialogues:
                cleaned, _ = clean_dialogue(unit.text)
                processor.queue_dialogue(unit.speaker, cleaned, unit.original_index)

            processor.on_progress(
                lambda done, total, unit: print(f"  [{done}/{total}] {unit.id}")
            )
            processor.on_failure(
                lambda r: print(f"  [failed] {r.unit.id}: {r.error_message}", file=sys.stderr)
            )
            print(f"Generating {len(processor.queue)} clips into {episode_dir}...")
            mapping = mapper.get_speaker_mapping()
            await _run_queue(processor, mapping)

            if args.retry_failed and processor.failed and not processor.was_cancelled:
                print(f"Retrying {processor.retry_failed()} failed clips...")
                await _run_queue(processor, mapping)
            return processor

    try:
        processor = asyncio.run(run())
    except ProcessorStateError as e:
        _fail(str(e))

    manifest_path = write_manifest(episode_dir, processor, source=os.path.abspath(args.file), started_at=started_at)
    stats = processor.get_stats()
    log_export("tts", os.path.basename(manifest_path), stats.completed)

    if processor.was_cancelled:
        print(f"Cancelled: {stats.remaining} clips left pending.")
    print(f"Done: {stats.completed} completed, {stats.failed} failed, {stats.remaining} remaining")
    print(f"Manifest: {manifest_path}")


def cmd_health(args):
    """Print the health payload."""
    print(json.dumps(health_check(), indent=2))


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="voicecast",
        description="Voicecast: turn screenplay scripts into per-speaker voice clips",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show informational log output")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # parse
    parse_parser = subparsers.add_parser("parse", help="Parse a script and show speakers and stats")
    parse_parser.add_argument("file", help="Path to the script file")
    parse_parser.add_argument("--quota-used", type=int, default=0, help="Characters already used this period")
    parse_parser.set_defaults(func=cmd_parse)

    # voices
    voices_parser = subparsers.add_parser("voices", help="List available voices")
    voices_parser.add_argument("--filter", help="Filter voices by name substring")
    voices_parser.set_defaults(func=cmd_voices)

    # map
    map_parser = subparsers.add_parser("map", help="Assign a voice to a speaker")
    map_parser.add_argument("speaker", help="Speaker name as written in the script")
    map_parser.add_argument("voice_id", help="Voice id from 'voicecast voices'")
    map_parser.add_argument("--stability", type=float)
    map_parser.add_argument("--similarity-boost", type=float)
    map_parser.add_argument("--style", type=float)
    map_parser.add_argument("--speaker-boost", choices=("on", "off"))
    map_parser.set_defaults(func=cmd_map)

    # unmap
    unmap_parser = subparsers.add_parser("unmap", help="Remove a speaker's voice")
    unmap_parser.add_argument("speaker", help="Speaker name")
    unmap_parser.set_defaults(func=cmd_unmap)

    # mapping
    mapping_parser = subparsers.add_parser("mapping", help="Show the speaker mapping")
    mapping_parser.add_argument("file", nargs="?", help="Validate the mapping against this script")
    mapping_parser.set_defaults(func=cmd_mapping)

    # run
    run_parser = subparsers.add_parser("run", help="Generate clips for every dialogue in a script")
    run_parser.add_argument("file", help="Path to the script file")
    run_parser.add_argument("--output-dir", help="Base output directory")
    run_parser.add_argument("--throttle", type=float, help="Seconds to wait between clips")
    run_parser.add_argument("--retry-failed", action="store_true", help="Give failed clips one more attempt")
    run_parser.set_defaults(func=cmd_run)

    # health
    health_parser = subparsers.add_parser("health", help="Print service health")
    health_parser.set_defaults(func=cmd_health)

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        return

    args.func(args)
