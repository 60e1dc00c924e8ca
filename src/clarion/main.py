"""Clarion CLI - read text aloud from the terminal."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from .config.settings import ClarionConfig, create_example_env_file, load_config, setup_logging
from .core.events import SpeechStatus
from .core.speech import SpeechOrchestrator
from .text.language import LANGUAGE_VOICES

logger = logging.getLogger("Clarion")


def _read_text(args: argparse.Namespace) -> str:
    if args.file == "-" or (args.file is None and not args.text):
        return sys.stdin.read()
    if args.file:
        return Path(args.file).read_text(encoding="utf-8")
    return " ".join(args.text)


async def run_speak(config: ClarionConfig, text: str, voice: Optional[str]) -> int:
    orchestrator = SpeechOrchestrator(config)
    if voice:
        orchestrator.set_voice(voice)

    def on_status(status: SpeechStatus) -> None:
        logger.debug("Status: %s session_open=%s", status.state.value, status.is_session_open)

    orchestrator.add_status_listener(on_status)
    try:
        utterance = await orchestrator.speak(text)
        if utterance is None:
            print("Nothing to speak (is DEEPGRAM_API_KEY set?)")
            return 1
        await orchestrator.wait_until_idle()
        return 0
    finally:
        await orchestrator.shutdown()
        orchestrator.remove_status_listener(on_status)


async def run_test_connection(config: ClarionConfig, key: Optional[str]) -> int:
    api_key = key or config.deepgram_api_key
    if not api_key:
        print("No API key given and DEEPGRAM_API_KEY is not set.")
        return 1
    ok = await SpeechOrchestrator(config).test_connection(api_key)
    print("Connection OK" if ok else "Connection failed")
    return 0 if ok else 1


async def run_sample(config: ClarionConfig, out: Path, key: Optional[str], voice: Optional[str]) -> int:
    audio = await SpeechOrchestrator(config).fetch_sample(key, voice)
    if audio is None:
        print("Voice sample failed")
        return 1
    out.write_bytes(audio)
    print(f"Wrote {len(audio)} bytes to {out}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Read text aloud with Deepgram Aura")
    parser.add_argument("--config", type=str, help="Path to config file", default=".env")
    parser.add_argument("--create-config", action="store_true", help="Create example config file")
    parser.add_argument("--log-level", type=str, default=None, help="Override LOG_LEVEL")

    sub = parser.add_subparsers(dest="command")

    speak = sub.add_parser("speak", help="Speak text (argument, --file, or stdin)")
    speak.add_argument("text", nargs="*", help="Text to speak")
    speak.add_argument("--file", type=str, default=None, help="Read text from file ('-' for stdin)")
    speak.add_argument("--voice", type=str, default=None, help="Aura voice model")

    test = sub.add_parser("test-connection", help="Check that the API key is accepted")
    test.add_argument("--key", type=str, default=None, help="API key to test instead of the configured one")

    sample = sub.add_parser("sample", help="Save a short voice sample as WAV")
    sample.add_argument("--out", type=Path, required=True, help="Output WAV path")
    sample.add_argument("--voice", type=str, default=None, help="Aura voice model")
    sample.add_argument("--key", type=str, default=None, help="API key to use instead of the configured one")

    sub.add_parser("voices", help="List per-language voice overrides")
    return parser


def main(argv: Optional[list] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.create_config:
        create_example_env_file()
        print("Example configuration file created at .env.example")
        print("Please copy it to .env and fill in your Deepgram API key.")
        return 0

    if args.command is None:
        parser.print_help()
        return 1

    if args.command == "voices":
        for language, voice in sorted(LANGUAGE_VOICES.items()):
            print(f"  {language}: {voice}")
        return 0

    try:
        config = load_config(Path(args.config) if args.config else None)
    except ValueError as e:
        print(f"Configuration error: {e}")
        print("Please check your configuration file.")
        return 1
    setup_logging(args.log_level or config.log_level)

    try:
        if args.command == "speak":
            return asyncio.run(run_speak(config, _read_text(args), args.voice))
        if args.command == "test-connection":
            return asyncio.run(run_test_connection(config, args.key))
        if args.command == "sample":
            return asyncio.run(run_sample(config, args.out, args.key, args.voice))
    except KeyboardInterrupt:
        print("\nStopped.")
        return 130
    return 1


if __name__ == "__main__":
    sys.exit(main())
