#!/usr/bin/env python3
"""
Terminal voice client for the business search assistant.

Connects a realtime session to the chosen provider, then toggles the microphone
each time Enter is pressed. Transcripts and search results are printed as they
arrive. Type "q" and Enter to quit.

Usage:
    python voice_client.py [--provider openai|elevenlabs] [--server URL] [--lat LAT --lng LNG]
"""

import argparse
import asyncio
import sys

from voice_search.client import ServerApiClient, create_session
from voice_search.client.session import PROVIDERS
from voice_search.config.logging_config import configure_logging

logger = configure_logging()


def parse_args():
    parser = argparse.ArgumentParser(description="Talk to the business search assistant")
    parser.add_argument("--provider", choices=PROVIDERS, default="openai", help="Realtime provider")
    parser.add_argument("--server", default="http://localhost:3001", help="Voice search server URL")
    parser.add_argument("--lat", type=float, help="Your latitude")
    parser.add_argument("--lng", type=float, help="Your longitude")
    parser.add_argument("--timeout", type=float, default=10.0, help="Search request timeout in seconds")
    return parser.parse_args()


def print_results(results):
    if not results:
        print("  (no results)")
        return
    for index, result in enumerate(results, start=1):
        line = f"  {index}. {result.name}"
        if result.address:
            line += f" - {result.address}"
        line += f" [{result.source.value}]"
        print(line)


async def run(args) -> int:
    api_client = ServerApiClient(args.server, timeout=args.timeout)
    session = create_session(args.provider, api_client)
    disconnected = asyncio.Event()

    session.on_connected(lambda: print("Connected. Press Enter to talk, Enter again to mute, q to quit."))
    session.on_disconnected(disconnected.set)
    session.on_error(lambda message: print(f"Error: {message}"))
    session.on_transcript(lambda text: print(f"You: {text}"))
    session.on_assistant_transcript(lambda text: print(f"Assistant: {text}"))
    session.on_search_results(print_results)
    session.on_microphone_state(lambda active: print("Listening..." if active else "Microphone muted"))

    if args.lat is not None and args.lng is not None:
        session.set_user_location(args.lat, args.lng)

    if not await session.connect():
        await api_client.close()
        return 1

    loop = asyncio.get_running_loop()
    try:
        while not disconnected.is_set():
            line = await loop.run_in_executor(None, sys.stdin.readline)
            if not line or line.strip().lower() == "q":
                break
            await session.toggle_microphone()
    finally:
        await session.disconnect()
        await api_client.close()
    return 0


def main():
    args = parse_args()
    try:
        sys.exit(asyncio.run(run(args)))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")


if __name__ == "__main__":
    main()
