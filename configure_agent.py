"""
Provision the ElevenLabs agent used by the socket transport.

Applies the assistant prompt, greeting, language and voice to the agent named by
ELEVENLABS_AGENT_ID (or creates a new agent when none is set), then registers the
`search_nearby_business` webhook tool pointing at this server's /api/search.

Usage:
    python configure_agent.py --webhook-url https://example.com/api/search
"""

import argparse
import asyncio
import sys

from voice_search.config.logging_config import configure_logging
from voice_search.config.settings import Settings
from voice_search.models.elevenlabs_schemas import AgentSettings
from voice_search.services.elevenlabs_service import ElevenLabsService
from voice_search.services.exceptions import ProviderError

logger = configure_logging()

AGENT_PROMPT = (
    "You are a voice assistant designed exclusively to help users find businesses and services "
    "in Sacramento County, California.\n\n"
    "Always respond in the same language the user speaks to you.\n\n"
    "Before responding, decide whether the request is about finding a business, place, restaurant "
    "or service.\n"
    "- If it is, use the search_nearby_business tool and read the voice_response field from the "
    "results.\n"
    "- If it is not, politely decline in a friendly way, for example: 'I specialize in finding "
    "businesses in Sacramento County. Can I help you find something nearby?'\n\n"
    "Stay conversational and helpful, but keep focused on helping people discover local businesses."
)

FIRST_MESSAGE = (
    "Hello! I can help you find businesses and services in Sacramento County. "
    "What are you looking for?"
)


def parse_args():
    parser = argparse.ArgumentParser(description="Configure the ElevenLabs agent")
    parser.add_argument(
        "--webhook-url",
        help="Public URL of the /api/search endpoint; skips tool registration when omitted",
    )
    parser.add_argument("--language", default="en", help="Agent language (default: en)")
    parser.add_argument(
        "--voice-id",
        default="21m00Tcm4TlvDq8ikWAM",
        help="ElevenLabs voice id (default: Rachel)",
    )
    return parser.parse_args()


async def configure(settings: Settings, webhook_url, language: str, voice_id: str) -> int:
    service = ElevenLabsService(settings)
    agent = AgentSettings(
        prompt=AGENT_PROMPT,
        first_message=FIRST_MESSAGE,
        language=language,
        voice_id=voice_id,
    )
    try:
        result = await service.configure_agent(agent)
        agent_id = result.get("agent_id") or settings.elevenlabs_agent_id
        logger.info(f"Agent configured: {agent_id}")
        if not settings.elevenlabs_agent_id and agent_id:
            print(f"Add ELEVENLABS_AGENT_ID={agent_id} to your .env file")
            settings.elevenlabs_agent_id = agent_id

        if webhook_url:
            await service.add_search_tool(webhook_url)
            logger.info("Search tool registered")
    except ProviderError as e:
        logger.error(f"Error configuring agent: {e}")
        return 1
    finally:
        await service.close()
    return 0


def main():
    args = parse_args()
    settings = Settings.from_env()
    sys.exit(asyncio.run(configure(settings, args.webhook_url, args.language, args.voice_id)))


if __name__ == "__main__":
    main()
