"""
Client module for realtime voice conversations with a business search assistant.

This module runs on the user's machine. It connects to a realtime speech provider,
streams the microphone, plays the assistant's voice and executes the assistant's
`search_nearby_business` tool calls against the voice search server.

Key components:
- RealtimeSession: Provider independent session contract (connect, microphone
  toggle, user location, disconnect and single-slot callbacks).
- WebRTCTransport: OpenAI Realtime over WebRTC with an "oai-events" data channel
  and a microphone track that is muted rather than renegotiated.
- SocketTransport: ElevenLabs Conversational AI over one WebSocket with base64
  PCM16 audio in both directions.
- SessionEventRouter: Normalizes each provider's events into SessionEvent objects.
- ToolCallBridge: Runs searches through the server and shapes the tool result.
- audio_bridge: PCM16 conversion helpers and the sequential PlayoutQueue.

Usage examples:
```python
import asyncio
from voice_search.client import ServerApiClient, create_session

async def main():
    session = create_session("openai", ServerApiClient("http://localhost:3001"))
    session.on_transcript(lambda text: print(f"You: {text}"))
    session.on_assistant_transcript(lambda text: print(f"Assistant: {text}"))
    session.on_search_results(lambda results: print(f"{len(results)} results"))
    session.set_user_location(38.5816, -121.4944)

    if await session.connect():
        await session.toggle_microphone()
        await asyncio.sleep(30)
    await session.disconnect()

asyncio.run(main())
```
"""

from voice_search.client.api_client import ServerApiClient
from voice_search.client.errors import (
    CredentialError,
    HandshakeError,
    MicrophoneUnavailableError,
    VoiceSessionError,
)
from voice_search.client.event_router import (
    ElevenLabsEventRouter,
    OpenAIEventRouter,
    SessionEventRouter,
)
from voice_search.client.session import RealtimeSession, create_session
from voice_search.client.tool_bridge import ToolCallBridge

__all__ = [
    "CredentialError",
    "ElevenLabsEventRouter",
    "HandshakeError",
    "MicrophoneUnavailableError",
    "OpenAIEventRouter",
    "RealtimeSession",
    "ServerApiClient",
    "SessionEventRouter",
    "ToolCallBridge",
    "VoiceSessionError",
    "create_session",
]
