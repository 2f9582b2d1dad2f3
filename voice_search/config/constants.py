"""
Constants and configuration values used throughout the application.

This module defines constants that are used across different parts of the application,
providing a centralized location for provider endpoints, wire-level event names and
audio parameters so the client and server agree on them.
"""

# Logger name used throughout the application
LOGGER_NAME = "voice_search"

# Default OpenAI models
DEFAULT_REALTIME_MODEL = "gpt-4o-realtime-preview-2024-12-17"
DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
DEFAULT_VOICE = "alloy"
DEFAULT_TRANSCRIPTION_MODEL = "whisper-1"

# Provider endpoints
OPENAI_API_URL = "https://api.openai.com/v1"
OPENAI_REALTIME_URL = "https://api.openai.com/v1/realtime"
ELEVENLABS_API_URL = "https://api.elevenlabs.io"
GOOGLE_PLACES_TEXT_SEARCH_URL = "https://maps.googleapis.com/maps/api/place/textsearch/json"

# Tool exposed to the realtime providers
SEARCH_TOOL_NAME = "search_nearby_business"

# Audio parameters
WEBRTC_SAMPLE_RATE = 24000
SOCKET_SAMPLE_RATE = 16000
CAPTURE_FRAME_SIZE = 2048  # samples per capture callback
PCM16_MAX_POSITIVE = 0x7FFF
PCM16_MAX_NEGATIVE = 0x8000

# Search pipeline defaults
SIMILARITY_THRESHOLD = 0.4
VECTOR_MATCH_COUNT = 5
FALLBACK_MIN_RESULTS = 3
MAX_RESULTS = 5
PLACES_RADIUS_METERS = 15000

# Region (Sacramento County, CA)
REGION_NAME = "Sacramento County"
REGION_NORTH = 38.7719
REGION_SOUTH = 38.3616
REGION_EAST = -120.7583
REGION_WEST = -121.5583
REGION_CENTER_LATITUDE = 38.5816
REGION_CENTER_LONGITUDE = -121.4944

# OpenAI Realtime data-channel event types
OPENAI_EVENT_SESSION_UPDATE = "session.update"
OPENAI_EVENT_USER_TRANSCRIPT = "conversation.item.input_audio_transcription.completed"
OPENAI_EVENT_TRANSCRIPT_DELTA = "response.audio_transcript.delta"
OPENAI_EVENT_TRANSCRIPT_DONE = "response.audio_transcript.done"
OPENAI_EVENT_FUNCTION_CALL_DONE = "response.function_call_arguments.done"
OPENAI_EVENT_SPEECH_STARTED = "input_audio_buffer.speech_started"
OPENAI_EVENT_ERROR = "error"
OPENAI_EVENT_ITEM_CREATE = "conversation.item.create"
OPENAI_EVENT_RESPONSE_CREATE = "response.create"

# ElevenLabs Conversational AI event types
ELEVENLABS_EVENT_INITIATION = "conversation_initiation_metadata"
ELEVENLABS_EVENT_USER_TRANSCRIPT = "user_transcript"
ELEVENLABS_EVENT_AGENT_RESPONSE = "agent_response"
ELEVENLABS_EVENT_AUDIO = "audio"
ELEVENLABS_EVENT_INTERRUPTION = "interruption"
ELEVENLABS_EVENT_PING = "ping"
ELEVENLABS_EVENT_PONG = "pong"
ELEVENLABS_EVENT_TOOL_CALL = "tool_call"
ELEVENLABS_EVENT_CLIENT_TOOL_CALL = "client_tool_call"
ELEVENLABS_EVENT_CLIENT_TOOL_RESULT = "client_tool_result"
ELEVENLABS_EVENT_ERROR = "error"
