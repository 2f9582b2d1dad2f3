"""
Voice Business Search - Realtime Voice Assistant for Local Businesses

This application lets a user speak to a realtime voice assistant that finds
businesses in a configured region (Sacramento County by default) and answers with
a single spoken sentence about the best match.

Two speech providers are supported behind one session contract: OpenAI Realtime
over WebRTC and ElevenLabs Conversational AI over WebSocket. The provider decides
when to search by calling the `search_nearby_business` tool; the client forwards
the call to this project's server, which runs the search pipeline.

Architecture Overview:
- FastAPI server issuing provider credentials and running searches
- Search pipeline: query embedding, vector similarity search, Google Places
  fallback restricted to the region, and a voice narration of the first result
- Realtime client with pluggable transports, event normalization and audio play-out

Key Components:
- client: Realtime sessions, transports, event routing and the tool-call bridge
- config: Application-wide settings, constants, and logging setup
- models: Pydantic models for API bodies, provider messages and session events
- services: Client implementations for OpenAI, ElevenLabs, Supabase and Google Places
- main: The HTTP API (`/api/session`, `/api/elevenlabs/session`, `/api/search`,
  `/api/health`)

Getting Started:
1. Set up environment variables (or a .env file):
   - OPENAI_API_KEY, ELEVENLABS_API_KEY, ELEVENLABS_AGENT_ID
   - SUPABASE_URL, SUPABASE_SERVICE_KEY, GOOGLE_PLACES_API_KEY
   - PORT: Port to run the server on (default 3001)
   - LOG_LEVEL: Logging level (default INFO)

2. Start the server:
   ```bash
   python run.py
   ```

3. Talk to the assistant:
   ```bash
   python voice_client.py --provider openai
   ```
"""
