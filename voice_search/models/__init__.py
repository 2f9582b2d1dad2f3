"""
Models module for data structures exchanged by the voice search system.

Key components:
- search_schemas: Pydantic models for the `/api/*` request and response bodies,
  including the BusinessResult returned to the voice client.
- geo: The GeoBounds region used to scope fallback results.
- openai_schemas: Type-safe models for OpenAI Realtime data-channel messages.
- elevenlabs_schemas: Models for ElevenLabs Conversational AI frames and agent setup.
- session_events: The normalized event vocabulary produced by the event routers.

Usage examples:
```python
from voice_search.models import SearchRequest, GeoBounds

request = SearchRequest(query="coffee shop", latitude=38.58, longitude=-121.49)
region = GeoBounds()
region.contains(request.latitude, request.longitude)  # True
```
"""

from voice_search.models.geo import GeoBounds
from voice_search.models.search_schemas import (
    BusinessResult,
    ErrorResponse,
    HealthResponse,
    ResultSource,
    SearchRequest,
    SearchResponse,
    SessionTokenResponse,
    SignedUrlResponse,
)
from voice_search.models.session_events import (
    ConnectionState,
    EventKind,
    SessionEvent,
    ToolResult,
)
