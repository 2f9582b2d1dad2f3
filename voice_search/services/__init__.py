"""
Services module for the server-side integrations of the voice search system.

Key components:
- openai_service: Ephemeral Realtime session tokens and query embeddings.
- elevenlabs_service: Signed Conversational AI URLs and agent provisioning.
- vector_store: Similarity search over the business catalogue (Supabase RPC).
- places_service: Region-restricted Google Places fallback search.
- search_orchestrator: The end-to-end search pipeline and voice narration.

Usage examples:
```python
from voice_search.config.settings import Settings
from voice_search.services import (
    OpenAIService, PlacesService, SearchOrchestrator, VectorStore,
)

settings = Settings.from_env()
orchestrator = SearchOrchestrator(
    settings,
    OpenAIService(settings),
    VectorStore(settings),
    PlacesService(settings),
)
response = await orchestrator.search("coffee shop", 38.58, -121.49)
print(response.voiceResponse)
```
"""

from voice_search.services.elevenlabs_service import ElevenLabsService
from voice_search.services.exceptions import ProviderError
from voice_search.services.openai_service import OpenAIService
from voice_search.services.places_service import PlacesService
from voice_search.services.search_orchestrator import SearchOrchestrator
from voice_search.services.vector_store import VectorStore

__all__ = [
    "ElevenLabsService",
    "OpenAIService",
    "PlacesService",
    "ProviderError",
    "SearchOrchestrator",
    "VectorStore",
]
