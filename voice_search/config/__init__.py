"""
Configuration module for the voice search application.

Key components:
- constants: Application-wide constants such as provider endpoints, event type
  names, audio sample rates and search pipeline defaults.
- logging_config: Console and rotating-file logging shared by every module.
- settings: The explicit Settings object built once from the environment and
  handed to the server components that need credentials or region bounds.

Usage examples:
```python
from voice_search.config.logging_config import configure_logging
from voice_search.config.settings import Settings

logger = configure_logging()
settings = Settings.from_env()
logger.info(f"Serving region: {settings.region.name}")
```
"""

# Config module initialization
