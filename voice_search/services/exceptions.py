"""
Exceptions raised by the server-side provider services.
"""


class ProviderError(Exception):
    """An upstream provider call failed or the provider is not configured."""

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.message = message
