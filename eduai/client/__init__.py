"""Client-side state layer: API client, local storage and progress tracking."""
from eduai.client.api_client import ApiError, EduAIClient
from eduai.client.local_storage import LocalStorage

__all__ = [
    "ApiError",
    "EduAIClient",
    "LocalStorage",
]
