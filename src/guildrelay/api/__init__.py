"""Client-facing REST surface: relay endpoint, generative proxy, HTTP app."""

from guildrelay.api.proxy import GenerationError, GenerativeProxy
from guildrelay.api.relay import RelayEndpoint, SubmitResult, validate_submission
from guildrelay.api.server import ApiServer, create_api_app

__all__ = [
    "ApiServer",
    "GenerationError",
    "GenerativeProxy",
    "RelayEndpoint",
    "SubmitResult",
    "create_api_app",
    "validate_submission",
]
