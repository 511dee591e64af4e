from .composer import MISSING_MESSAGES_ERROR, compose, compose_system_prompt, render_user_context
from .errors import BadRequest, ProviderError, RelayError, UpstreamInterrupted, UpstreamUnavailable
from .framing import EVENT_STREAM_HEADERS, EVENT_STREAM_MEDIA_TYPE, SSEEventCodec
from .models import RELAY_STATES, TERMINAL_RELAY_STATES, ConversationTurn, StreamEvent, UserContext
from .relay import STREAM_FAILURE_MESSAGE, RelayStream, ResponseSink, StreamRelay
from .scanner import DEFAULT_DETECTION_PHRASES, EmergencyScanner
from .settings import ProviderSettings, RelaySettings, load_relay_settings
from .upstream import ChatCompletionProvider, OpenAICompatibleProvider, iter_sse_data

__all__ = [
    "DEFAULT_DETECTION_PHRASES",
    "EVENT_STREAM_HEADERS",
    "EVENT_STREAM_MEDIA_TYPE",
    "MISSING_MESSAGES_ERROR",
    "RELAY_STATES",
    "STREAM_FAILURE_MESSAGE",
    "TERMINAL_RELAY_STATES",
    "BadRequest",
    "ChatCompletionProvider",
    "ConversationTurn",
    "EmergencyScanner",
    "OpenAICompatibleProvider",
    "ProviderError",
    "ProviderSettings",
    "RelayError",
    "RelaySettings",
    "RelayStream",
    "ResponseSink",
    "SSEEventCodec",
    "StreamEvent",
    "StreamRelay",
    "UpstreamInterrupted",
    "UpstreamUnavailable",
    "UserContext",
    "compose",
    "compose_system_prompt",
    "iter_sse_data",
    "load_relay_settings",
    "render_user_context",
]
