
from prometheus_client import Counter
from prometheus_fastapi_instrumentator import Instrumentator

instrumentator = Instrumentator(
    should_ignore_untemplated=True,      # /chats/123 -> /chats/{chat_id}
    excluded_handlers=["/metrics", "/ping"],
    should_instrument_requests_inprogress=True,
    should_group_status_codes=False,
)

OTP_REQUESTS = Counter(
    "orcachat_otp_requests_total",
    "One-time code requests by outcome",
    ["outcome"],    # sent | rate_limited | rate_limited_ip | send_failed
)

CHAT_STREAMS = Counter(
    "orcachat_chat_streams_total",
    "Assistant reply streams by outcome",
    ["outcome"],    # completed | upstream_error | client_disconnected
)
