from orcachat.common.logging_setup import get_logger

logger = get_logger("orcachat.chat")

DEFAULT_CHAT_TITLE = "New Chat"

STREAM_MEDIA_TYPE = "text/plain; charset=utf-8"
