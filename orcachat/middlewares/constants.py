from orcachat.common.logging_setup import get_logger

logger = get_logger("orcachat.middlewares")
