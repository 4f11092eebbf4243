from orcachat.config.settings import config_settings
from orcachat.common.logging_setup import get_logger

logger = get_logger("orcachat.auth")

ACCESS_TOKEN_EXPIRE_MINUTES = int(config_settings.ACCESS_TOKEN_EXPIRE_MINUTES)
