from functools import lru_cache

from avatar_bridge.avatar.driver import AvatarDriver
from avatar_bridge.config import get_settings


@lru_cache(maxsize=1)
def get_driver() -> AvatarDriver:
    """Return the process-wide avatar driver, built from settings on first use."""
    return AvatarDriver.from_settings(get_settings(), instance_id="api")
