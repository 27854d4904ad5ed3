from functools import lru_cache

from app.channel.green_api import GreenApiChannel
from app.channel.memory import InMemoryChannel
from app.settings import settings


@lru_cache(maxsize=1)
def get_channel():
    if settings.CHANNEL_BACKEND == "green_api":
        return GreenApiChannel()
    return InMemoryChannel()
