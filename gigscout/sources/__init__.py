from .base import UpstreamSource
from .vollna import VollnaSource

from gigscout.config import get_env
from gigscout.log import get_logger

log = get_logger(__name__)

__all__ = ["UpstreamSource", "VollnaSource", "get_source"]


def get_source(env_getter=get_env) -> UpstreamSource:
    token = env_getter("VOLLNA_API_TOKEN")
    if not token:
        log.warning("VOLLNA_API_TOKEN not set, fetches will return nothing")
    else:
        log.info("Registered source: Vollna")
    return VollnaSource(token)
