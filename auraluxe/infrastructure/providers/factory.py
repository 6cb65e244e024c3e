import logging
from typing import List

from auraluxe.crosscutting.config import AppConfig
from auraluxe.domain.ports import CatalogProvider
from auraluxe.infrastructure.providers.deezer import DeezerProvider
from auraluxe.infrastructure.providers.itunes import ITunesProvider
from auraluxe.infrastructure.providers.lastfm import LastFmProvider
from auraluxe.infrastructure.providers.youtube import YouTubeProvider


logger = logging.getLogger(__name__)


def build_providers(config: AppConfig) -> List[CatalogProvider]:
    """Create the active providers in their fixed merge order.

    Keyless catalogs are always active; Last.fm and YouTube join only when
    their adapter reports an API key.
    """
    timeout = config.provider_timeout_sec
    providers: List[CatalogProvider] = [
        DeezerProvider(timeout_sec=timeout),
        ITunesProvider(chart_term=config.chart_term, timeout_sec=timeout),
    ]
    keyed = [
        (LastFmProvider(config.lastfm_api_key, timeout_sec=timeout), 'LASTFM_API_KEY'),
        (YouTubeProvider(config.youtube_api_key, timeout_sec=timeout), 'YOUTUBE_API_KEY'),
    ]
    for provider, env_key in keyed:
        if provider.is_available:
            providers.append(provider)
        else:
            logger.info(f"{env_key} not set; {provider.name} provider disabled")
    return providers
