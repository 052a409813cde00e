# app_factory lives at the outermost layer (not in core):
# instantiates the concrete adapters and wires them into a session
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from tms.adapters.aiohttp_client_adapter import AioHttpClientAdapter
from tms.adapters.notifier_rich_adapter import RichConsoleNotifier
from tms.adapters.query_cache_inmemory import InMemoryQueryCache
from tms.adapters.retry_tenacity import TenacityRetryAdapter
from tms.adapters.supabase_backend_adapter import SupabaseBackendAdapter
from tms.core.config import BackendConfig, PollingConfig
from tms.core.interfaces.notifier import NotifierPort
from tms.core.interfaces.query_cache import QueryCachePort
from tms.core.logging_config import configure_logging
from tms.core.managers.observers import AuditLogObserver, JobEvents, NotificationObserver
from tms.core.services.job_session import TranslationJobSession
from tms.core.settings import TmsSettings, app_settings, logger


@asynccontextmanager
async def create_session(
    project_id: str,
    settings: Optional[TmsSettings] = None,
    notifier: Optional[NotifierPort] = None,
    cache: Optional[QueryCachePort] = None,
    default_locale: Optional[str] = None,
    print_settings: bool = False,
) -> AsyncIterator[TranslationJobSession]:
    """Open a translation job session for one project.

    The HTTP client lives as long as the session; pass a shared `cache` to let
    several sessions see each other's job lists.
    """
    settings = settings or app_settings
    configure_logging(settings.TMS_LOG_LEVEL)
    if print_settings:
        settings.print_settings(logger)

    events = JobEvents(
        [
            NotificationObserver(notifier or RichConsoleNotifier()),
            AuditLogObserver(),
        ]
    )
    retry_adapter = TenacityRetryAdapter(attempts=settings.TMS_RECONCILE_RETRY_ATTEMPTS)
    backend_config = BackendConfig.from_app_settings(settings)

    async with AioHttpClientAdapter(default_timeout=backend_config.request_timeout) as http_client:
        backend = SupabaseBackendAdapter(http_client, backend_config)
        session = TranslationJobSession(
            project_id,
            backend,
            cache or InMemoryQueryCache(),
            events=events,
            retry_port=retry_adapter,
            polling_config=PollingConfig.from_app_settings(settings),
            default_locale=default_locale,
        )
        async with session:
            yield session
