import logging
from dataclasses import dataclass
from typing import Optional

from orcamais.config.settings import ConfigurationError, Settings
from orcamais.database.connection import DatabaseConfig, DatabaseManager
from orcamais.services.finance_service import FinanceService
from orcamais.services.investments import InvestmentService
from orcamais.services.market_data import MarketDataClient

logger = logging.getLogger(__name__)


@dataclass
class Application:
    """Wired services for one process"""
    finance: FinanceService
    investments: InvestmentService
    db_manager: Optional[DatabaseManager] = None

    def close(self) -> None:
        self.finance.close()
        if self.db_manager is not None:
            self.db_manager.close()


def _build_backends(settings: Settings):
    if settings.backend == "supabase":
        # Imported lazily so the local backend works without network config
        from supabase import create_client

        from orcamais.identity.supabase_provider import SupabaseIdentityProvider
        from orcamais.repositories.supabase_document_store import SupabaseDocumentStore

        try:
            client = create_client(settings.supabase_url, settings.supabase_key)
        except Exception as e:
            raise ConfigurationError(f"Could not create Supabase client: {e}") from e

        logger.info("Using Supabase backend at %s", settings.supabase_url)
        return SupabaseIdentityProvider(client), SupabaseDocumentStore(client), None

    from orcamais.identity.sqlite_provider import SQLiteIdentityProvider
    from orcamais.repositories.sqlite_document_store import SQLiteDocumentStore

    db_manager = DatabaseManager(DatabaseConfig(settings.db_path))
    logger.info("Using local SQLite backend at %s", settings.db_path)
    return SQLiteIdentityProvider(db_manager), SQLiteDocumentStore(db_manager), db_manager


def build_application(settings: Optional[Settings] = None) -> Application:
    """
    Wire the finance and investment services for the configured backend.

    Callers own the returned Application and must close() it, which also
    closes the local database.

    Raises:
        ConfigurationError: Unknown backend or missing Supabase credentials
    """
    settings = settings or Settings.from_env()
    settings.validate()

    identity, store, db_manager = _build_backends(settings)
    finance = FinanceService(identity, store)
    market_data = MarketDataClient(
        base_url=settings.market_data_url,
        token=settings.market_data_token,
        cache_ttl=settings.quotes_cache_ttl,
    )
    return Application(
        finance=finance,
        investments=InvestmentService(finance, market_data),
        db_manager=db_manager,
    )

