"""
Common utilities for search routes
"""
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, MutableMapping, Optional

from sqlalchemy.orm import Session

from app.config import settings
from app.search.client import SearchClient
from app.search.executor import DEFAULT_DATASET_PATH, SearchExecutor
from app.search.sync import LastSearchStore
from app.search.tiering import AuthSignal, TierDecision, decide_tier
from app.utils.search_snapshots import DbSnapshotStore

# Set up logging
logger = logging.getLogger(__name__)

@lru_cache(maxsize=1)
def get_search_client() -> SearchClient:
    """Shared client for the remote daycare API (dependency)."""
    logger.info(f"Using daycare API at {settings.search_api_url}")
    return SearchClient(settings.search_api_url, timeout=settings.search_api_timeout)

def dataset_path() -> Path:
    if settings.fallback_dataset_path:
        return Path(settings.fallback_dataset_path)
    return DEFAULT_DATASET_PATH

def new_executor(client: SearchClient) -> SearchExecutor:
    """Executor for one page visit or one API request."""
    return SearchExecutor(
        client,
        freshness=settings.search_cache_ttl,
        dataset_path=dataset_path(),
        map_limit=settings.map_page_limit,
    )

def tier_for(signal: AuthSignal) -> Optional[TierDecision]:
    return decide_tier(signal, settings.guest_page_size, settings.member_page_size)

def last_search_store(session: MutableMapping[str, Any], signal: AuthSignal, db: Optional[Session]) -> LastSearchStore:
    """Session snapshot store, backed by the database for members."""
    durable = None
    if db is not None and signal.user_id and not signal.is_guest:
        durable = DbSnapshotStore(db, signal.user_id)
    return LastSearchStore(session, durable=durable)
