from typing import Dict, List

from umrah_office.store.base import DataStoreInterface
from umrah_office.store.documents import DocumentStore
from umrah_office.store.sql import SqlStore


class StoreFactory:
    """Factory to get the data store for the configured backend"""

    ADAPTERS = {
        "sql": SqlStore,
        "documents": DocumentStore,
    }

    @classmethod
    def get_store(cls, store_type: str, config: Dict = None) -> DataStoreInterface:
        """Get store instance"""
        store_class = cls.ADAPTERS.get((store_type or "").lower())
        if not store_class:
            raise ValueError(f"Unknown data store: {store_type}")

        return store_class(config)

    @classmethod
    def list_adapters(cls) -> List[str]:
        """List available store types"""
        return list(cls.ADAPTERS.keys())


def store_config(app_config) -> Dict:
    """Pick the settings a store needs out of the Flask config."""
    return {
        "endpoint": app_config.get("DOCSTORE_ENDPOINT"),
        "project_id": app_config.get("DOCSTORE_PROJECT_ID"),
        "api_key": app_config.get("DOCSTORE_API_KEY"),
        "database_id": app_config.get("DOCSTORE_DATABASE_ID"),
        "collections": app_config.get("DOCSTORE_COLLECTIONS") or {},
        "timeout": app_config.get("DOCSTORE_TIMEOUT"),
    }
