"""
Snapshot ingestion for the Bodega catalog.

Fetches one JSON snapshot per location, either over HTTP from a base URL or
from a local directory, plus the optional removed-items and shop-mapping
files.  Location files are fetched concurrently; a file that fails to load
is logged and contributes no items.
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

from datasources.http import get_shared_session
from services.catalog import CatalogIndex
from utils.constants import (
    ADDED_WINDOW_DAYS,
    DEFAULT_DATA_FILES,
    REMOVED_ITEMS_FILE,
    SHOP_MAPPING_FILE,
)

log = logging.getLogger(__name__)


class SnapshotLoadError(Exception):
    """Raised when the loader has no usable data source."""
    pass


class SnapshotLoader:
    """Reads location snapshots and auxiliary files from one source."""

    def __init__(self, config: Dict[str, Any], session: Optional[requests.Session] = None):
        self.config = config
        self.logger = logging.getLogger(__name__)

        data_config = config.get('data', {})
        self.base_url = (data_config.get('base_url') or '').rstrip('/') or None
        directory = data_config.get('directory')
        self.directory = Path(directory) if directory else None
        if self.base_url is None and self.directory is None:
            raise SnapshotLoadError("Neither data.base_url nor data.directory is configured")

        self.files: List[str] = list(data_config.get('files') or DEFAULT_DATA_FILES)
        self.removed_items_file = data_config.get('removed_items_file', REMOVED_ITEMS_FILE)
        self.shop_mapping_file = data_config.get('shop_mapping_file', SHOP_MAPPING_FILE)
        self.max_workers = max(1, int(data_config.get('max_workers', 8)))
        self.timeout = data_config.get('timeout_seconds', 30)
        self.added_window_days = config.get('recency', {}).get('added_window_days', ADDED_WINDOW_DAYS)
        self._session = session

    @property
    def source(self) -> str:
        return self.base_url or str(self.directory)

    def _fetch(self, name: str, optional: bool = False) -> Optional[Any]:
        """Return the parsed JSON for ``name`` or ``None`` if it cannot be read."""
        report = self.logger.debug if optional else self.logger.warning
        if self.base_url:
            url = f"{self.base_url}/{name}"
            session = self._session or get_shared_session()
            try:
                response = session.get(url, timeout=self.timeout)
            except requests.exceptions.RequestException as e:
                report("Failed to fetch %s: %s", url, e)
                return None
            if response.status_code != 200:
                report("Failed to load %s: HTTP %s", url, response.status_code)
                return None
            try:
                return response.json()
            except ValueError as e:
                self.logger.warning("Invalid JSON in %s: %s", url, e)
                return None

        path = self.directory / name
        if not path.exists():
            report("Snapshot file not found: %s", path)
            return None
        try:
            with path.open('r', encoding='utf-8') as f:
                return json.load(f)
        except OSError as e:
            self.logger.warning("Failed to read %s: %s", path, e)
        except json.JSONDecodeError as e:
            self.logger.warning("Invalid JSON in %s: %s", path, e)
        return None

    def load_snapshots(self) -> List[Optional[Dict[str, Any]]]:
        """Fetch every location file; results keep the configured file order."""
        results: List[Optional[Dict[str, Any]]] = [None] * len(self.files)
        if not self.files:
            return results

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(self.files))) as ex:
            future_to_index = {ex.submit(self._fetch, name): i for i, name in enumerate(self.files)}
            for fut in as_completed(future_to_index):
                i = future_to_index[fut]
                try:
                    data = fut.result()
                except Exception as e:
                    self.logger.error("Snapshot %s failed: %r", self.files[i], e)
                    continue
                if data is not None and not isinstance(data, dict):
                    self.logger.warning("Snapshot %s is not a JSON object, skipping", self.files[i])
                    continue
                results[i] = data

        loaded = sum(1 for r in results if r is not None)
        self.logger.info("Loaded %d/%d snapshots from %s", loaded, len(self.files), self.source)
        return results

    def load_removed_items(self) -> Optional[Dict[str, Any]]:
        """Return the separate removed-items payload, or ``None`` if absent."""
        if not self.removed_items_file:
            return None
        data = self._fetch(self.removed_items_file, optional=True)
        if data is None:
            self.logger.info("No separate %s found, using embedded data", self.removed_items_file)
            return None
        if not isinstance(data, dict):
            self.logger.warning("%s is not a JSON object, ignoring", self.removed_items_file)
            return None
        return data

    def load_shop_mapping(self) -> Dict[str, Any]:
        """Return ``{shop name: {map_id, exterior}}``; empty when unavailable."""
        if not self.shop_mapping_file:
            return {}
        data = self._fetch(self.shop_mapping_file, optional=True)
        if not isinstance(data, dict):
            return {}
        shops = data.get('shops', data)
        return shops if isinstance(shops, dict) else {}

    def load_catalog(self, now: Optional[datetime] = None) -> CatalogIndex:
        snapshots = self.load_snapshots()
        return CatalogIndex.build(
            snapshots,
            removed_payload=self.load_removed_items(),
            shop_mapping=self.load_shop_mapping(),
            now=now,
            added_window_days=self.added_window_days,
        )


def load_catalog(config: Dict[str, Any], session: Optional[requests.Session] = None,
                 now: Optional[datetime] = None) -> CatalogIndex:
    """Build a fresh :class:`CatalogIndex` from the configured source."""
    return SnapshotLoader(config, session=session).load_catalog(now=now)
