import itertools
import os
import json
from datetime import datetime
from typing import Dict, Any, List, Optional
from .config import settings
from .logger import storage_logger as logger

# Orders snapshots written within the same clock tick
_sequence = itertools.count()


class StorageService:
    """
    Discovery snapshots as JSON files, one per run, named scrape_user<id>_<timestamp>_<seq>.json.
    Only the newest ``max_snapshots_per_user`` files are kept for each user.
    """

    def __init__(self, processed_dir: Optional[str] = None, max_snapshots_per_user: Optional[int] = None):
        self.processed_dir = processed_dir or settings.PROCESSED_DATA_DIR
        self.max_snapshots_per_user = max_snapshots_per_user or settings.MAX_SNAPSHOTS_PER_USER
        os.makedirs(self.processed_dir, exist_ok=True)

    def save_scraping_snapshot(self, data: Dict[str, Any], user_id: int) -> str:
        """Write one discovery result for a user and return the file path. Raises OSError."""
        timestamp = datetime.utcnow().strftime("%Y%m%dT%H%M%S%f")
        filename = f"scrape_user{user_id}_{timestamp}_{next(_sequence):06d}.json"
        path = self._save_json(data, os.path.join(self.processed_dir, filename))
        self.prune_snapshots(user_id)
        return path

    def list_scraping_history(self, user_id: int, limit: int = 10) -> List[Dict[str, Any]]:
        """Most recent snapshots for a user, newest first. Unreadable files are skipped."""
        snapshots = (self._load_json(os.path.join(self.processed_dir, name))
                     for name in self._snapshot_names(user_id))
        return list(itertools.islice((s for s in snapshots if s is not None), limit))

    def prune_snapshots(self, user_id: int) -> int:
        """Delete a user's snapshots beyond the retention cap, oldest first. Returns how many went."""
        removed = 0
        for name in self._snapshot_names(user_id)[self.max_snapshots_per_user:]:
            try:
                os.remove(os.path.join(self.processed_dir, name))
                removed += 1
            except OSError as e:
                logger.error(f"Cannot remove snapshot {name}: {str(e)}")
        if removed:
            logger.info(f"Pruned {removed} old snapshots for user {user_id}")
        return removed

    def _snapshot_names(self, user_id: int) -> List[str]:
        """Snapshot file names for a user, newest first."""
        prefix = f"scrape_user{user_id}_"
        try:
            return sorted((n for n in os.listdir(self.processed_dir) if n.startswith(prefix)), reverse=True)
        except OSError as e:
            logger.error(f"Cannot list snapshots in {self.processed_dir}: {str(e)}")
            return []

    def _load_json(self, filepath: str) -> Optional[Dict[str, Any]]:
        try:
            with open(filepath, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Skipping unreadable snapshot {filepath}: {str(e)}")
            return None

    def _save_json(self, data: Dict[str, Any], filepath: str) -> str:
        try:
            with open(filepath, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False, default=str)
        except OSError as e:
            logger.error(f"Error saving snapshot to {filepath}: {str(e)}")
            raise
        logger.info(f"Saved snapshot {filepath}")
        return filepath
