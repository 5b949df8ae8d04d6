"""Concrete implementation of the batch-level analysis cache.

Manages an L1 (in-memory) and an L2 (JSON file) cache of whole-batch
results, keyed by the batch's prompts and model. Entries expire after a
TTL. A metadata file records the system prompt fingerprint; when the
instructions change the whole cache is cleared.
"""

import json
import logging
import os
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from promptaudit.domain.interfaces.cache import BatchResultCache
from promptaudit.domain.models.analysis import AnalysisResult
from promptaudit.domain.models.common import CacheKey, ModelName, PromptText
from promptaudit.infrastructure.providers.prompts import hash_string, hash_system_prompt

DEFAULT_TTL_SECONDS = 7 * 24 * 60 * 60  # 7 days
DEFAULT_L1_MAX_ITEMS = 100
METADATA_FILE_NAME = ".metadata.json"
PROMPT_SEPARATOR = "\n---\n"


def generate_cache_key(prompts: Sequence[PromptText], model: ModelName) -> CacheKey:
    """Key identifying exactly this batch of prompts for this model."""
    return CacheKey(hash_string(f"{model}:{PROMPT_SEPARATOR.join(prompts)}"))


@dataclass
class CacheEntry:
    """Internal representation of a cached batch result."""
    result: AnalysisResult
    cached_at: float  # Unix timestamp, seconds
    prompt_count: int
    model: ModelName
    system_prompt_hash: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "result": self.result.to_dict(),
            "metadata": {
                "cachedAt": int(self.cached_at * 1000),
                "promptCount": self.prompt_count,
                "model": self.model,
                "systemPromptHash": self.system_prompt_hash,
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheEntry":
        metadata = data["metadata"]
        return cls(
            result=AnalysisResult.from_dict(data["result"]),
            cached_at=metadata["cachedAt"] / 1000,
            prompt_count=metadata["promptCount"],
            model=ModelName(metadata["model"]),
            system_prompt_hash=metadata["systemPromptHash"],
        )


class AnalysisCache(BatchResultCache):
    """Two-level (memory, file) cache of batch analysis results."""

    def __init__(
        self,
        cache_dir: Path,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        l1_max_items: int = DEFAULT_L1_MAX_ITEMS,
        system_prompt_hash: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """Initializes the cache. Entries are stored in ``<cache_dir>/analysis``."""
        self.l2_dir = Path(cache_dir) / "analysis"
        self.ttl_seconds = ttl_seconds
        self.l1_max_items = l1_max_items
        self.system_prompt_hash = system_prompt_hash or hash_system_prompt()
        self.logger = logger or logging.getLogger(__name__)
        self.l1_cache: Dict[CacheKey, CacheEntry] = {}
        self._validated = False

    # --- Helpers ---

    def _get_l2_filepath(self, key: CacheKey) -> Path:
        return self.l2_dir / f"{key}.json"

    @property
    def _metadata_path(self) -> Path:
        return self.l2_dir / METADATA_FILE_NAME

    def _write_atomic(self, path: Path, payload: Dict[str, Any]) -> None:
        temp_path = path.with_name(path.name + ".tmp")
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            # os.replace is atomic on both Windows and Unix
            os.replace(temp_path, path)
        except OSError:
            temp_path.unlink(missing_ok=True)
            raise

    def _is_expired(self, entry: CacheEntry) -> bool:
        return time.time() - entry.cached_at > self.ttl_seconds

    def _prune_l1(self) -> None:
        """Removes expired items from L1 and evicts the oldest if over limit."""
        expired = [k for k, v in self.l1_cache.items() if self._is_expired(v)]
        for k in expired:
            del self.l1_cache[k]
        while len(self.l1_cache) > self.l1_max_items:
            # Oldest by insertion order
            del self.l1_cache[next(iter(self.l1_cache))]

    async def validate_system_prompt(self) -> bool:
        """Clears the cache if the system prompt changed since it was written.

        Returns:
            True if the cached entries are still valid, False if they were
            invalidated.
        """
        if self._validated:
            return True
        self._validated = True

        stored_hash: Optional[str] = None
        if self._metadata_path.exists():
            try:
                with open(self._metadata_path, "r", encoding="utf-8") as f:
                    stored_hash = json.load(f).get("systemPromptHash")
            except (OSError, ValueError, AttributeError) as e:
                self.logger.warning(f"Failed to load cache metadata: {e}")

        if stored_hash == self.system_prompt_hash:
            return True

        invalidated = stored_hash is not None
        if invalidated:
            self.logger.info("System prompt changed - invalidating analysis cache")
            await self.clear()
        try:
            self.l2_dir.mkdir(parents=True, exist_ok=True, mode=0o700)
            self._write_atomic(
                self._metadata_path,
                {"systemPromptHash": self.system_prompt_hash, "lastUpdated": int(time.time() * 1000)},
            )
        except OSError as e:
            self.logger.warning(f"Failed to save cache metadata: {e}")
        return not invalidated

    # --- BatchResultCache Interface Implementation ---

    async def get(self, prompts: Sequence[PromptText], model: ModelName) -> Optional[AnalysisResult]:
        """Retrieves a batch result from L1, then L2. Every problem is a miss."""
        await self.validate_system_prompt()
        key = generate_cache_key(prompts, model)

        self._prune_l1()
        entry = self.l1_cache.get(key)

        if entry is None:
            l2_filepath = self._get_l2_filepath(key)
            if not l2_filepath.exists():
                self.logger.debug(f"Cache miss for key {key}")
                return None
            try:
                with open(l2_filepath, "r", encoding="utf-8") as f:
                    data = json.load(f)
                if not isinstance(data, dict) or not data.get("result") or not data.get("metadata"):
                    self.logger.debug(f"Invalid cache entry for key {key}")
                    return None
                entry = CacheEntry.from_dict(data)
            except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                self.logger.warning(f"Failed to read cache entry {key}: {e}")
                return None

        if self._is_expired(entry):
            self.logger.debug(f"Cache entry expired for key {key}")
            self.l1_cache.pop(key, None)
            return None
        if entry.model != model:
            self.logger.debug(f"Model mismatch for key {key} (cached: {entry.model}, requested: {model})")
            return None
        if entry.prompt_count != len(prompts):
            self.logger.debug(f"Prompt count mismatch for key {key}")
            return None

        # Promote to L1
        self.l1_cache[key] = entry
        self._prune_l1()
        self.logger.debug(f"Cache hit for key {key}")
        return entry.result

    async def set(self, prompts: Sequence[PromptText], model: ModelName, result: AnalysisResult) -> None:
        """Stores a batch result in L1 and L2. Logs, never raises, on failure."""
        key = generate_cache_key(prompts, model)
        entry = CacheEntry(
            result=result,
            cached_at=time.time(),
            prompt_count=len(prompts),
            model=model,
            system_prompt_hash=self.system_prompt_hash,
        )
        try:
            await self.validate_system_prompt()
            self.l2_dir.mkdir(parents=True, exist_ok=True, mode=0o700)
            self._write_atomic(self._get_l2_filepath(key), entry.to_dict())
            self.l1_cache[key] = entry
            self._prune_l1()
            self.logger.debug(f"Cached result for key {key}")
        except (OSError, TypeError, ValueError) as e:
            self.logger.warning(f"Failed to cache result: {e}")

    async def clear(self) -> None:
        """Clears all entries from both levels."""
        self.l1_cache.clear()
        if not self.l2_dir.exists():
            self.logger.debug("Cache directory does not exist - nothing to clear")
            return
        try:
            shutil.rmtree(self.l2_dir)
            self.logger.info(f"Cleared analysis cache at: {self.l2_dir}")
        except OSError as e:
            self.logger.warning(f"Failed to clear cache: {e}")

    async def cleanup_expired(self) -> int:
        """Removes expired or unreadable L2 entries.

        Returns:
            Number of entries removed.
        """
        self._prune_l1()
        if not self.l2_dir.exists():
            return 0

        removed = 0
        for path in self.l2_dir.glob("*.json"):
            if path.name == METADATA_FILE_NAME:
                continue
            try:
                with open(path, "r", encoding="utf-8") as f:
                    entry = CacheEntry.from_dict(json.load(f))
                if not self._is_expired(entry):
                    continue
                self.logger.debug(f"Removed expired cache entry: {path.name}")
            except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError):
                self.logger.debug(f"Removed invalid cache entry: {path.name}")
            try:
                path.unlink(missing_ok=True)
                removed += 1
            except OSError as e:
                self.logger.warning(f"Failed to delete cache file {path}: {e}")

        if removed:
            self.logger.info(f"Cleanup removed {removed} expired entries")
        return removed
