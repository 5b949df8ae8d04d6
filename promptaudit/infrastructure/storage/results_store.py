"""Content-addressed store for individual prompt analysis results.

Records live under ``<results_dir>/<YYYY-MM-DD>/<hash>.json``. The hash
covers the prompt, its date, project, model, schema type and the system
prompt fingerprint, so entries are never explicitly invalidated: changing
any of those inputs simply addresses a different file.

Reads collapse every problem into a miss and writes never raise; a lost
cache entry must not abort an analysis run.
"""

import asyncio
import json
import logging
import re
import shutil
import time
from datetime import date as date_type
from datetime import datetime
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional, Sequence, Union

import aiofiles
import aiofiles.os

from promptaudit.domain.models.analysis import (
    AnalysisResult,
    ExtractedPrompt,
    PromptResultMetadata,
    PromptResultRecord,
)
from promptaudit.domain.models.common import (
    AnalysisDate,
    ModelName,
    PromptResultKey,
    PromptText,
    SchemaType,
)
from promptaudit.infrastructure.providers.prompts import hash_string, hash_system_prompt

DATE_DIR_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class CacheLookup(NamedTuple):
    """Outcome of a bulk lookup: hits keyed by prompt content, and misses."""
    cached: Dict[PromptText, AnalysisResult]
    to_analyze: List[ExtractedPrompt]


class PromptResultStore:
    """File-based, atomically written store of per-prompt results."""

    def __init__(
        self,
        results_dir: Path,
        system_prompt_hash: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """Initializes the store.

        Args:
            results_dir: Root directory holding one sub-directory per date.
            system_prompt_hash: Fingerprint of the instruction text
                (defaults to the current system prompt's hash).
            logger: Logger to report through (defaults to the module logger).
        """
        self.results_dir = Path(results_dir)
        self.system_prompt_hash = system_prompt_hash or hash_system_prompt()
        self.logger = logger or logging.getLogger(__name__)

    # --- Addressing ---

    def key_for(
        self,
        content: PromptText,
        date: AnalysisDate,
        model: ModelName,
        schema_type: SchemaType,
        project: Optional[str] = None,
    ) -> PromptResultKey:
        """Computes the content address of a prompt result."""
        parts = [content, date, project or "", model, schema_type, self.system_prompt_hash]
        return PromptResultKey(hash_string("\x00".join(parts)))

    def path_for(self, date: AnalysisDate, key: PromptResultKey) -> Path:
        return self.results_dir / date / key.filename

    # --- Load ---

    async def get(
        self,
        content: PromptText,
        date: AnalysisDate,
        model: ModelName,
        schema_type: SchemaType,
        project: Optional[str] = None,
    ) -> Optional[AnalysisResult]:
        """Loads a stored result, or None on a miss.

        A missing file, malformed JSON, a record without ``result`` or
        ``metadata``, or any read error all count as a miss.
        """
        try:
            key = self.key_for(content, date, model, schema_type, project)
            file_path = self.path_for(date, key)
        except (TypeError, ValueError) as e:
            self.logger.debug(f"Cannot address cached result for {date}: {e}")
            return None

        if not await aiofiles.os.path.exists(file_path):
            self.logger.debug(f"Cache miss for prompt on {date} (hash: {key.short})")
            return None

        try:
            async with aiofiles.open(file_path, mode="r", encoding="utf-8") as f:
                data = json.loads(await f.read())
            if not isinstance(data, dict) or not data.get("result") or not data.get("metadata"):
                self.logger.debug(f"Invalid cached result for hash {key.short}")
                return None
            record = PromptResultRecord.from_dict(data)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            self.logger.debug(f"Failed to read cached result {key.short}: {e}")
            return None

        self.logger.debug(f"Cache hit for prompt on {date} (hash: {key.short})")
        return record.result

    # --- Save ---

    async def put(
        self,
        content: PromptText,
        result: AnalysisResult,
        date: AnalysisDate,
        model: ModelName,
        schema_type: SchemaType,
        project: Optional[str] = None,
    ) -> None:
        """Saves a result with an atomic write. Logs, never raises, on failure.

        An existing record for the same key is overwritten, not merged.
        """
        temp_path: Optional[Path] = None
        try:
            key = self.key_for(content, date, model, schema_type, project)
            file_path = self.path_for(date, key)
            temp_path = file_path.with_name(file_path.name + ".tmp")

            record = PromptResultRecord(
                result=result,
                metadata=PromptResultMetadata(
                    date=date,
                    model=model,
                    schema_type=schema_type,
                    prompt_hash=hash_string(content),
                    analyzed_at=int(time.time() * 1000),
                    project=project,
                ),
            )

            await aiofiles.os.makedirs(file_path.parent, mode=0o700, exist_ok=True)
            async with aiofiles.open(temp_path, mode="w", encoding="utf-8") as f:
                await f.write(json.dumps(record.to_dict(), indent=2))
            await aiofiles.os.replace(temp_path, file_path)
            self.logger.debug(f"Saved result for prompt on {date} (hash: {key.short})")
        except (OSError, TypeError, ValueError) as e:
            self.logger.warning(f"Failed to save prompt result for {date}: {e}")
            try:
                if temp_path is not None and await aiofiles.os.path.exists(temp_path):
                    await aiofiles.os.remove(temp_path)
            except OSError:
                pass  # temp file cleanup is best effort

    # --- Bulk ---

    async def batch_get(
        self,
        prompts: Sequence[ExtractedPrompt],
        model: ModelName,
        schema_type: SchemaType,
    ) -> CacheLookup:
        """Looks up every prompt concurrently and partitions hits from misses."""
        results = await asyncio.gather(
            *(self.get(p.content, p.date, model, schema_type, p.project) for p in prompts)
        )

        cached: Dict[PromptText, AnalysisResult] = {}
        to_analyze: List[ExtractedPrompt] = []
        for prompt, result in zip(prompts, results):
            if result is not None:
                cached[prompt.content] = result
            else:
                to_analyze.append(prompt)

        hit_rate = (len(cached) / len(prompts) * 100) if prompts else 0.0
        self.logger.debug(f"Cache: {len(cached)} hits, {len(to_analyze)} misses ({hit_rate:.1f}% hit rate)")
        return CacheLookup(cached=cached, to_analyze=to_analyze)

    # --- Retention ---

    async def cleanup(self, before: Union[str, date_type]) -> int:
        """Deletes whole date directories strictly older than ``before``.

        Directories whose names are not ``YYYY-MM-DD`` dates are left alone.
        The directory sweep runs in a worker thread.

        Returns:
            Number of date directories deleted.
        """
        if isinstance(before, datetime):
            cutoff = before.date()
        elif isinstance(before, date_type):
            cutoff = before
        else:
            cutoff = datetime.strptime(before, "%Y-%m-%d").date()

        deleted = await asyncio.to_thread(self._delete_dirs_before, cutoff)
        if deleted:
            self.logger.info(f"Cleanup removed {deleted} date directories")
        return deleted

    def _delete_dirs_before(self, cutoff: date_type) -> int:
        if not self.results_dir.exists():
            return 0

        deleted = 0
        try:
            for entry in sorted(self.results_dir.iterdir()):
                if not entry.is_dir() or not DATE_DIR_RE.match(entry.name):
                    continue
                try:
                    dir_date = datetime.strptime(entry.name, "%Y-%m-%d").date()
                except ValueError:
                    continue
                if dir_date < cutoff:
                    shutil.rmtree(entry)
                    deleted += 1
                    self.logger.debug(f"Deleted results directory: {entry.name}")
        except OSError as e:
            self.logger.warning(f"Failed to cleanup results: {e}")
        return deleted
