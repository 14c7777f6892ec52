import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from .errors import CacheWriteError
from .signatures import FunctionDescriptor

logger = logging.getLogger(__name__)

CACHE_EXTENSION = ".json"
CACHE_KEY_PATTERN = re.compile(r"^0x[0-9a-f]{40}$")


class ABICache:
    """On-disk ABI cache keyed by contract address, one JSON file per address."""

    def __init__(self, cache_dir: Union[str, Path]) -> None:
        self.cache_dir = Path(cache_dir).expanduser()
        self._memory: Dict[str, List[FunctionDescriptor]] = {}

    def _key(self, address: str) -> str:
        key = str(address).strip().lower()
        if not CACHE_KEY_PATTERN.fullmatch(key):
            raise ValueError(f"Invalid contract address for ABI cache: {address!r}")
        return key

    def path_for(self, address: str) -> Path:
        return self.cache_dir / f"{self._key(address)}{CACHE_EXTENSION}"

    def load(self, address: str) -> Optional[List[FunctionDescriptor]]:
        try:
            key = self._key(address)
        except ValueError as exc:
            logger.warning(str(exc))
            return None
        if key in self._memory:
            return list(self._memory[key])

        path = self.path_for(address)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning(f"Failed to read ABI cache {path}: {exc}")
            return None

        try:
            entries = json.loads(raw)
            if not isinstance(entries, list):
                raise ValueError("cache file must contain a JSON array")
            descriptors = [FunctionDescriptor.from_abi(entry) for entry in entries]
        except ValueError as exc:
            logger.warning(f"Ignoring corrupt ABI cache {path}: {exc}")
            return None

        logger.debug(f"Loaded {len(descriptors)} cached functions for {key}")
        self._memory[key] = descriptors
        return list(descriptors)

    def save(self, address: str, descriptors: Sequence[FunctionDescriptor]) -> Path:
        """
        Replace the cache entry for ``address`` with ``descriptors``.

        The file is written to a temporary sibling and renamed into place, so
        concurrent readers never see a partially-written entry.

        Raises:
            CacheWriteError: If the address is not a 20-byte hex address or the
                directory or file cannot be written.
        """
        try:
            key = self._key(address)
        except ValueError as exc:
            raise CacheWriteError(str(exc)) from exc
        path = self.path_for(address)
        payload = json.dumps([desc.to_abi() for desc in descriptors], indent=2)

        tmp_name: Optional[str] = None
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{key}.", suffix=".tmp", dir=self.cache_dir)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(tmp_name, path)
        except OSError as exc:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise CacheWriteError(f"Failed to write ABI cache {path}: {exc}", path=str(path)) from exc

        self._memory[key] = list(descriptors)
        logger.debug(f"Cached {len(descriptors)} functions for {key} at {path}")
        return path
