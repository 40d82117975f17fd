"""File-backed key-value store for the active `LLMConfig`.

Purpose of this abstraction:
    Persist the one configuration produced by the setup flow so later sessions
    can rebuild an adapter without asking again. The file holds a JSON object;
    the configuration lives under the fixed key `phrase_pilot_config`, leaving
    room for unrelated keys written by other collaborators.

Persistence boundary:
    A single JSON file (`CONFIG_PATH` by default). No schema migration and no
    multiple profiles.

Failure handling:
    - Reads never raise: missing files, unreadable files and malformed data are
      logged and replaced by `DEFAULT_CONFIG`.
    - Writes (`save_config`, `clear_config`) log and re-raise `OSError`.

Concurrency:
    A per-store lock serializes read-modify-write cycles. Files are replaced
    atomically so readers never observe a partial write.
"""

import json
import logging
import os
import tempfile
import threading

from phrasepilot.llm.provider_config import CONFIG_PATH, DEFAULT_CONFIG, LLMConfig


logger = logging.getLogger(__name__)

CONFIG_KEY = "phrase_pilot_config"


class ConfigStore:
    """Get/set/clear access to the stored configuration."""

    def __init__(self, path: str = CONFIG_PATH):
        self.path = path
        self._lock = threading.Lock()

    def _read_all(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".config-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def save_config(self, config: LLMConfig) -> None:
        """Persist `config` under `CONFIG_KEY`.

        Side effects:
            Creates the parent directory when needed. Other keys in the file
            are preserved; an unreadable file is overwritten.
        """
        with self._lock:
            try:
                try:
                    data = self._read_all()
                except ValueError:
                    logger.warning("Overwriting unreadable config file %s", self.path)
                    data = {}
                data[CONFIG_KEY] = config.to_dict()
                self._write_all(data)
            except OSError:
                logger.exception("Failed to save configuration to %s", self.path)
                raise

    def get_config(self) -> LLMConfig:
        """Return the stored config, or `DEFAULT_CONFIG` when none is usable."""
        with self._lock:
            try:
                stored = self._read_all().get(CONFIG_KEY)
            except (OSError, ValueError):
                logger.exception("Failed to read configuration from %s", self.path)
                return DEFAULT_CONFIG

        if not isinstance(stored, dict):
            return DEFAULT_CONFIG
        try:
            return LLMConfig.from_dict(stored)
        except TypeError:
            logger.exception("Stored configuration in %s is malformed", self.path)
            return DEFAULT_CONFIG

    def is_configured(self) -> bool:
        return self.get_config().is_ready()

    def clear_config(self) -> None:
        """Remove the stored config; a missing file or key is not an error."""
        with self._lock:
            try:
                try:
                    data = self._read_all()
                except ValueError:
                    data = {}
                data.pop(CONFIG_KEY, None)
                if data:
                    self._write_all(data)
                elif os.path.exists(self.path):
                    os.remove(self.path)
            except OSError:
                logger.exception("Failed to clear configuration at %s", self.path)
                raise
