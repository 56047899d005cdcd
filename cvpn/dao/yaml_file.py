"""
YAML file implementation of VPNStateStore.

All file-specific concerns (path handling, YAML parsing, atomic
replacement) live here, keeping the lifecycle services storage-agnostic.

File layout
───────────
  Location : ~/.vpnrc.yml  (configurable via STATE_FILE or --state-file)
  Root key : vpns  → mapping of VPN name to record (camelCase keys)

The file is created on first load when it does not already exist.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Union

import yaml
from pydantic import ValidationError

from cvpn.dao.base import VPNStateStore
from cvpn.errors import PersistenceError
from cvpn.schemas.vpn import VPNRecord

logger = logging.getLogger(__name__)

ROOT_KEY = "vpns"


class YAMLFileVPNStateStore(VPNStateStore):
    """VPNStateStore backed by a single YAML file."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path).expanduser()

    # ── VPNStateStore interface ───────────────────────────────────────────────

    def load(self) -> dict[str, VPNRecord]:
        """
        Parse the state file into VPNRecord objects.

        A missing file is initialised with an empty mapping.  A file that
        exists but is unreadable, malformed, or holds invalid records raises
        ``PersistenceError`` rather than being reset.
        """
        if not self.path.exists():
            logger.info("State file %s not found; initialising empty state.", self.path)
            self.save({})
            return {}

        try:
            with self.path.open("r", encoding="utf-8") as fh:
                document = yaml.safe_load(fh) or {}
        except OSError as exc:
            logger.error("Could not read state file %s: %s", self.path, exc)
            raise PersistenceError(f"cannot read state file: {exc}", str(self.path)) from exc
        except yaml.YAMLError as exc:
            logger.error("State file %s is not valid YAML: %s", self.path, exc)
            raise PersistenceError(f"state file is not valid YAML: {exc}", str(self.path)) from exc

        if not isinstance(document, dict):
            raise PersistenceError("state file must contain a mapping", str(self.path))

        raw_vpns = document.get(ROOT_KEY) or {}
        if not isinstance(raw_vpns, dict):
            raise PersistenceError(f"'{ROOT_KEY}' must be a mapping", str(self.path))

        vpns: dict[str, VPNRecord] = {}
        for name, raw in raw_vpns.items():
            try:
                vpns[str(name)] = VPNRecord.model_validate(raw)
            except ValidationError as exc:
                raise PersistenceError(
                    f"invalid record for VPN '{name}': {exc}", str(self.path)
                ) from exc

        logger.debug("Loaded %d VPN record(s) from %s.", len(vpns), self.path)
        return vpns

    def save(self, vpns: dict[str, VPNRecord]) -> None:
        """
        Serialise *vpns* and atomically replace the state file.

        The document is written to a temporary file in the same directory,
        flushed to disk, and moved over the old file with ``os.replace``.
        """
        document = {ROOT_KEY: {name: record.to_document() for name, record in vpns.items()}}
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as fh:
                tmp_name = fh.name
                yaml.safe_dump(document, fh, default_flow_style=False, sort_keys=True)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self.path)
        except OSError as exc:
            logger.error("Could not write state file %s: %s", self.path, exc)
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise PersistenceError(f"cannot write state file: {exc}", str(self.path)) from exc

        logger.debug("Saved %d VPN record(s) to %s.", len(vpns), self.path)
