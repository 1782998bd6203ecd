"""Target definitions persisted in a single YAML file."""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import structlog
import yaml

from webpage_monitor.core import Target, TargetStore

logger = structlog.get_logger(__name__)

EXPORT_VERSION = "1.0"


class YamlTargetStore(TargetStore):
    """Store targets as ``{targets: {id: record}}`` in one YAML document.

    Every call reads or rewrites the whole file; writes go to a sibling
    temporary file that then replaces the original.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def _load(self) -> dict[str, dict]:
        if not self.path.exists():
            return {}

        with open(self.path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        return data.get("targets") or {}

    def _save(self, records: dict[str, dict]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")

        with open(tmp_path, "w", encoding="utf-8") as f:
            yaml.dump(
                {"targets": records},
                f,
                allow_unicode=True,
                default_flow_style=False,
                sort_keys=False,
            )

        tmp_path.replace(self.path)

    def get(self, target_id: str) -> Optional[Target]:
        record = self._load().get(target_id)
        if record is None:
            return None
        return Target.from_dict(record, target_id=target_id)

    def set(self, target_id: str, target: Target) -> None:
        records = self._load()
        records[target_id] = target.to_dict()
        self._save(records)

    def list_all(self) -> dict[str, Target]:
        targets = {}
        for target_id, record in self._load().items():
            try:
                targets[target_id] = Target.from_dict(record, target_id=target_id)
            except (ValueError, TypeError, AttributeError) as e:
                logger.warning("invalid_target_record", target_id=target_id, error=str(e))
        return targets

    def delete(self, target_id: str) -> None:
        records = self._load()
        if records.pop(target_id, None) is not None:
            self._save(records)


def export_targets(store: TargetStore, output_path: Path) -> int:
    """Write all targets to a JSON backup in the browser extension format.

    Returns:
        Number of exported targets
    """
    targets = store.list_all()
    export_data = {
        "monitors": {target_id: target.to_dict() for target_id, target in targets.items()},
        "exportedAt": datetime.now(timezone.utc).isoformat(),
        "version": EXPORT_VERSION,
    }

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(
        json.dumps(export_data, indent=2, ensure_ascii=False),
        encoding="utf-8",
    )
    return len(targets)


def import_targets(store: TargetStore, input_path: Path) -> list[str]:
    """Merge targets from a JSON backup over the existing ones.

    Raises:
        ValueError: The file has no ``monitors`` mapping or a record is invalid

    Returns:
        Ids of the imported targets
    """
    data = json.loads(input_path.read_text(encoding="utf-8"))

    monitors = data.get("monitors") if isinstance(data, dict) else None
    if not isinstance(monitors, dict):
        raise ValueError("Invalid backup file: no monitors found")

    # Validate everything before writing anything
    try:
        targets = [Target.from_dict(record, target_id=target_id) for target_id, record in monitors.items()]
    except (TypeError, AttributeError) as e:
        raise ValueError(f"Invalid backup file: {e}") from e

    for target in targets:
        store.set(target.id, target)

    return [target.id for target in targets]
