"""
File-backed calibration record store.

One JSON document: {"records": [CalibrationRecord.to_dict(), ...]} in save
order. The engine never reads it during scoring; callers load the active
weights once (load_active_weights) and hand them to the engine.
"""

from __future__ import annotations

import json
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

from backend_riskcore.config.env import get_calibration_store_path
from backend_riskcore.core.exceptions import CalibrationStoreError
from backend_riskcore.risk.models import (
    DEFAULT_WEIGHTS,
    CalibratedWeights,
    CalibrationRecord,
    apply_calibration,
)
from backend_riskcore.riskcore_logging import get_logger

logger = get_logger(__name__)


class CalibrationStore:
    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path) if path is not None else get_calibration_store_path()

    def _read_records(self) -> list[Any]:
        """Strict read of the stored records list; raises CalibrationStoreError if the file is unusable."""
        if not self.path.is_file():
            return []
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise CalibrationStoreError(f"calibration store {self.path} unreadable: {e}") from e
        records = data.get("records") if isinstance(data, dict) else None
        if not isinstance(records, list):
            raise CalibrationStoreError(f"calibration store {self.path} has no records list")
        return records

    def _read_raw(self) -> list[dict[str, Any]]:
        try:
            records = self._read_records()
        except CalibrationStoreError as e:
            logger.warning("calibration_store_read_failed", path=str(self.path), error=str(e))
            return []
        return [r for r in records if isinstance(r, dict)]

    def history(self) -> list[CalibrationRecord]:
        """All readable records, newest first. Unparseable records are skipped."""
        parsed: list[CalibrationRecord] = []
        for raw in self._read_raw():
            try:
                parsed.append(CalibrationRecord.from_dict(raw))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("calibration_record_skipped", record_id=raw.get("id"), error=str(e))
        return sorted(parsed, key=lambda r: r.created_at, reverse=True)

    def latest(self) -> CalibrationRecord | None:
        records = self.history()
        return records[0] if records else None

    def save(
        self,
        factor_adjustments: Mapping[str, float],
        threshold_adjustments: Mapping[str, float] | None = None,
        description: str = "",
    ) -> CalibrationRecord:
        """
        Append a new record and return it. An existing file that cannot be
        parsed is left untouched.

        Raises:
            CalibrationStoreError: the existing file is unreadable or the file
                could not be written.
        """
        record = CalibrationRecord(
            id=uuid.uuid4().hex,
            factor_adjustments={str(k): float(v) for k, v in factor_adjustments.items()},
            threshold_adjustments={str(k): float(v) for k, v in (threshold_adjustments or {}).items()},
            description=description,
            created_at=datetime.now(timezone.utc),
        )
        try:
            records = self._read_records()
        except CalibrationStoreError as e:
            logger.error("calibration_store_save_failed", path=str(self.path), error=str(e))
            raise
        records.append(record.to_dict())
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump({"records": records}, f, indent=2)
            os.replace(tmp, self.path)
        except OSError as e:
            logger.error("calibration_store_save_failed", path=str(self.path), error=str(e))
            if tmp.exists():
                tmp.unlink()
            raise CalibrationStoreError(f"failed to save calibration record to {self.path}: {e}") from e
        logger.info(
            "calibration_record_saved",
            record_id=record.id,
            factor_adjustments=record.factor_adjustments,
            threshold_adjustments=record.threshold_adjustments,
        )
        return record


def load_active_weights(
    store: CalibrationStore | None = None,
    base: CalibratedWeights = DEFAULT_WEIGHTS,
) -> CalibratedWeights:
    """Default weights with the store's latest record applied (defaults when the store is empty)."""
    store = store or CalibrationStore()
    return apply_calibration(base, store.latest())
