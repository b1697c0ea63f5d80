"""Audit trail and determinism tracking.

``AuditLogger`` keeps an in-memory trail of one CLI or API session (inputs,
seeds, validation outcomes, headline results, errors) that can be exported as
JSON. ``DeterminismVerifier`` checks the two guarantees the engine makes for a
seeded scenario: repeated runs are identical, and a what-if that adds no
controls reproduces the baseline draw for draw.
"""

import hashlib
import json
import platform
import sys
import time
import uuid
from collections import Counter
from datetime import datetime, timezone
from importlib import metadata
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np

from .data_models import Control, RunOptions, RunResult
from .logging_config import get_logger
from .performance import performance_monitor

logger = get_logger(__name__)

AUDIT_VERSION = "1.0.0"

TRACKED_PACKAGES = ("fair-tool", "numpy", "scipy", "pydantic", "typer", "rich")

# Quant fields holding outputs of an earlier run; not inputs
_QUANT_OUTPUT_FIELDS = {"ale_samples", "pel_samples", "stats", "curve", "last_run_at"}


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_jsonable(obj: Any) -> Any:
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, np.generic):
        return obj.item()
    if isinstance(obj, datetime):
        return obj.isoformat()
    return str(obj)


def _package_version(name: str) -> str:
    try:
        return metadata.version(name)
    except metadata.PackageNotFoundError:
        return "not_installed"


def sample_hash(samples: Sequence[float]) -> str:
    """First 16 hex digits of the SHA-256 of a sample set's float64 bytes."""
    data = np.ascontiguousarray(samples, dtype=np.float64)
    return hashlib.sha256(data.tobytes()).hexdigest()[:16]


class AuditLogger:
    """Audit trail for one session."""

    def __init__(self):
        self.started_at = _utc_now()
        self.start_time = time.time()
        self.session_id = f"FAIR_{datetime.now(timezone.utc):%Y%m%d_%H%M%S}_{uuid.uuid4().hex[:8]}"
        self.audit_entries: List[Dict[str, Any]] = []

    def _append(self, event_type: str, data: Dict[str, Any]) -> str:
        entry_id = f"{self.session_id}-{len(self.audit_entries) + 1:04d}"
        self.audit_entries.append({
            "entry_id": entry_id,
            "session_id": self.session_id,
            "timestamp": _utc_now(),
            "event_type": event_type,
            "data": data,
        })
        return entry_id

    def log_simulation_start(
        self,
        variant: str,
        quant: Any,
        options: Optional[RunOptions] = None,
        controls: Optional[Sequence[Control]] = None,
        input_file: Optional[str] = None,
    ) -> str:
        """Record the inputs of a run before it starts.

        Args:
            variant: ``baseline`` or ``whatif``
            quant: The quant being simulated (model or raw mapping)
            options: Run options; callbacks are never recorded
            controls: Full control register handed to the run
            input_file: Scenario file path; its SHA-256 is recorded

        Returns:
            Audit entry ID, usable as a ``simulation_id`` log context
        """
        if hasattr(quant, "model_dump"):
            quant_data = quant.model_dump(by_alias=True, mode="json", exclude=_QUANT_OUTPUT_FIELDS)
        else:
            quant_data = dict(quant)

        return self._append("simulation_start", {
            "variant": variant,
            "quant": quant_data,
            "options": options.model_dump(by_alias=True, mode="json") if options else {},
            "controls": [c.model_dump(by_alias=True, mode="json") for c in controls or []],
            "input_file": input_file,
            "file_hash": self._file_hash(input_file) if input_file else None,
            "environment": self._environment(),
            "versions": {name: _package_version(name) for name in TRACKED_PACKAGES},
        })

    def log_simulation_end(self, result: RunResult, performance_metrics: Dict[str, Any]) -> str:
        """Record headline statistics, the sample hash and timing of a finished run."""
        return self._append("simulation_end", {
            "variant": result.variant,
            "sims": result.sims,
            "seed": result.seed,
            "event_sampling": result.event_sampling.value,
            "ale": result.stats.ale.model_dump(),
            "pel": result.stats.pel.model_dump(),
            "ale_hash": sample_hash(result.ale_samples),
            "controls_applied": list(result.controls_applied),
            "performance_metrics": performance_metrics,
            "total_session_time": time.time() - self.start_time,
        })

    def log_validation_results(
        self,
        validation_type: str,
        is_valid: bool,
        errors: List[str],
        warnings: List[str],
    ) -> str:
        """Record a validation outcome; ``errors`` are the missing factors."""
        return self._append("validation", {
            "validation_type": validation_type,
            "is_valid": is_valid,
            "errors": list(errors),
            "warnings": list(warnings),
            "error_count": len(errors),
            "warning_count": len(warnings),
        })

    def log_error(
        self,
        error_type: str,
        error_message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> str:
        return self._append("error", {
            "error_type": error_type,
            "error_message": error_message,
            "context": dict(context or {}),
        })

    def export_audit_log(self, file_path: Union[str, Path]) -> None:
        """Write the session metadata and every entry to a JSON file."""
        document = {
            "metadata": {
                "session_id": self.session_id,
                "started_at": self.started_at,
                "export_timestamp": _utc_now(),
                "session_duration": time.time() - self.start_time,
                "total_entries": len(self.audit_entries),
                "audit_version": AUDIT_VERSION,
            },
            "entries": self.audit_entries,
        }
        with open(file_path, "w", encoding="utf-8") as f:
            json.dump(document, f, indent=2, default=_to_jsonable)
        logger.info(f"Audit log written to {file_path} ({len(self.audit_entries)} entries)")

    def get_session_summary(self) -> Dict[str, Any]:
        counts = Counter(entry["event_type"] for entry in self.audit_entries)
        return {
            "session_id": self.session_id,
            "started_at": self.started_at,
            "duration": time.time() - self.start_time,
            "total_entries": len(self.audit_entries),
            "event_counts": dict(counts),
            "has_errors": counts["error"] > 0,
        }

    def _file_hash(self, file_path: str) -> str:
        """SHA-256 of a file, or ``ERROR: ...`` when it cannot be read."""
        try:
            with open(file_path, "rb") as f:
                return hashlib.file_digest(f, "sha256").hexdigest()
        except OSError as e:
            logger.warning(f"Could not hash {file_path}: {e}")
            return f"ERROR: {e}"

    def _environment(self) -> Dict[str, Any]:
        return {
            "platform": platform.platform(),
            "machine": platform.machine(),
            "python_version": platform.python_version(),
            "python_implementation": platform.python_implementation(),
            "byteorder": sys.byteorder,
        }


def _resolve_seed(quant: Any, options: RunOptions) -> Optional[int]:
    from .validation import canonicalize

    return options.seed if options.seed is not None else canonicalize(quant).seed


class DeterminismVerifier:
    """Checks that seeded runs reproduce and that baseline/what-if stay paired."""

    @staticmethod
    @performance_monitor("verify_reproducibility")
    def verify_reproducibility(
        quant: Any,
        controls: Optional[Sequence[Control]] = None,
        options: Optional[RunOptions] = None,
        n_runs: int = 3,
    ) -> Dict[str, Any]:
        """Repeat a seeded baseline run and compare the ALE sample hashes.

        Args:
            quant: Quant to simulate
            controls: Optional control register (implemented controls apply)
            options: Run options; the seed comes from here or from the quant
            n_runs: Number of repeated runs

        Returns:
            ``reproducible``, the ``seed`` and one summary per run; a
            ``reason`` is added when the check fails or cannot run
        """
        from .aggregation import run_baseline

        options = options or RunOptions()
        seed = _resolve_seed(quant, options)
        if seed is None:
            return {"reproducible": False, "reason": "No random seed specified", "runs": []}

        runs = []
        for run_number in range(1, max(1, n_runs) + 1):
            result = run_baseline(quant, options, controls)
            runs.append({
                "run_number": run_number,
                "ale_hash": sample_hash(result.ale_samples),
                "ale_median": result.stats.ale.ml,
                "ale_p90": result.stats.ale.p90,
                "sims": result.sims,
            })

        reproducible = len({r["ale_hash"] for r in runs}) == 1
        outcome = {
            "reproducible": reproducible,
            "seed": seed,
            "runs": runs,
            "verification_timestamp": _utc_now(),
        }
        if not reproducible:
            outcome["reason"] = "Results differ between runs with same seed"
        return outcome

    @staticmethod
    @performance_monitor("verify_pairing")
    def verify_pairing(
        quant: Any,
        controls: Optional[Sequence[Control]] = None,
        options: Optional[RunOptions] = None,
    ) -> Dict[str, Any]:
        """Check that a what-if adding no controls reproduces the baseline exactly.

        The what-if run is given only the baseline's implemented controls, so
        any difference between the two sample sets means the runs drew
        different uniforms.
        """
        from .aggregation import run_baseline, run_what_if
        from .controls import select_baseline_controls

        options = options or RunOptions()
        seed = _resolve_seed(quant, options)
        if seed is None:
            return {"paired": False, "reason": "No random seed specified"}

        implemented = select_baseline_controls(controls or [])
        baseline_hash = sample_hash(run_baseline(quant, options, implemented).ale_samples)
        what_if_hash = sample_hash(run_what_if(quant, implemented, options).ale_samples)

        outcome = {
            "paired": baseline_hash == what_if_hash,
            "seed": seed,
            "baseline_hash": baseline_hash,
            "what_if_hash": what_if_hash,
            "controls": [c.label for c in implemented],
        }
        if not outcome["paired"]:
            outcome["reason"] = "Baseline and what-if sample sets differ with no added controls"
        return outcome
