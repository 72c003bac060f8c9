from __future__ import annotations

import csv
from pathlib import Path
from threading import Lock
from typing import Dict, Iterable, List, Optional

import pyarrow as pa
import pyarrow.parquet as pq

from eaglex_sim.models.records import TelemetrySnapshot


class TelemetryRecorder:
    """Keeps telemetry batches per agent and exports them at session end."""

    def __init__(self, output_dir: Path) -> None:
        self.output_dir = output_dir
        self._lock = Lock()
        self._snapshots_by_agent: Dict[str, List[TelemetrySnapshot]] = {}

    def record(self, snapshots: Iterable[TelemetrySnapshot]) -> None:
        with self._lock:
            for snapshot in snapshots:
                self._snapshots_by_agent.setdefault(snapshot.agent_id, []).append(snapshot)

    def pending_agents(self) -> List[str]:
        with self._lock:
            return sorted(self._snapshots_by_agent.keys())

    def flush_agent(
        self,
        agent_id: str,
        label: str | None = None,
        persist_parquet: bool = True,
    ) -> tuple[Optional[Path], Optional[Path]]:
        with self._lock:
            snapshots = self._snapshots_by_agent.pop(agent_id, [])
        if not snapshots:
            return None, None

        self.output_dir.mkdir(parents=True, exist_ok=True)
        rows = [snapshot.to_dict() for snapshot in snapshots]
        stem = f"{label or agent_id}_telemetry"
        csv_path = self.output_dir / f"{stem}.csv"
        with csv_path.open("w", newline="", encoding="utf-8") as fp:
            writer = csv.DictWriter(fp, fieldnames=list(rows[0].keys()))
            writer.writeheader()
            writer.writerows(rows)

        parquet_path: Optional[Path] = None
        if persist_parquet:
            parquet_path = self.output_dir / f"{stem}.parquet"
            pq.write_table(pa.Table.from_pylist(rows), parquet_path)

        return csv_path, parquet_path

    def flush_all(
        self,
        labels: Dict[str, str] | None = None,
        persist_parquet: bool = True,
    ) -> List[tuple[str, Optional[Path], Optional[Path]]]:
        labels = labels or {}
        flushed: List[tuple[str, Optional[Path], Optional[Path]]] = []
        for agent_id in self.pending_agents():
            csv_path, parquet_path = self.flush_agent(
                agent_id,
                label=labels.get(agent_id),
                persist_parquet=persist_parquet,
            )
            flushed.append((agent_id, csv_path, parquet_path))
        return flushed


def load_telemetry(path: Path) -> List[TelemetrySnapshot]:
    """Reads an exported telemetry file back (CSV or Parquet)."""
    ext = path.suffix.lower()
    if ext in {".parquet", ".pq"}:
        rows = pq.read_table(path).to_pylist()
    elif ext == ".csv":
        with path.open("r", newline="", encoding="utf-8") as fp:
            rows = list(csv.DictReader(fp))
    else:
        raise RuntimeError(f"Unsupported telemetry file: {path}")

    int_fields = {"tick", "lap", "sector"}
    str_fields = {"simulation_id", "agent_id"}
    snapshots: List[TelemetrySnapshot] = []
    for row in rows:
        values = {}
        for name, raw in row.items():
            if name in str_fields:
                values[name] = str(raw)
            elif name in int_fields:
                values[name] = int(raw)
            else:
                values[name] = float(raw)
        snapshots.append(TelemetrySnapshot(**values))
    return snapshots
