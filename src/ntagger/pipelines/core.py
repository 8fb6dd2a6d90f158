from __future__ import annotations

import os
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import typer
from tqdm import tqdm

from ntagger.config.load import load_config, config_summary, json_dumps
from ntagger.config.schemas import Config
from ntagger.filters.deadtime import remove_repeated_hits
from ntagger.geometry.pmts import PMTGeometry
from ntagger.geometry.tank import Tank
from ntagger.io.hdf import iter_hdf_events
from ntagger.physics.hits import HitSeries
from ntagger.physics.tof import as_vertex, correct_and_sort
from ntagger.search.candidates import Candidate, build_candidates
from ntagger.search.features import FEATURE_SCHEMA, FEATURE_NAMES
from ntagger.search.scanner import ScanDiagnostics, scan_candidates

EventInput = Tuple[int, HitSeries, np.ndarray]


@dataclass
class EventSummary:
    n_hits: int = 0
    n_removed_hits: int = 0
    n_candidates: int = 0
    first_hit_time: Optional[float] = None
    max_wide_count: int = 0
    max_wide_time: Optional[float] = None
    q_gate_sum: float = 0.0
    dwall: float = 0.0


@dataclass
class EventResult:
    event_id: int
    candidates: List[Candidate]
    summary: EventSummary
    scan_diagnostics: ScanDiagnostics = field(default_factory=ScanDiagnostics)


@dataclass
class PipelineDiagnostics:
    total_events: int = 0
    processed: int = 0
    failed: int = 0
    candidates: int = 0
    reasons: Dict[str, int] = field(default_factory=dict)

    def inc(self, reason: str) -> None:
        self.reasons[reason] = self.reasons.get(reason, 0) + 1


def _gate_charge(hits: HitSeries, gate: Sequence[float]) -> float:
    lo, hi = gate
    inside = (hits.t_ns > lo) & (hits.t_ns < hi)
    return float(np.sum(hits.q_pe[inside]))


def process_event(
    hits: HitSeries,
    vertex,
    geometry: PMTGeometry,
    cfg: Config | None = None,
    *,
    tank: Tank | None = None,
    event_id: int = 0,
) -> EventResult:
    """
    Run one event through hit reduction, ToF correction, the candidate scan
    and candidate building.

    Raises ValueError / IndexError for malformed input; the event then has
    no valid result.
    """
    if cfg is None:
        cfg = Config()
    if tank is None:
        tank = Tank.from_cfg(cfg.geometry)
    v = as_vertex(vertex)
    hits.validate()

    q_gate = _gate_charge(hits, cfg.filters.charge_gate_ns)
    reduced, dt_diag = remove_repeated_hits(hits, cfg.filters.deadtime_us)

    corrected, perm = correct_and_sort(
        reduced,
        v,
        geometry,
        light_speed=cfg.tof.light_speed_cm_per_ns,
        sort=cfg.tof.sort,
        subtract=cfg.tof.use_residual,
    )
    scan = scan_candidates(corrected.t_ns, cfg.search, diagnostics_level=cfg.run.diagnostics_level)
    candidates = build_candidates(scan, corrected, reduced, perm, v, geometry, tank, cfg.search)

    summary = EventSummary(
        n_hits=len(hits),
        n_removed_hits=dt_diag.removed,
        n_candidates=len(candidates),
        first_hit_time=scan.first_hit_time,
        max_wide_count=scan.max_wide_count,
        max_wide_time=scan.max_wide_time,
        q_gate_sum=q_gate,
        dwall=tank.dwall(v),
    )
    return EventResult(event_id, candidates, summary, scan.diagnostics)


def _process_chunk(
    chunk: Sequence[EventInput],
    geometry: PMTGeometry,
    cfg: Config,
) -> List[Tuple[int, Optional[EventResult], Optional[str]]]:
    """Worker: returns (event_id, result or None, error message or None) per event."""
    tank = Tank.from_cfg(cfg.geometry)
    out = []
    for event_id, hits, vertex in chunk:
        try:
            res = process_event(hits, vertex, geometry, cfg, tank=tank, event_id=event_id)
        except (ValueError, IndexError, KeyError) as exc:
            out.append((event_id, None, f"{type(exc).__name__}: {exc}"))
            continue
        out.append((event_id, res, None))
    return out


def _resolve_workers(workers) -> int:
    if workers == "auto":
        return max(1, os.cpu_count() or 1)
    if isinstance(workers, int):
        return max(0, workers)
    raise ValueError("workers must be int or 'auto'")


def process_events(
    events: Iterable[EventInput],
    geometry: PMTGeometry,
    cfg: Config | None = None,
    *,
    chunk_events: int = 64,
) -> Tuple[List[EventResult], PipelineDiagnostics]:
    """
    Process independent events, in parallel when cfg.run.workers > 0.

    A malformed event is reported and dropped; results keep input order.
    """
    if cfg is None:
        cfg = Config()
    events = list(events)
    diag = PipelineDiagnostics(total_events=len(events))
    workers = _resolve_workers(cfg.run.workers)
    diag_level = cfg.run.diagnostics_level

    chunks: List[Sequence[EventInput]] = [
        events[i:i + chunk_events] for i in range(0, len(events), chunk_events)
    ]
    outputs: Dict[int, List[Tuple[int, Optional[EventResult], Optional[str]]]] = {}

    pbar = tqdm(total=len(events), desc="events", unit="ev") if cfg.run.progress else None
    if workers == 0 or len(chunks) <= 1:
        for k, ch in enumerate(chunks):
            outputs[k] = _process_chunk(ch, geometry, cfg)
            if pbar:
                pbar.update(len(ch))
    else:
        with ProcessPoolExecutor(max_workers=workers) as ex:
            futs = {ex.submit(_process_chunk, ch, geometry, cfg): k for k, ch in enumerate(chunks)}
            for fut in as_completed(futs):
                k = futs[fut]
                outputs[k] = fut.result()
                if pbar:
                    pbar.update(len(chunks[k]))
    if pbar:
        pbar.close()

    results: List[EventResult] = []
    for k in range(len(chunks)):
        for event_id, res, err in outputs[k]:
            if res is None:
                diag.failed += 1
                diag.inc(err.split(":", 1)[0])
                if diag_level >= 1:
                    print(f"[pipeline] Skipping event {event_id}: {err}")
                continue
            diag.processed += 1
            diag.candidates += len(res.candidates)
            results.append(res)

    if diag_level >= 1:
        print(f"[pipeline] {diag.processed}/{diag.total_events} events processed, "
              f"{diag.candidates} candidates, {diag.failed} failed")
    return results, diag


def run_pipeline(
    cfg_path: str,
    *,
    workers: Optional[int] = None,
) -> Tuple[List[EventResult], PipelineDiagnostics]:
    """
    Orchestrate the search from a TOML config file.

    The PMT table comes from [geometry].pmt_table, or from the input file's
    /geometry/pmt_xyz dataset when no table is configured.
    """
    cfg = load_config(cfg_path)
    if workers is not None:
        cfg.run.workers = workers
    if cfg.io is None:
        raise ValueError(f"{cfg_path}: missing [io] section")

    diag_level = cfg.run.diagnostics_level
    if diag_level >= 1:
        print(f"[run] config = {cfg_path}")
        print(f"[run] input = {cfg.io.input_path}")
    if diag_level >= 2:
        print(f"[run] search = {config_summary(cfg)}")

    geometry = PMTGeometry.from_cfg(cfg.geometry, fallback_path=cfg.io.input_path)
    if diag_level >= 1:
        print(f"[run] {geometry.n_pmts} PMTs")

    events = list(iter_hdf_events(
        cfg.io.input_path,
        hits_group=cfg.io.hits_group,
        events_group=cfg.io.events_group,
        max_events=cfg.run.max_events,
    ))
    if diag_level >= 1:
        print(f"[pipeline] Got {len(events)} events")

    return process_events(events, geometry, cfg)


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

app = typer.Typer(help="Delayed-capture candidate search (ntagger.pipelines.core)")

_TABLE_COLUMNS = ("N10", "N200", "ReconCT", "TRMS", "Beta1", "sumQ")


@app.command()
def run(
    cfg_path: str = typer.Argument(..., help="Path to TOML config file"),
    workers: Optional[int] = typer.Option(
        None,
        "--workers",
        "-j",
        help="Override [run].workers (0 = single process)",
    ),
    as_json: bool = typer.Option(
        False,
        "--json",
        help="Print one JSON object per candidate with the full feature vector",
    ),
):
    """
    Search every event of the configured input and print the candidates.
    """
    results, _ = run_pipeline(cfg_path, workers=workers)
    if not as_json:
        typer.echo("event  cand  " + "  ".join(f"{c:>10s}" for c in _TABLE_COLUMNS))
    for res in results:
        for cand in res.candidates:
            if as_json:
                typer.echo(json_dumps({
                    "event_id": res.event_id,
                    "candidate_id": cand.candidate_id,
                    "n_signal_hits": cand.n_signal_hits,
                    "features": cand.features.to_dict(),
                }))
            else:
                vals = "  ".join(f"{cand.features[c]:>10.4g}" for c in _TABLE_COLUMNS)
                typer.echo(f"{res.event_id:5d}  {cand.candidate_id:4d}  {vals}")


@app.command()
def schema():
    """List the candidate feature schema."""
    for spec in FEATURE_SCHEMA:
        typer.echo(f"{spec.name:<18s} {spec.kind:<5s} {spec.doc}")
    typer.echo(f"({len(FEATURE_NAMES)} features)")


if __name__ == "__main__":
    app()
