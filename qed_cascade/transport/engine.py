"""
Cascade simulation engine.

Runs events: for each time step every living particle is pushed and then
offered to every process. Processes may append secondaries while the step
is in progress; the particle loop re-reads the event size on every
iteration, so a secondary created during step k is pushed and interacts
during step k as well.

Events are independent. They are run serially or on a multiprocessing pool
whose workers receive the (read-only) engine and source once, and each event
draws from its own random stream spawned from a single seed, so results do
not depend on the number of workers.
"""

import time as _time
from dataclasses import dataclass, field as dataclass_field
from typing import List, Optional, Dict, Sequence

import numpy as np
from tqdm import tqdm

from qed_cascade.core.particle import ParticleList, PARTICLE_TYPES, PHASE_SPACE_COLUMNS
from qed_cascade.fields.em_field import EMField
from qed_cascade.physics.pushers import ParticlePusher
from qed_cascade.physics.processes import Process
from qed_cascade.scoring.histogram import Histogram
from qed_cascade.source.generator import SourceGenerator


def _phase_space_by_species(particles: ParticleList) -> Dict[str, np.ndarray]:
    return {name: particles.phase_space(name) for name in PARTICLE_TYPES}


def _tracks(particles: ParticleList) -> List[dict]:
    tracks = []
    for index, particle in enumerate(particles):
        if not particle.tracking:
            continue
        tracks.append({
            'index': index,
            'species': particle.name,
            'position': np.array(particle.pos_history),
            'momentum': np.array(particle.mom_history),
            'time': np.array(particle.time_history),
            'gamma': np.array(particle.gamma_history),
        })
    return tracks


@dataclass
class EventResult:
    """Everything an output consumer may need from one finished event."""

    event_id: int
    n_steps: int
    initial: Dict[str, np.ndarray]
    final: Dict[str, np.ndarray]
    histograms: List[Histogram]
    tracks: List[dict] = dataclass_field(default_factory=list)
    records: Optional[np.ndarray] = None
    n_particles: int = 0
    n_alive: int = 0
    radiated_energy: float = 0.0


@dataclass
class RunSummary:
    """Merged results of many events."""

    n_events: int
    histograms: List[Histogram]
    initial: Dict[str, np.ndarray]
    final: Dict[str, np.ndarray]
    events: List[EventResult]
    total_particles: int
    elapsed_time: float
    radiated_energy: float = 0.0

    def particles(self, species: str, which: str = 'final') -> np.ndarray:
        """(n, 7) phase-space rows [px, py, pz, x, y, z, weight]."""
        data = self.final if which == 'final' else self.initial
        return data.get(species, np.zeros((0, len(PHASE_SPACE_COLUMNS))))


# Engine and source for each worker process
_worker_engine = None
_worker_source = None


def _init_worker(engine, source):
    """Install the shared engine and source in a worker process."""
    global _worker_engine, _worker_source
    _worker_engine = engine
    _worker_source = source


def _run_event_worker(work_item):
    """
    Worker function for one event.

    Parameters:
        work_item: (event_id, numpy SeedSequence, keep_records)

    Returns:
        EventResult
    """
    event_id, seed_sequence, keep_records = work_item
    return _worker_engine.simulate_event(_worker_source, event_id, seed_sequence,
                                         keep_records)


class CascadeEngine:
    """
    Time-stepping driver for one or many events.

    Example:
        field = StaticEMField(b_field=(0, 0, 1e-3))
        pusher = LorentzPusher(field, time_step=1e4)
        engine = CascadeEngine(field, pusher, [NonLinearCompton(field, 1e4)],
                               time_end=1e6)
        summary = engine.run(SourceGenerator('electron', 'mono', 1000.0), n_events=100)
    """

    def __init__(self, field: EMField, pusher: ParticlePusher,
                 processes: Sequence[Process] = (), time_end: float = 0.0,
                 histograms: Sequence[Histogram] = ()):
        """
        Initialize the engine.

        Parameters:
            field: Background field
            pusher: Equation-of-motion integrator (defines the time step)
            processes: Processes offered every particle each step, in order
            time_end: Event end time [normalized time]
            histograms: Histogram templates (filled per event, then merged)
        """
        if time_end < 0.0:
            raise ValueError(f"End time must be non-negative, got {time_end}")
        self.field = field
        self.pusher = pusher
        self.processes = list(processes)
        self.time_step = pusher.time_step
        self.time_end = float(time_end)
        self.histograms = sorted(histograms, key=lambda h: h.time)

        for process in self.processes:
            if process.time_step != self.time_step:
                raise ValueError(f"{process!r} time step differs from the pusher's "
                                 f"({self.time_step})")

    @property
    def n_steps(self) -> int:
        """Number of steps until the event time reaches time_end."""
        if self.time_end == 0.0:
            return 0
        return int(np.ceil(self.time_end / self.time_step - 1e-9))

    def step(self, particles: ParticleList):
        """
        Advance every particle of the event by one time step.

        Particles appended by a process during this call are visited in this
        same call because len(particles) is re-read on every iteration.
        """
        k = 0
        while k < len(particles):
            particle = particles[k]
            if particle.alive:
                self.pusher.push(particle)
                for process in self.processes:
                    process.interact(particle, particles)
            k += 1

    def run_event(self, particles: ParticleList, event_id: int = 0,
                  keep_records: bool = False) -> EventResult:
        """
        Run one event to the end time.

        Histograms are filled when the event time first reaches their sample
        time; any histogram whose time was never reached is filled with the
        final state.

        Parameters:
            particles: Initial ParticleList (grows during the event)
            event_id: Identifier carried into the result
            keep_records: Also return every particle as PARTICLE_DTYPE records

        Returns:
            EventResult
        """
        initial = _phase_space_by_species(particles)
        histograms = [hist.empty_copy() for hist in self.histograms]
        pending = 0

        n_steps = self.n_steps
        for step in range(n_steps):
            time = step * self.time_step
            while pending < len(histograms) and time >= histograms[pending].time:
                histograms[pending].fill(particles)
                pending += 1
            self.step(particles)

        for hist in histograms[pending:]:
            hist.fill(particles)

        return EventResult(
            event_id=event_id,
            n_steps=n_steps,
            initial=initial,
            final=_phase_space_by_species(particles),
            histograms=histograms,
            tracks=_tracks(particles),
            records=particles.to_structured_array() if keep_records else None,
            n_particles=len(particles),
            n_alive=particles.n_alive,
            radiated_energy=sum(p.weight * p.radiated_energy for p in particles),
        )

    def simulate_event(self, source: SourceGenerator, event_id: int,
                       seed_sequence: np.random.SeedSequence,
                       keep_records: bool = False) -> EventResult:
        """Generate, run and release one event with its own random stream."""
        rng = np.random.default_rng(seed_sequence)
        particles = source.generate_list(rng)
        result = self.run_event(particles, event_id, keep_records)
        source.free_sources(particles)
        return result

    def run(self, source: SourceGenerator, n_events: int, seed: Optional[int] = None,
            n_workers: int = 1, keep_events: bool = False, verbose: bool = True) -> RunSummary:
        """
        Run many independent events.

        Parameters:
            source: Primary sampler
            n_events: Number of events
            seed: Root seed (random if None); event i uses the i-th spawned stream
            n_workers: Worker processes (1 runs in this process)
            keep_events: Keep every EventResult (with particle records) in the summary
            verbose: Print progress information

        Returns:
            RunSummary with merged histograms and concatenated phase space
        """
        if n_events < 0:
            raise ValueError(f"Number of events must be non-negative, got {n_events}")
        if n_workers < 1:
            raise ValueError(f"Number of workers must be at least 1, got {n_workers}")

        streams = np.random.SeedSequence(seed).spawn(n_events)
        work_items = [(i, streams[i], keep_events) for i in range(n_events)]

        if verbose:
            print(f"\nSimulating {n_events} events on {n_workers} worker(s)...")
            print(f"  Field: {self.field!r}")
            print(f"  Pusher: {self.pusher!r}")
            print(f"  Processes: {[type(p).__name__ for p in self.processes]}")
            print(f"  Steps per event: {self.n_steps}")

        start_time = _time.time()
        results: List[EventResult] = []
        progress = tqdm(total=n_events, desc='Events', disable=not verbose)

        if n_workers == 1:
            for item in work_items:
                results.append(self.simulate_event(source, *item))
                progress.update(1)
        else:
            import multiprocessing as mp

            with mp.Pool(n_workers, initializer=_init_worker,
                         initargs=(self, source)) as pool:
                for result in pool.imap_unordered(_run_event_worker, work_items):
                    results.append(result)
                    progress.update(1)
        progress.close()

        elapsed = _time.time() - start_time
        results.sort(key=lambda r: r.event_id)
        summary = self._merge(results, keep_events, elapsed)

        if verbose:
            print(f"\nSimulation complete!")
            print(f"  Time: {elapsed:.1f}s")
            print(f"  Particles created: {summary.total_particles}")
            for name, data in summary.final.items():
                print(f"  Final {name}s: {len(data)}")

        return summary

    def _merge(self, results: List[EventResult], keep_events: bool,
               elapsed: float) -> RunSummary:
        histograms = [hist.empty_copy() for hist in self.histograms]
        for result in results:
            for total, partial in zip(histograms, result.histograms):
                total.merge(partial)

        def concatenate(key):
            merged = {}
            for name in PARTICLE_TYPES:
                blocks = [getattr(r, key)[name] for r in results]
                blocks = [b for b in blocks if len(b)]
                merged[name] = (np.vstack(blocks) if blocks
                                else np.zeros((0, len(PHASE_SPACE_COLUMNS))))
            return merged

        return RunSummary(
            n_events=len(results),
            histograms=histograms,
            initial=concatenate('initial'),
            final=concatenate('final'),
            events=results if keep_events else [],
            total_particles=sum(r.n_particles for r in results),
            elapsed_time=elapsed,
            radiated_energy=sum(r.radiated_energy for r in results),
        )
