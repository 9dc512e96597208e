"""
Command-line entry point.

Usage:
    qed-cascade config.yaml
    python -m qed_cascade.run config.yaml --workers 4 --seed 1
"""

import argparse
import sys

from qed_cascade.io.config import load_config, build_simulation
from qed_cascade.io.output import HDF5Output, OutputManager


def run_simulation(config_path: str, n_workers=None, seed=None, quiet: bool = False):
    """
    Load a configuration, run every source and write the output file.

    Returns:
        List of RunSummary, one per source
    """
    config = load_config(config_path)
    simulation = build_simulation(config)
    general = config.general

    n_workers = n_workers if n_workers is not None else general.n_workers
    seed = seed if seed is not None else general.seed
    verbose = not quiet

    if verbose:
        print("=" * 60)
        print(f"QED cascade: {config_path}")
        print(f"  {simulation.units!r}")
        print(f"  Time step: {general.time_step:.3e} s, end: {general.time_end:.3e} s")
        print(f"  Sources: {len(simulation.sources)}, histograms: {len(simulation.histograms)}")
        print("=" * 60)

    summaries = []
    for i, source in enumerate(simulation.sources):
        # Different sources get different streams from the same root seed
        source_seed = None if seed is None else [seed, i]
        summary = simulation.engine.run(source.generator, source.n_events, seed=source_seed,
                                        n_workers=n_workers,
                                        keep_events=general.tracking or general.store_events,
                                        verbose=verbose)
        summaries.append(summary)

    if general.file_name:
        with HDF5Output(general.file_name) as output:
            manager = OutputManager(output, simulation.units)
            for i, (source, summary) in enumerate(zip(simulation.sources, summaries)):
                if source.output:
                    manager.write_summary(summary, f'source_{i}')
        if verbose:
            print(f"\nOutput written to {general.file_name}")

    return summaries


def main(argv=None):
    parser = argparse.ArgumentParser(description="Strong-field QED cascade Monte Carlo")
    parser.add_argument('config', help="YAML configuration file")
    parser.add_argument('--workers', type=int, default=None,
                        help="Worker processes (overrides general.n_workers)")
    parser.add_argument('--seed', type=int, default=None,
                        help="Root random seed (overrides general.seed)")
    parser.add_argument('--quiet', action='store_true', help="No progress output")
    args = parser.parse_args(argv)

    try:
        run_simulation(args.config, n_workers=args.workers, seed=args.seed,
                       quiet=args.quiet)
    except (ValueError, RuntimeError, OSError) as err:
        print(f"Error: {err}", file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
