"""
Times repeated runs of the Markov chain SIR simulation.

Every repeat starts from a fresh copy of the initial state and from a generator reseeded with the same seed, so every
repeat must produce exactly the same trajectory. The benchmark fails if they don't.
"""
# pylint: disable=import-error
import argparse
import logging
import statistics
import sys
import time
from pathlib import Path
from typing import List, NamedTuple

import numpy as np  # type: ignore

from . import loaders
from . import markov_chain as mc
from .data import Datastore

logger = logging.getLogger(__name__)


class BenchmarkResult(NamedTuple):
    """
    Wall clock time of each repeat, in seconds
    """
    timings: List[float]
    trajectory: mc.Trajectory

    @property
    def minimum(self) -> float:
        return min(self.timings)

    @property
    def median(self) -> float:
        return statistics.median(self.timings)

    @property
    def mean(self) -> float:
        return statistics.mean(self.timings)


def benchmarkSimulation(
        initialState: mc.CompartmentState,
        params: mc.Parameters,
        nsteps: int,
        seed: int,
        repeats: int,
) -> BenchmarkResult:
    """Run the simulation several times, timing each run

    :param initialState: the state at time 0, it is not modified by this function
    :param params: rates of the model
    :param nsteps: the number of steps of each run
    :param seed: seed used to reset the random number generator before each run
    :param repeats: how many times the simulation is run
    :return: the timings and the trajectory produced by every run
    """
    if repeats < 1:
        raise mc.InvalidArgument("repeats must be >= 1")

    timings = []
    first = None
    for repeat in range(repeats):
        generator = np.random.default_rng(seed)
        start = time.perf_counter()
        trajectory = mc.simulate(initialState, params, nsteps, generator)
        timings.append(time.perf_counter() - start)

        if first is None:
            first = trajectory
        elif trajectory != first:
            raise mc.InvariantViolation(f"repeat {repeat} did not reproduce the first trajectory")

    assert first is not None
    return BenchmarkResult(timings=timings, trajectory=first)


def main(argv):
    """
    Benchmark the simulation described in a config file
    """
    logging.basicConfig(
        stream=sys.stderr,
        level=logging.INFO,
        format="[%(asctime)s] [%(name)s] [%(levelname)s] %(message)s",
    )
    parser = argparse.ArgumentParser(
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
        description="Times repeated runs of the Markov chain SIR model",
    )
    parser.add_argument("-c", "--config", default="config.yaml", type=Path, help="Config file listing the input tables")
    parser.add_argument("-n", "--repeats", default=100, type=int, help="Number of times the simulation is run")
    args = parser.parse_args(argv)

    with Datastore.from_config(args.config) as store:
        model = mc.createMarkovChainModel(
            store.read_table("parameters"),
            store.read_table("initial-state"),
            store.read_table("simulation-steps"),
        )
        seed = loaders.readRandomSeed(store.read_table("random-seed") if store.has_table("random-seed") else None)

    result = benchmarkSimulation(model.initialState, model.parameters, model.nsteps, seed, args.repeats)
    logger.info(
        "%s repeats of %s steps: min %.3fms, median %.3fms, mean %.3fms",
        len(result.timings),
        model.nsteps,
        result.minimum * 1000,
        result.median * 1000,
        result.mean * 1000,
    )
    return result


if __name__ == "__main__":
    main(sys.argv[1:])
