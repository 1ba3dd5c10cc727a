"""
This is the main module used to run ensembles of Markov chain SIR simulations
"""
# pylint: disable=import-error
import argparse
from concurrent import futures
import logging
import logging.config
from pathlib import Path
import sys
import time
from typing import Optional, List, NamedTuple

import numpy as np  # type: ignore
import pandas as pd  # type: ignore

from markov_sir.common import IssueSeverity, log_issue
from . import common, loaders
from . import markov_chain as mc
from .data import Datastore

# Default logger, used if module not called as __main__
logger = logging.getLogger(__name__)

OUTPUT_TABLE = "outbreak-timeseries"
INDEX_COLUMNS = ["step", "time", "state"]


def main(argv):
    """
    Main function to run the Markov chain SIR simulation
    """
    t0 = time.time()

    args = build_args(argv)
    setup_logger(args)
    logger.info("Parameters\n%s", "\n".join(f"\t{key}={value}" for key, value in args._get_kwargs()))  # pylint: disable=protected-access

    issues: List[common.Issue] = []

    info = common.get_repo_info()
    if not info.git_sha:
        log_issue(
            logger,
            "Not running from a git repo, so no git_sha associated with the run",
            IssueSeverity.HIGH,
            issues,
        )
    elif info.is_dirty:
        log_issue(logger, "Running out of a dirty git repo", IssueSeverity.HIGH, issues)

    with Datastore.from_config(args.config) as store:
        model = mc.createMarkovChainModel(
            store.read_table("parameters"),
            store.read_table("initial-state"),
            store.read_table("simulation-steps"),
            store.read_table("trials") if store.has_table("trials") else None,
        )
        if model.initialState.infected == 0:
            log_issue(
                logger,
                "There are no infected people at time 0, the outbreak will not progress",
                IssueSeverity.LOW,
                issues,
            )

        random_seed = loaders.readRandomSeed(store.read_table("random-seed") if store.has_table("random-seed") else None)
        results = runSimulation(model, random_seed, issues=issues, max_workers=None if not args.workers else args.workers)
        aggregated = aggregateResults(results)

        logger.info("Writing output")
        store.write_table(OUTPUT_TABLE, aggregated.output)
        for i, result in enumerate(results):
            store.write_table(OUTPUT_TABLE, result.output, run=f"run-{i}")
        store.write_metadata(OUTPUT_TABLE, buildMetadata(info, model, random_seed, aggregated, results))

    logger.info("Took %.2fs to run the simulation.", time.time() - t0)
    logger.info(
        "Use `python -m markov_sir.markov_chain.visualisation -h` to find out how to take a peek at what you just ran."
    )


class Result(NamedTuple):
    """
    This object contains the results of a simulation and a small description
    """
    output: pd.DataFrame
    issues: List[common.Issue]
    description: str = "A dataframe of the number of people in each compartment over time"


def runSimulation(
        model: mc.MarkovChainModel,
        random_seed: int,
        issues: List[common.Issue],
        max_workers: Optional[int] = None,
) -> List[Result]:
    """Run every trial of the model, each one with its own random number stream

    :param model: object with the parameters, initial state and length of the simulation
    :param random_seed: seed to use when instantiating the SeedSequence object
    :param issues: list of issues to report next to the outputs
    :param max_workers: maximum number of processes to spawn when running multiple simulations
    :return: Result runs for all trials of the simulation, in the order they were seeded
    """
    results = []
    with futures.ProcessPoolExecutor(max_workers=max_workers) as executor:
        delayed: List[futures.Future] = []
        for seq in np.random.SeedSequence(random_seed).spawn(model.trials):
            delayed.append(
                executor.submit(
                    mc.simulate,
                    model.initialState,
                    model.parameters,
                    model.nsteps,
                    np.random.default_rng(seq),
                )
            )

        for t, future in enumerate(delayed, start=1):
            logger.info("Running simulation (%s/%s)", t, model.trials)
            trajectory = future.result()
            results.append(
                Result(output=mc.trajectoryToPandas(trajectory), issues=list(issues), description="An individual model run")
            )

    return results


def aggregateResults(results: List[Result]) -> Result:
    """Aggregate results from runs

    :param results: result runs from runSimulation
    :return: Mean and standard deviation of the size of each compartment through time, for all trials
    """
    if not results:
        raise ValueError("There must be at least one result to aggregate")

    agg = pd.concat(
        [result.output.set_index(INDEX_COLUMNS).total.rename(f"total{i}") for i, result in enumerate(results)],
        axis=1,
    )
    agg = pd.DataFrame({"mean": agg.mean(axis=1), "std": agg.std(axis=1)})
    return Result(output=agg.reset_index(), issues=list(results[0].issues), description="Mean and stddev for all the runs")


def buildMetadata(
        info: common.RepoInfo,
        model: mc.MarkovChainModel,
        random_seed: int,
        aggregated: Result,
        results: List[Result],
) -> dict:
    """Collect the provenance and descriptions of a run, to be written next to its outputs"""
    return {
        "git_sha": info.git_sha,
        "uri": info.uri,
        "is_dirty": info.is_dirty,
        "random_seed": random_seed,
        "trials": model.trials,
        "steps": model.nsteps,
        "parameters": dict(model.parameters._asdict()),
        "initial_state": dict(zip(mc.STATES, model.initialState.asTuple())),
        "issues": [dict(issue._asdict()) for issue in aggregated.issues],
        "outputs": {
            "data": aggregated.description,
            **{f"run-{i}": result.description for i, result in enumerate(results)},
        },
    }


def setup_logger(args: Optional[argparse.Namespace] = None) -> None:
    """
    Configure package-level logger instance.

    :param args: argparse.Namespace
        args.logfile (pathlib.Path) is used to create a logfile if present
        args.quiet and args.debug control logging level to sys.stderr

    This function can be called without args, in which case it configures the
    package logger to write INFO and above to STDERR.

    When called with args, it uses args.logfile to determine if logs (by
    default, INFO and above) should be written to a file, and the path of
    that file. args.quiet and args.debug are used to control reporting
    level.
    """
    # Dictionary to define logging configuration
    logconf = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "[%(asctime)s] [%(name)s] [%(levelname)s] %(message)s",
            },
        },
        "handlers": {
            "stderr": {
                "level": "INFO",
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "stream": "ext://sys.stderr",
            },
        },
        "loggers": {__package__: {"handlers": ["stderr"], "level": "DEBUG"}},
    }

    # If args.logfile is specified, add logfile
    if args is not None and args.logfile is not None:
        logdir = args.logfile.parents[0]
        # If the logfile is going in another directory, we must
        # create/check if the directory is there
        try:
            if not logdir == Path.cwd():
                logdir.mkdir(parents=True, exist_ok=True)
        except OSError:
            logger.error("Could not create %s for logging", logdir, exc_info=True)
            raise SystemExit(1)  # pylint: disable=raise-missing-from
        # Add logfile configuration
        logconf["handlers"]["logfile"] = {  # type: ignore
            "class": "logging.FileHandler",
            "level": "INFO",
            "formatter": "standard",
            "filename": str(args.logfile),
            "encoding": "utf8",
        }
        logconf["loggers"][__package__]["handlers"].append("logfile")  # type: ignore

    # Set STDERR/logfile levels if args.quiet/args.debug specified
    if args is not None and args.quiet:
        logconf["handlers"]["stderr"]["level"] = "WARNING"  # type: ignore
    elif args is not None and args.debug:
        logconf["handlers"]["stderr"]["level"] = "DEBUG"  # type: ignore
        if "logfile" in logconf["handlers"]:  # type: ignore
            logconf["handlers"]["logfile"]["level"] = "DEBUG"  # type: ignore

    # Configure logger
    logging.config.dictConfig(logconf)


def build_args(argv):
    """Return parsed CLI arguments as argparse.Namespace.

    :param argv: CLI arguments
    :type argv: list
    """

    parser = argparse.ArgumentParser(
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
        description="Uses the Markov chain SIR model to simulate the disease progression",
    )
    parser.add_argument(
        "-l",
        "--logfile",
        dest="logfile",
        default=None,
        type=Path,
        help="Path for logging output",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        dest="quiet",
        action="store_true",
        help="Prints only warnings to stderr",
    )
    parser.add_argument(
        "--debug", action="store_true", help="Provide debug output to STDERR"
    )
    parser.add_argument(
        "-c",
        "--config",
        default="config.yaml",
        type=Path,
        help="Config file listing the input and output tables",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=0,
        help="Defaults to the number of CPUs in the machine",
    )

    return parser.parse_args(argv)


if __name__ == "__main__":
    # The logger name inherits from the package, if called as __main__
    logger = logging.getLogger(f"{__package__}.{__name__}")
    main(sys.argv[1:])
