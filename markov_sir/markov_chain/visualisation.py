"""
Visualisation tool for the Markov chain SIR model
"""
# pylint: disable=import-error
import argparse
import logging
import sys
from pathlib import Path

import pandas as pd  # type: ignore

from matplotlib import pyplot as plt
from matplotlib.colors import ListedColormap

logger = logging.getLogger(__name__)


def plot_trajectory(df, states=None, figsize=None, cmap=None):
    """
    Plots the size of each compartment over time, one curve per state. The graph is Number of People x Time

    :param df: pandas DataFrame with time, state and either total (a single run) or mean (aggregated runs) columns
    :type df: pandas DataFrame
    :param states: plots one curve per state listed (None means all states)
    :type states: list (of disease states).
    :param figsize: select the size of the plot
    :type figsize: tuple
    :param cmap: color map to use
    :type cmap:
    :return: returns a matplotlib figure
    :rtype: matplotlib figure
    """
    if states is None:
        states = df.state.unique().tolist()
    if cmap is None:
        cmap = ListedColormap(["#56B4E9", "#D55E00", "#009E73"])
    if figsize is None:
        figsize = (10, 6)

    if not states:
        raise ValueError("states cannot be an empty list")
    missing = set(states) - set(df.state.unique())
    if missing:
        raise ValueError(f"states not found in the data: {sorted(missing)}")

    if "mean" in df.columns:
        values = "mean"
    elif "total" in df.columns:
        values = "total"
    else:
        raise ValueError("df must have either a total or a mean column")

    # pre filter by states
    df = df[df.state.isin(states)]
    indexed = df.pivot_table(index="time", columns="state", values=values, observed=True)[states]

    fig, ax = plt.subplots(constrained_layout=True, figsize=figsize)
    indexed.plot(ax=ax, cmap=cmap)
    ax.set_ylabel("Number")
    ax.set_xlabel("Time")

    return fig


def build_args(argv):
    parser = argparse.ArgumentParser(
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
        description="Reads the output of a run and plots the size of each compartment over time",
    )

    parser.add_argument(
        "--states",
        default=None,
        metavar="states,[states,...]",
        help="Comma-separated list of states to plot. All states will be plotted if not provided."
    )
    parser.add_argument(
        "--output",
        default=None,
        type=Path,
        help="Save the figure into this file instead of showing it"
    )

    parser.add_argument("output_path", type=Path, help="Path to an outbreak-timeseries csv file")

    return parser.parse_args(argv)


def main(argv):
    """
    This is the main function of the visualisation tool. The tool outputs a graph for a given run
    """
    logging.basicConfig(
        stream=sys.stdout,
        level=logging.INFO,
        format="[%(asctime)s] [%(name)s] [%(levelname)s] %(message)s",
    )
    args = build_args(argv)
    df = pd.read_csv(args.output_path)
    fig = plot_trajectory(df, args.states.split(",") if args.states else None)
    if args.output is not None:
        logger.info("Saving figure to %s", args.output)
        fig.savefig(args.output)
    else:
        plt.show()


if __name__ == "__main__":
    main(sys.argv[1:])
