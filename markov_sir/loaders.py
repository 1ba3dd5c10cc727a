"""This module contains functions to read and check input tables."""

import math
from typing import Dict, Optional

import pandas as pd  # type: ignore

PARAMETER_NAMES = ["beta", "c", "gamma", "dt"]
COMPARTMENT_NAMES = ["S", "I", "R"]


def _checkColumns(df: pd.DataFrame, columns):
    if list(df.columns) != list(columns):
        raise ValueError(f"There must be {len(columns)} columns named {columns}, found {list(df.columns)}")


def _assertPositiveNumber(name: str, value: float):
    if value <= 0.0 or math.isinf(value) or math.isnan(value):
        raise ValueError(f"{name}={value} must be a positive number")


def readParameters(table: pd.DataFrame) -> Dict[str, float]:
    """Read the rates of the model.

    The table must have two columns, Parameter and Value, with one row for each of beta (transmission coefficient), c
    (contact rate), gamma (recovery rate) and dt (size of the time step).

    :param table: Parameters data
    :return: dict with the value of each parameter
    """
    _checkColumns(table, ["Parameter", "Value"])

    parameters: Dict[str, float] = {}
    for row in table.to_dict(orient="records"):
        name = row["Parameter"]
        if name not in PARAMETER_NAMES:
            raise ValueError(f"Unknown parameter: {name}")
        if name in parameters:
            raise ValueError(f"Parameter {name} given more than once")
        value = float(row["Value"])
        _assertPositiveNumber(name, value)
        parameters[name] = value

    missing = set(PARAMETER_NAMES) - set(parameters)
    if missing:
        raise ValueError(f"Missing parameters: {sorted(missing)}")

    return parameters


def readInitialState(table: pd.DataFrame) -> Dict[str, int]:
    """Read the number of people in each compartment at time 0.

    :param table: DataFrame with the Compartment and Value columns, one row for each of S, I and R
    :return: dict with the size of each compartment
    """
    _checkColumns(table, ["Compartment", "Value"])

    compartments: Dict[str, int] = {}
    for row in table.to_dict(orient="records"):
        name = row["Compartment"]
        if name not in COMPARTMENT_NAMES:
            raise ValueError(f"Unknown compartment: {name}")
        if name in compartments:
            raise ValueError(f"Compartment {name} given more than once")
        value = float(row["Value"])
        if math.isnan(value) or math.isinf(value) or not value.is_integer():
            raise ValueError(f"Compartment {name} must hold a whole number of people, got {row['Value']}")
        if value < 0:
            raise ValueError(f"Compartment {name} cannot be negative")
        compartments[name] = int(value)

    missing = set(COMPARTMENT_NAMES) - set(compartments)
    if missing:
        raise ValueError(f"Missing compartments: {sorted(missing)}")
    if sum(compartments.values()) == 0:
        raise ValueError("The population must not be empty")

    return compartments


def readSimulationSteps(table: pd.DataFrame, dt: float) -> int:
    """
    Read the length of the simulation. The table can either give the number of steps directly (steps) or the final
    time of the simulation (tmax), in which case tmax must be a whole multiple of dt.

    :param table: DataFrame with the Parameter and Value columns and a single row
    :param dt: size of the time step
    :return: the number of steps to run
    """
    _checkColumns(table, ["Parameter", "Value"])
    if len(table) != 1:
        raise ValueError("DataFrame must be of size 1")

    row = table.iloc[0]
    name = row["Parameter"]
    value = row["Value"]
    if name == "steps":
        steps = float(value)
        if not steps.is_integer() or steps < 0:
            raise ValueError("steps must be an int >= 0")
        return int(steps)
    if name == "tmax":
        tmax = float(value)
        if tmax < 0.0 or math.isnan(tmax) or math.isinf(tmax):
            raise ValueError("tmax must be a number >= 0")
        steps = tmax / dt
        if not math.isclose(steps, round(steps)):
            raise ValueError(f"tmax={tmax} is not a multiple of dt={dt}")
        return int(round(steps))

    raise ValueError("Either steps or tmax must be provided")


def readRandomSeed(df: Optional[pd.DataFrame]) -> int:
    """
    Transforms the random seed table into an int usable inside the model

    :param df: a dataframe containing the random seed
    :return: the random seed, 0 if no table is given
    """
    if df is None:
        return 0

    assert len(df) == 1
    assert list(df.columns) == ["Value"]

    for row in df.to_dict(orient="records"):
        if isinstance(row["Value"], str):
            seed = int(row["Value"])
        else:
            seed = row["Value"]

        if isinstance(seed, bool) or not isinstance(seed, int):
            raise ValueError("Seed must be an int")

        if seed < 0:
            raise ValueError("Seed must be positive")

        return seed

    raise ValueError("No seed found")


def readTrials(df: pd.DataFrame) -> int:
    """
    Transforms the trials table into an int usable inside the model

    :param df: The dataframe containing the number of trials
    :return: the number of trials to run
    """
    assert len(df) == 1
    assert list(df.columns) == ["Value"]

    for row in df.to_dict(orient="records"):
        trials = row["Value"]

        if isinstance(trials, bool) or not isinstance(trials, int):
            raise ValueError("trials must be an int")

        if trials < 1:
            raise ValueError("trials must be > 0")

        return trials

    raise ValueError("Dataframe must have at least one row")
