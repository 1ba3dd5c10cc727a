"""
This package implements the Markov chain SIR simulation. A closed population is split into three compartments and
advanced through discrete time steps of size ``dt``:

1. Susceptibles (S) -- people who can catch the disease.
2. Infected (I) -- people who have the disease and can transmit it.
3. Recovered (R) -- people who no longer take part in transmission.

At each step, the number of new infections and new recoveries are drawn from two binomial distributions, conditionally
independent given the state at the start of the step. The probabilities of these binomials are obtained from
continuous-time hazard rates through the exponential CDF (see :meth:`rateToProportion`).

The main entrypoint function for the simulation is :meth:`simulate`. It never changes the objects passed as inputs,
and it returns an immutable :class:`Trajectory` which can be turned into a pandas DataFrame with
:meth:`trajectoryToPandas`.
"""
# pylint: disable=import-error
import logging
import math
from typing import Callable, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np  # type: ignore
import pandas as pd  # type: ignore

from markov_sir import loaders
from markov_sir.common import Lazy

logger = logging.getLogger(__name__)

# Compartment names as they appear in the input and output tables
SUSCEPTIBLE_STATE = "S"
INFECTED_STATE = "I"
RECOVERED_STATE = "R"
STATES = [SUSCEPTIBLE_STATE, INFECTED_STATE, RECOVERED_STATE]

RESULT_DTYPES = {"state": pd.CategoricalDtype(STATES)}


class InvalidArgument(ValueError):
    """
    Raised when the model is called with a malformed input: non-positive rates or time step, negative compartment
    counts, an empty population or a negative number of steps.
    """


class InvariantViolation(AssertionError):
    """
    Raised when a model invariant is broken during a simulation (population drift, negative compartments or event
    counts exceeding their bounds). It always points to a programming error.
    """


class SimulationCancelled(RuntimeError):
    """
    Raised when a simulation is stopped by its caller between two steps.
    """


class Parameters(NamedTuple):
    """
    Rates driving the Markov chain. These values are read-only for the whole simulation.
    """
    beta: float
    c: float
    gamma: float
    dt: float


class EventCounts(NamedTuple):
    """
    The number of transitions drawn in a single step
    """
    infections: int
    recoveries: int


NO_EVENTS = EventCounts(infections=0, recoveries=0)


class CompartmentState:
    """
    The mutable S, I and R counts of a single trajectory. The population size is recorded when the object is created and
    the state must keep it constant for its whole life.

    :param susceptible: number of susceptible individuals
    :param infected: number of infected individuals
    :param recovered: number of recovered individuals
    """

    def __init__(self, susceptible: int, infected: int, recovered: int):
        """Initialise."""
        for name, value in (("susceptible", susceptible), ("infected", infected), ("recovered", recovered)):
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
                raise InvalidArgument(f"{name} must be an int, got {value!r}")
            if value < 0:
                raise InvalidArgument(f"{name} must be >= 0, got {value}")
        self.susceptible = int(susceptible)
        self.infected = int(infected)
        self.recovered = int(recovered)
        self.population = self.total()
        if self.population <= 0:
            raise InvalidArgument("population must be > 0")

    def total(self) -> int:
        """Return the current S + I + R."""
        return self.susceptible + self.infected + self.recovered

    def asTuple(self) -> Tuple[int, int, int]:
        """Return an (S, I, R) tuple with the current counts."""
        return self.susceptible, self.infected, self.recovered

    def copy(self) -> "CompartmentState":
        """Return an independent clone of this state."""
        return CompartmentState(self.susceptible, self.infected, self.recovered)

    def __eq__(self, other) -> bool:
        if not isinstance(other, CompartmentState):
            return False
        return self.asTuple() == other.asTuple()

    def __repr__(self):
        return f"CompartmentState(S={self.susceptible}, I={self.infected}, R={self.recovered})"


class Trajectory(NamedTuple):
    """
    Output of a simulation.

    ``states`` has one (S, I, R) tuple per time point, starting with the initial state, so its length is nsteps + 1.
    ``events`` has the counts drawn in each step, so its length is nsteps.
    """
    states: Tuple[Tuple[int, int, int], ...]
    events: Tuple[EventCounts, ...]
    dt: float


class MarkovChainModel(NamedTuple):
    """
    This type has all the data needed to run an ensemble of simulations
    """
    parameters: Parameters
    initialState: CompartmentState
    nsteps: int
    trials: int


def createParameters(beta: float, c: float, gamma: float, dt: float) -> Parameters:
    """Create a Parameters instance, checking every value is a finite positive number.

    :param beta: transmission coefficient
    :param c: contact rate
    :param gamma: recovery rate
    :param dt: size of the time step
    :return: the validated parameters
    """
    params = Parameters(beta=float(beta), c=float(c), gamma=float(gamma), dt=float(dt))
    checkParameters(params)
    return params


def checkParameters(params: Parameters):
    """Raise InvalidArgument unless every parameter is a finite number > 0."""
    for name, value in params._asdict().items():
        try:
            value = float(value)
        except (TypeError, ValueError) as e:
            raise InvalidArgument(f"{name} must be a finite number > 0, got {value!r}") from e
        if math.isnan(value) or math.isinf(value) or value <= 0.0:
            raise InvalidArgument(f"{name} must be a finite number > 0, got {value}")


def rateToProportion(rate: float, dt: float) -> float:
    r"""
    Probability that at least one event happens within ``dt`` for a process with constant hazard ``rate``.

    .. math::

        p = 1 - e^{-\text{rate} \cdot dt}

    :param rate: hazard rate (>= 0)
    :param dt: duration (> 0)
    :return: a probability in [0, 1)
    """
    return 1 - math.exp(-rate * dt)


def applyEvents(state: CompartmentState, events: EventCounts) -> CompartmentState:
    """Update the state in place, moving infections from S into I and recoveries from I into R.

    :param state: state of the trajectory, it will be modified by this function
    :param events: the counts to apply
    :return: the same state passed as a parameter, for convenience
    """
    infections, recoveries = events
    if infections < 0 or recoveries < 0:
        raise InvariantViolation(f"negative event counts: {events}")
    if infections > state.susceptible:
        raise InvariantViolation(f"S:{state.susceptible} < new infections:{infections}")
    if recoveries > state.infected:
        raise InvariantViolation(f"I:{state.infected} < new recoveries:{recoveries}")

    state.susceptible -= infections
    state.infected += infections - recoveries
    state.recovered += recoveries

    if state.total() != state.population:
        raise InvariantViolation(f"population drifted from {state.population} to {state.total()}")
    return state


def sirMarkovStep(
        previousEvents: EventCounts,
        state: CompartmentState,
        params: Parameters,
        generator: np.random.Generator,
) -> EventCounts:
    r"""
    Advance the chain by one step. The previous draw is applied to the state first, then the new events are sampled
    from the updated state:

    1. New infections: binomial with :math:`n=S`,
       :math:`p=\text{rateToProportion}(\beta \cdot c \cdot I / N, dt)`
    2. New recoveries: binomial with :math:`n=I`, :math:`p=\text{rateToProportion}(\gamma, dt)`

    The returned counts are not applied here. They must be passed back in the next call, or flushed with
    :meth:`applyEvents` when the chain ends.

    :param previousEvents: the counts returned by the previous call, or ``NO_EVENTS`` for the first step
    :param state: state of the trajectory, it will be modified by this function
    :param params: rates of the model
    :param generator: seeded random number generator owned by this trajectory
    :return: the counts drawn for this step
    """
    applyEvents(state, previousEvents)

    susceptible, infected, recovered = state.asTuple()
    population = susceptible + infected + recovered
    if population != state.population:
        raise InvariantViolation(f"population drifted from {state.population} to {population}")

    siProb = rateToProportion(params.beta * params.c * infected / population, params.dt)
    irProb = rateToProportion(params.gamma, params.dt)

    infections = generator.binomial(susceptible, siProb)
    recoveries = generator.binomial(infected, irProb)

    return EventCounts(infections=int(infections), recoveries=int(recoveries))


def simulate(
        initialState: CompartmentState,
        params: Parameters,
        nsteps: int,
        generator: np.random.Generator,
        stop: Optional[Callable[[], bool]] = None,
) -> Trajectory:
    """Run a single realisation of the Markov chain.

    :param initialState: the state at time 0, it is not modified by this function
    :param params: rates of the model
    :param nsteps: the number of steps to run, 0 returns only the initial state
    :param generator: seeded random number generator, it must not be shared with other running simulations
    :param stop: optional function checked before each step. The simulation is abandoned with a SimulationCancelled
                 if it returns True
    :return: the full trajectory, with nsteps + 1 states
    """
    checkParameters(params)
    if isinstance(nsteps, bool) or not isinstance(nsteps, (int, np.integer)):
        raise InvalidArgument(f"nsteps must be an int, got {nsteps!r}")
    if nsteps < 0:
        raise InvalidArgument(f"nsteps must be >= 0, got {nsteps}")

    state = initialState.copy()
    events = NO_EVENTS
    states: List[Tuple[int, int, int]] = []
    trace: List[EventCounts] = []

    for step in range(1, nsteps + 1):
        if stop is not None and stop():
            logger.info("Simulation stopped at step %s/%s", step, nsteps)
            raise SimulationCancelled(f"simulation stopped at step {step}")

        events = sirMarkovStep(events, state, params, generator)
        # state now holds the values at step - 1
        states.append(state.asTuple())
        trace.append(events)
        logger.debug("Step (%s/%s). Status: %s. Drawn: %s", step - 1, nsteps, Lazy(state.asTuple), events)

    applyEvents(state, events)
    states.append(state.asTuple())
    logger.debug("Step (%s/%s). Status: %s", nsteps, nsteps, Lazy(state.asTuple))

    return Trajectory(states=tuple(states), events=tuple(trace), dt=params.dt)


def eventTrace(
        initialState: CompartmentState,
        params: Parameters,
        nsteps: int,
        generator: np.random.Generator,
) -> Tuple[EventCounts, ...]:
    """Run the chain and return only the raw (infections, recoveries) counts drawn at each step.

    :param initialState: the state at time 0, it is not modified by this function
    :param params: rates of the model
    :param nsteps: the number of steps to run
    :param generator: seeded random number generator
    :return: nsteps event counts
    """
    return simulate(initialState, params, nsteps, generator).events


def reconstructStates(
        initialState: CompartmentState,
        events: Sequence[EventCounts],
) -> Tuple[Tuple[int, int, int], ...]:
    """Rebuild the compartment trajectory from an event trace.

    >>> reconstructStates(CompartmentState(10, 2, 0), [EventCounts(3, 1), EventCounts(0, 2)])
    ((10, 2, 0), (7, 4, 1), (7, 2, 3))

    :param initialState: the state at time 0, it is not modified by this function
    :param events: the counts drawn in each step
    :return: len(events) + 1 states, starting with the initial one
    """
    state = initialState.copy()
    states = [state.asTuple()]
    for counts in events:
        states.append(applyEvents(state, EventCounts(*counts)).asTuple())
    return tuple(states)


def trajectoryToPandas(trajectory: Trajectory) -> pd.DataFrame:
    """
    Converts a trajectory into a long format pandas DataFrame

    >>> trajectoryToPandas(Trajectory(states=((9, 1, 0), (8, 1, 1)), events=(EventCounts(1, 1),), dt=0.5))  # doctest: +NORMALIZE_WHITESPACE
       step  time state  total
    0     0   0.0     S      9
    1     0   0.0     I      1
    2     0   0.0     R      0
    3     1   0.5     S      8
    4     1   0.5     I      1
    5     1   0.5     R      1

    :param trajectory: output of a simulation
    :return: a pandas dataframe with step, time, state and total columns
    """
    rows = []
    for step, counts in enumerate(trajectory.states):
        for name, value in zip(STATES, counts):
            rows.append([step, step * trajectory.dt, name, value])
    return pd.DataFrame(rows, columns=["step", "time", "state", "total"]).astype(RESULT_DTYPES)


def createMarkovChainModel(
        parameters: pd.DataFrame,
        initial_state: pd.DataFrame,
        simulation_steps: pd.DataFrame,
        trials: Optional[pd.DataFrame] = None,
) -> MarkovChainModel:
    """Create the model, loading data from tables.

    :param parameters: pd.Dataframe with the beta, c, gamma and dt parameters
    :param initial_state: pd.Dataframe with the size of each compartment at time 0
    :param simulation_steps: pd.Dataframe with the number of steps, or the final time, of the simulation
    :param trials: Number of trials for the model. If None, a single trial is run
    :return: The constructed model
    """
    params = createParameters(**loaders.readParameters(parameters))
    compartments = loaders.readInitialState(initial_state)
    state0 = CompartmentState(
        susceptible=compartments[SUSCEPTIBLE_STATE],
        infected=compartments[INFECTED_STATE],
        recovered=compartments[RECOVERED_STATE],
    )
    nsteps = loaders.readSimulationSteps(simulation_steps, params.dt)
    ntrials = loaders.readTrials(trials) if trials is not None else 1

    logger.info(
        "Population: %s, Initial state: %s, Parameters: %s, Steps: %s, Trials: %s",
        state0.population,
        state0.asTuple(),
        params,
        nsteps,
        ntrials,
    )
    return MarkovChainModel(parameters=params, initialState=state0, nsteps=nsteps, trials=ntrials)
