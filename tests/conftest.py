import shutil
from pathlib import Path

import matplotlib
import numpy
import pytest

from markov_sir import markov_chain as mc
from markov_sir.data import Datastore

matplotlib.use("Agg")

# Path to directory containing test files for fixtures
FIXTURE_DIR = Path(__file__).parents[0] / "test_data"


@pytest.fixture
def base_data_dir():
    yield FIXTURE_DIR / "inputs"


@pytest.fixture
def data_dir(base_data_dir, tmp_path):  # pylint: disable=redefined-outer-name
    """A copy of the inputs, so that runs can write their outputs without touching the fixtures"""
    target = tmp_path / "inputs"
    shutil.copytree(base_data_dir, target)
    yield target


@pytest.fixture
def data_api(base_data_dir):  # pylint: disable=redefined-outer-name
    with Datastore.from_config(base_data_dir / "config.yaml") as store:
        yield store


@pytest.fixture
def params():
    yield mc.createParameters(beta=0.05, c=10.0, gamma=0.25, dt=0.1)


@pytest.fixture
def initial_state():
    yield mc.CompartmentState(susceptible=990, infected=10, recovered=0)


@pytest.fixture
def generator():
    yield numpy.random.default_rng(1234)
