import os
import shutil

import pytest


def create_baseline(test_data, force_update=False):
    """
    This function is a generic way to keep a baseline fixture updated. It's specially useful for regression tests. It
    checks if the baseline exists inside the data directory next to the test, named after the test. If it doesn't, the
    test will fail, but this function will write it (so next run will succeed).

    This function doesn't make any assumptions regarding the data inside the files, so it just returns the baseline so
    that the test can load it and compare.

    :param test_data: the file produced by the test
    :param force_update: set it to true if you want to always overwrite the baseline file (the test will always fail)
    """
    test_name = os.environ["PYTEST_CURRENT_TEST"].replace(" (call)", "").replace("::", "__")
    test_dir = os.path.dirname(test_name)
    test_name = os.path.basename(test_name)
    baseline = os.path.join(test_dir, "data", test_name)
    if not os.path.isfile(baseline) or force_update:
        os.makedirs(os.path.dirname(baseline), exist_ok=True)
        # test_data usually lives in tmp_path, which can be on another filesystem
        shutil.copyfile(test_data, baseline)
        pytest.fail("Baseline not found. We've created it. Running this test again should succeed")
    return baseline


def assert_trajectory_invariants(states, population):
    """
    Checks the properties every trajectory must have: the population is constant, no compartment is ever negative
    and the recovered never decrease

    :param states: sequence of (S, I, R) tuples
    :param population: the expected S + I + R at every step
    """
    previous_recovered = 0
    for step, (susceptible, infected, recovered) in enumerate(states):
        assert susceptible + infected + recovered == population, f"population changed at step {step}"
        assert min(susceptible, infected, recovered) >= 0, f"negative compartment at step {step}"
        assert recovered >= previous_recovered, f"recovered decreased at step {step}"
        previous_recovered = recovered
