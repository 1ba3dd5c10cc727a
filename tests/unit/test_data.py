import pandas as pd
import pytest
import yaml

from markov_sir.data import Datastore


def test_load_data(data_api):
    expected = pd.DataFrame([{"Value": 1234}])
    pd.testing.assert_frame_equal(data_api.read_table("random-seed"), expected)


def test_has_table(data_api):
    assert data_api.has_table("parameters")
    assert not data_api.has_table("output")


def test_read_unknown_table(data_api):
    with pytest.raises(KeyError):
        data_api.read_table("historical-deaths")


def test_write_data(data_dir):
    with Datastore.from_config(data_dir / "config.yaml") as store:
        path = store.write_table("outbreak-timeseries", pd.DataFrame([{"Time": 0, "Value": 1.0}]))

    assert path == data_dir / "output" / "markov_sir" / "outbreak-timeseries" / "data.csv"
    pd.testing.assert_frame_equal(pd.read_csv(path), pd.DataFrame([{"Time": 0, "Value": 1.0}]))


def test_write_data_run(data_dir):
    with Datastore.from_config(data_dir / "config.yaml") as store:
        path = store.write_table("outbreak-timeseries", pd.DataFrame([{"Time": 0, "Value": 1.0}]), run="run-1")

    assert path.name == "run-1.csv"
    assert path.exists()
    assert store.writes == [path]


def test_write_unknown_table(data_dir):
    with Datastore.from_config(data_dir / "config.yaml") as store:
        with pytest.raises(KeyError):
            store.write_table("deaths", pd.DataFrame())


def test_write_metadata(data_dir):
    with Datastore.from_config(data_dir / "config.yaml") as store:
        path = store.write_metadata("outbreak-timeseries", {"trials": 3, "issues": []})

    assert path.name == "metadata.yaml"
    with open(path) as fp:
        assert yaml.safe_load(fp) == {"trials": 3, "issues": []}


def test_data_directory_relative_to_config(tmp_path):
    (tmp_path / "tables").mkdir()
    pd.DataFrame([{"Value": 7}]).to_csv(tmp_path / "tables" / "seed.csv", index=False)
    with open(tmp_path / "config.yaml", "w") as fp:
        yaml.safe_dump({"data_directory": "tables", "inputs": {"random-seed": "seed.csv"}}, fp)

    store = Datastore.from_config(tmp_path / "config.yaml")

    assert store.data_directory == tmp_path / "tables"
    assert store.outputs == {}
    pd.testing.assert_frame_equal(store.read_table("random-seed"), pd.DataFrame([{"Value": 7}]))


def test_invalid_config(tmp_path):
    with open(tmp_path / "config.yaml", "w") as fp:
        fp.write("- just\n- a list\n")

    with pytest.raises(ValueError):
        Datastore.from_config(tmp_path / "config.yaml")
