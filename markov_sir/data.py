"""
Reading and writing of the tables used by the model. A run is described by a YAML config file like the one below::

    data_directory: .
    inputs:
      parameters: parameters.csv
      initial-state: initial-state.csv
      simulation-steps: simulation-steps.csv
      random-seed: random-seed.csv
      trials: trials.csv
    outputs:
      outbreak-timeseries: output/markov_sir/outbreak-timeseries/{name}.csv

``data_directory`` is relative to the config file, every other path is relative to ``data_directory``.
"""
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd  # type: ignore
import yaml

logger = logging.getLogger(__name__)

DEFAULT_RUN_NAME = "data"


class Datastore:
    """
    Named access to the csv tables listed in a config file.

    :param data_directory: base directory for all the inputs and outputs
    :param inputs: maps table names into csv paths
    :param outputs: maps table names into csv paths, where ``{name}`` is replaced by the run name
    """

    def __init__(self, data_directory: Path, inputs: Dict[str, str], outputs: Dict[str, str]):
        """Initialise."""
        self.data_directory = Path(data_directory)
        self.inputs = inputs
        self.outputs = outputs
        self.reads: List[Path] = []
        self.writes: List[Path] = []

    @classmethod
    def from_config(cls, config: Union[str, Path]) -> "Datastore":
        """Create a Datastore from a YAML config file.

        :param config: path to the config file
        :return: the Datastore described in the config
        """
        config = Path(config)
        with open(config) as fp:
            conf = yaml.safe_load(fp)
        if not isinstance(conf, dict):
            raise ValueError(f"{config} must contain a mapping")
        return cls(
            data_directory=config.parent / conf.get("data_directory", "."),
            inputs=conf.get("inputs") or {},
            outputs=conf.get("outputs") or {},
        )

    def __enter__(self) -> "Datastore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        logger.info("Read %s tables, wrote %s tables", len(self.reads), len(self.writes))
        for path in self.writes:
            logger.debug("Wrote %s", path)

    def has_table(self, table: str) -> bool:
        """Return True if the config lists the input table."""
        return table in self.inputs

    def read_table(self, table: str) -> pd.DataFrame:
        """Read an input table.

        :param table: name of the table, as listed in the inputs section of the config
        :return: the table, loaded as a pandas DataFrame
        """
        if table not in self.inputs:
            raise KeyError(f"Table {table} is not listed in the inputs")
        path = self.data_directory / self.inputs[table]
        logger.debug("Reading %s from %s", table, path)
        df = pd.read_csv(path)
        self.reads.append(path)
        return df

    def output_path(self, table: str, run: Optional[str] = None) -> Path:
        """Where the output table for a run is written."""
        if table not in self.outputs:
            raise KeyError(f"Table {table} is not listed in the outputs")
        return self.data_directory / self.outputs[table].format(name=run or DEFAULT_RUN_NAME)

    def write_table(self, table: str, value: pd.DataFrame, run: Optional[str] = None) -> Path:
        """Write an output table.

        :param table: name of the table, as listed in the outputs section of the config
        :param value: the data to write
        :param run: name of the run. The default run name is used if None
        :return: the path of the written file
        """
        path = self.output_path(table, run)
        path.parent.mkdir(parents=True, exist_ok=True)
        value.to_csv(path, index=False)
        self.writes.append(path)
        return path

    def write_metadata(self, table: str, metadata: Dict[str, Any]) -> Path:
        """Write a YAML file with the metadata of the runs, next to the outputs of the table."""
        path = self.output_path(table).with_name("metadata.yaml")
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as fp:
            yaml.safe_dump(metadata, fp, sort_keys=False)
        self.writes.append(path)
        return path
