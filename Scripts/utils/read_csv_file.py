from pathlib import Path
from typing import Iterable, Optional
import pandas

import utils.log as log


def read_csv_file(path: Path,
                  columns: Iterable[str] = (),
                  key_columns: Iterable[str] = ()) -> pandas.DataFrame:
    """Read data from comma-separated file.

    Parameters
    ----------
    path : Path
        Path to the .csv file
    columns : iterable of str (optional)
        Columns which must be found in file
    key_columns : iterable of str (optional)
        Columns which must not have empty values

    Returns
    -------
    pandas.DataFrame
    """
    if not path.exists():
        msg = f"Path {path} not found."
        raise NameError(msg)
    data: pandas.DataFrame = pandas.read_csv(
        path, skipinitialspace=True, na_values="", keep_default_na=False,
        comment='#')
    missing = [col for col in columns if col not in data]
    if missing:
        msg = "Columns {} missing from file {}".format(
            ", ".join(missing), path)
        log.error(msg)
        raise ValueError(msg)
    for col in key_columns:
        if data[col].isna().any():
            msg = f"Empty value in column {col} in file {path}"
            log.error(msg)
            raise ValueError(msg)
    return data


def read_optional_csv_file(path: Path,
                           columns: Iterable[str] = (),
                           key_columns: Iterable[str] = (),
                           ) -> Optional[pandas.DataFrame]:
    """Read data from comma-separated file, None if file does not exist."""
    if not path.exists():
        log.debug(f"Optional file {path.name} not found")
        return None
    return read_csv_file(path, columns, key_columns)
