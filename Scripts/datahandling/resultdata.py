from __future__ import annotations
from pathlib import Path
from typing import Dict, Iterable, List, TextIO
import pandas

import utils.log as log


class ResultsData:
    """Buffers result tables of one scenario run and writes them to
    tab-separated text files in the same folder.

    Parameters
    ----------
    results_directory_path : Path
        Folder for result files, created if missing
    """
    def __init__(self, results_directory_path: Path):
        self.path = results_directory_path
        self.path.mkdir(parents=True, exist_ok=True)
        self._line_buffer: Dict[str, TextIO] = {}
        self._table_buffer: Dict[str, List[pandas.DataFrame]] = {}

    def flush(self):
        """Save buffered tables to files and close text files."""
        for buffer in self._line_buffer.values():
            buffer.close()
        self._line_buffer = {}
        for filename, frames in self._table_buffer.items():
            table = pandas.concat(frames, axis=1) if len(frames) > 1 else frames[0]
            table.to_csv(
                self.path / filename, sep='\t', float_format="%1.8g",
                header=True)
            log.debug(f"{len(table)} rows written to {filename}")
        self._table_buffer = {}

    def print_data(self, data: pandas.DataFrame,
                   keys: Iterable[str], filename: str):
        """Save long-format table to buffer (printed to file when flushing).

        Tables pushed to the same file are joined side by side,
        so they must have the same key columns.

        Parameters
        ----------
        data : pandas.DataFrame
            Result records
        keys : iterable of str
            Key columns, written first in file
        filename : str
            Name of file where data is pushed (can contain other data)
        """
        table = data.set_index(list(keys)).sort_index()
        if not table.index.is_unique:
            msg = f"Duplicate keys in table for {filename}"
            log.error(msg)
            raise ValueError(msg)
        self._table_buffer.setdefault(filename, []).append(table)

    def print_line(self, line: str, filename: str):
        """Write text to line in file (closed when flushing).

        Parameters
        ----------
        line : str
            Row of text
        filename : str
            Name of file where text is pushed (can contain other text)
        """
        try:
            buffer = self._line_buffer[filename]
        except KeyError:
            buffer = open(
                self.path / "{}.txt".format(filename), 'w', encoding="utf-8")
            self._line_buffer[filename] = buffer
        buffer.write(line + "\n")
