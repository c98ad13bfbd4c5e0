from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List

import numpy as np

from smartsensors.logging import get_logger

log = get_logger("ml.dataset")


def _npz_path(path: str) -> str:
    path = str(path)
    return path if path.endswith(".npz") else path + ".npz"


@dataclass
class LabeledTimeSeries:
    label: int
    data: np.ndarray  # (rows, dims)


class TimeSeriesClassificationData:
    """
    Labeled recordings, each a (rows, num_dimensions) matrix.

    Saved as ``.npz`` with the recordings concatenated plus their lengths and
    labels, so loading never needs pickle.
    """

    def __init__(self, num_dimensions: int, name: str = "", info_text: str = "") -> None:
        self.num_dimensions = int(num_dimensions)
        self.name = str(name)
        self.info_text = str(info_text)
        self.samples: List[LabeledTimeSeries] = []

    def add_sample(self, label: int, data) -> None:
        data = np.asarray(data, dtype=np.float64)
        if data.ndim == 1 and data.size % self.num_dimensions == 0:
            data = data.reshape(-1, self.num_dimensions)
        if data.ndim != 2 or data.shape[1] != self.num_dimensions:
            raise ValueError(
                f"Sample has shape {data.shape}; expected (rows, {self.num_dimensions})"
            )
        if data.shape[0] == 0:
            raise ValueError("Cannot add an empty sample")
        self.samples.append(LabeledTimeSeries(int(label), data.copy()))

    @property
    def num_samples(self) -> int:
        return len(self.samples)

    @property
    def class_labels(self) -> List[int]:
        return sorted({s.label for s in self.samples})

    def clear(self) -> None:
        self.samples.clear()

    def copy(self) -> "TimeSeriesClassificationData":
        out = TimeSeriesClassificationData(self.num_dimensions, self.name, self.info_text)
        out.samples = [LabeledTimeSeries(s.label, s.data.copy()) for s in self.samples]
        return out

    def __len__(self) -> int:
        return len(self.samples)

    def save(self, path: str) -> str:
        path = _npz_path(path)
        parent = os.path.dirname(os.path.abspath(path))
        os.makedirs(parent, exist_ok=True)
        if self.samples:
            data = np.concatenate([s.data for s in self.samples], axis=0)
        else:
            data = np.zeros((0, self.num_dimensions))
        np.savez(
            path,
            data=data,
            lengths=np.array([s.data.shape[0] for s in self.samples], dtype=np.int64),
            labels=np.array([s.label for s in self.samples], dtype=np.int64),
            num_dimensions=np.int64(self.num_dimensions),
            name=np.str_(self.name),
            info_text=np.str_(self.info_text),
        )
        log.info("Saved %d samples to %s", self.num_samples, path)
        return path

    @classmethod
    def load(cls, path: str) -> "TimeSeriesClassificationData":
        path = _npz_path(path)
        with np.load(path, allow_pickle=False) as f:
            out = cls(int(f["num_dimensions"]), str(f["name"]), str(f["info_text"]))
            offsets = np.cumsum(np.concatenate([[0], f["lengths"]]))
            data = f["data"]
            for label, start, end in zip(f["labels"], offsets[:-1], offsets[1:]):
                out.samples.append(LabeledTimeSeries(int(label), data[start:end].copy()))
        log.info("Loaded %d samples from %s", out.num_samples, path)
        return out
