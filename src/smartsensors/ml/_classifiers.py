from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import numpy as np
from scipy.stats import norm
from sklearn.naive_bayes import GaussianNB
from sklearn.preprocessing import MinMaxScaler

from smartsensors.logging import get_logger

log = get_logger("ml.classifiers")

NULL_LABEL = 0


class Classifier(ABC):
    """
    Common surface of the gesture classifiers.

    ``fit`` takes feature rows and integer labels (>= 1; 0 is reserved for
    null rejection). ``predict`` classifies one feature vector, records
    ``predicted_class_label`` and ``class_likelihoods`` and returns the label.
    """

    def __init__(self, use_null_rejection: bool, null_rejection_coeff: float) -> None:
        self.use_null_rejection = bool(use_null_rejection)
        self.null_rejection_coeff = float(null_rejection_coeff)
        self.class_labels: List[int] = []
        self.predicted_class_label = NULL_LABEL
        self.class_likelihoods = np.zeros(0)
        self.trained = False

    @abstractmethod
    def fit(self, X: np.ndarray, y: np.ndarray) -> "Classifier":
        ...

    @abstractmethod
    def predict(self, x: np.ndarray) -> int:
        ...

    def set_null_rejection_coeff(self, coeff: float) -> None:
        self.null_rejection_coeff = float(coeff)

    @staticmethod
    def _check_fit_inputs(X, y):
        X = np.asarray(X, dtype=np.float64)
        y = np.asarray(y).astype(np.int64)
        if X.ndim != 2 or X.shape[0] != y.shape[0]:
            raise ValueError(f"X must be (n, d) with one label per row; got {X.shape} and {y.shape}")
        if X.shape[0] < 2:
            raise ValueError("Need at least two training rows")
        if np.any(y == NULL_LABEL):
            raise ValueError("Label 0 is reserved for null rejection")
        return X, y


class ANBC(Classifier):
    """
    Adaptive naive Bayes classifier: one diagonal Gaussian per class
    (scikit-learn ``GaussianNB``) with per-class null rejection.

    For each class the log-likelihoods of its own training rows give a mean
    and std; a prediction is rejected (label 0) when the winning class's
    log-likelihood falls below ``mean - null_rejection_coeff * std``. A larger
    coefficient gives a looser filter.

    Parameters
    ----------
    use_scaling : bool
        Min-max scale features to [0, 1] using the training range.
    use_null_rejection : bool
        Enable the rejection threshold.
    null_rejection_coeff : float
        Number of standard deviations below the mean training likelihood.
    """

    def __init__(self, use_scaling: bool = False, use_null_rejection: bool = True,
                 null_rejection_coeff: float = 5.0) -> None:
        super().__init__(use_null_rejection, null_rejection_coeff)
        self.use_scaling = bool(use_scaling)
        self._scaler: Optional[MinMaxScaler] = None
        self._model: Optional[GaussianNB] = None
        self._ll_stats: Dict[int, tuple] = {}

    def fit(self, X, y) -> "ANBC":
        X, y = self._check_fit_inputs(X, y)
        if self.use_scaling:
            self._scaler = MinMaxScaler()
            X = self._scaler.fit_transform(X)
        else:
            self._scaler = None
        self._model = GaussianNB().fit(X, y)
        self.class_labels = [int(c) for c in self._model.classes_]

        ll = self._log_likelihoods(X)
        self._ll_stats = {}
        for k, label in enumerate(self.class_labels):
            own = ll[y == label, k]
            self._ll_stats[label] = (float(np.mean(own)), float(np.std(own)))
        self.trained = True
        log.info("ANBC trained on %d rows, classes %s", X.shape[0], self.class_labels)
        return self

    def rejection_threshold(self, label: int) -> float:
        mean, std = self._ll_stats[int(label)]
        return mean - self.null_rejection_coeff * std

    def predict(self, x) -> int:
        if not self.trained:
            raise RuntimeError("ANBC has not been trained")
        x = np.asarray(x, dtype=np.float64).reshape(1, -1)
        if self._scaler is not None:
            x = self._scaler.transform(x)
        self.class_likelihoods = self._model.predict_proba(x)[0]
        k = int(np.argmax(self.class_likelihoods))
        label = self.class_labels[k]
        if self.use_null_rejection:
            ll = self._log_likelihoods(x)[0, k]
            if ll < self.rejection_threshold(label):
                label = NULL_LABEL
        self.predicted_class_label = label
        return label

    def _log_likelihoods(self, X: np.ndarray) -> np.ndarray:
        """(n_rows, n_classes) log-likelihood of each row under each class Gaussian."""
        theta, var = self._model.theta_, self._model.var_
        return np.stack(
            [norm.logpdf(X, loc=theta[k], scale=np.sqrt(var[k])).sum(axis=1) for k in range(theta.shape[0])],
            axis=1,
        )
