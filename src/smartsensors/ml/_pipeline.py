# smartsensors.ml._pipeline.py
from __future__ import annotations

from typing import List, Optional

import joblib
import numpy as np

from smartsensors.logging import get_logger
from ._classifiers import Classifier, NULL_LABEL
from ._dataset import TimeSeriesClassificationData

log = get_logger("ml.pipeline")


class GestureRecognitionPipeline:
    """
    Sample-by-sample gesture recognition:
    pre-processing -> feature extraction -> classifier -> post-processing.

    Pre-processing and feature modules expose ``process(x) -> array`` and
    ``reset()``; feature modules may expose ``is_ready`` (a classifier only
    sees a feature vector once every feature module is ready). Modules run in
    the order they were added, each feeding the next. Post-processing modules
    map a label to a label.
    """

    def __init__(self) -> None:
        self.pre_processing_modules: List = []
        self.feature_extraction_modules: List = []
        self.post_processing_modules: List = []
        self.classifier: Optional[Classifier] = None
        self.trained = False

        self._pre_processed = np.zeros(0)
        self._features = np.zeros(0)
        self._features_ready = False
        self.predicted_class_label = NULL_LABEL
        self.unprocessed_predicted_class_label = NULL_LABEL

    # -------------- assembly ----------------

    def add_pre_processing_module(self, module) -> None:
        self.pre_processing_modules.append(module)

    def add_feature_extraction_module(self, module) -> None:
        self.feature_extraction_modules.append(module)

    def set_classifier(self, classifier: Classifier) -> None:
        self.classifier = classifier
        self.trained = False

    def add_post_processing_module(self, module) -> None:
        self.post_processing_modules.append(module)

    def get_num_pre_processing_modules(self) -> int:
        return len(self.pre_processing_modules)

    def get_num_feature_extraction_modules(self) -> int:
        return len(self.feature_extraction_modules)

    def get_num_post_processing_modules(self) -> int:
        return len(self.post_processing_modules)

    def get_pre_processing_module(self, i: int):
        return self.pre_processing_modules[i]

    def get_feature_extraction_module(self, i: int):
        return self.feature_extraction_modules[i]

    def get_post_processing_module(self, i: int):
        return self.post_processing_modules[i]

    @property
    def is_trained(self) -> bool:
        return self.trained

    # -------------- realtime ----------------

    def reset(self) -> None:
        for module in self.pre_processing_modules + self.feature_extraction_modules + self.post_processing_modules:
            if hasattr(module, "reset"):
                module.reset()
        self._pre_processed = np.zeros(0)
        self._features = np.zeros(0)
        self._features_ready = False

    def pre_process_data(self, sample) -> bool:
        """Run ``sample`` through pre-processing and feature extraction only."""
        try:
            self._forward(sample)
        except ValueError as e:
            log.error("Failed to pre-process data: %s", e)
            return False
        return True

    def get_pre_processed_data(self) -> np.ndarray:
        return self._pre_processed.copy()

    def get_feature_extraction_data(self) -> np.ndarray:
        return self._features.copy()

    def predict(self, x) -> bool:
        """
        Classify a 1-D sample, or a (rows, dims) recording fed row by row from
        a reset state (the final row's decision is reported). Returns False
        when untrained or when the feature buffers are not full yet.
        """
        if not self.trained or self.classifier is None:
            log.error("Pipeline has not been trained")
            return False
        x = np.asarray(x, dtype=np.float64)
        if x.ndim == 2:
            self.reset()
            rows = x
        else:
            rows = x.reshape(1, -1)

        label = None
        try:
            for row in rows:
                self._forward(row)
                if self._features_ready:
                    label = self.classifier.predict(self._features)
        except ValueError as e:
            log.error("Prediction failed: %s", e)
            return False
        if label is None:
            return False

        self.unprocessed_predicted_class_label = label
        for module in self.post_processing_modules:
            label = module.process(label)
        self.predicted_class_label = label
        return True

    def get_predicted_class_label(self) -> int:
        return self.predicted_class_label

    def get_unprocessed_predicted_class_label(self) -> int:
        return self.unprocessed_predicted_class_label

    def get_class_likelihoods(self) -> np.ndarray:
        if self.classifier is None:
            return np.zeros(0)
        return np.asarray(self.classifier.class_likelihoods).copy()

    def get_class_labels(self) -> List[int]:
        return [] if self.classifier is None else list(self.classifier.class_labels)

    # -------------- training ----------------

    def train(self, dataset: TimeSeriesClassificationData) -> bool:
        if self.classifier is None:
            log.error("No classifier set; cannot train")
            return False
        if dataset.num_samples == 0:
            log.error("Training data is empty")
            return False

        X, y = [], []
        try:
            for sample in dataset.samples:
                self.reset()
                for row in sample.data:
                    self._forward(row)
                    if self._features_ready:
                        X.append(self._features.copy())
                        y.append(sample.label)
        except ValueError as e:
            log.error("Failed to compute features for training: %s", e)
            return False
        finally:
            self.reset()

        if not X:
            log.error("No feature vectors produced; recordings are shorter than the feature buffer")
            return False
        try:
            self.classifier.fit(np.asarray(X), np.asarray(y))
        except (ValueError, RuntimeError) as e:
            log.error("Failed to train the model: %s", e)
            self.trained = False
            return False
        self.trained = True
        log.info("Pipeline trained on %d feature vectors from %d samples", len(X), dataset.num_samples)
        return True

    # -------------- persistence ----------------

    def save(self, path: str) -> None:
        joblib.dump(self, path)
        log.info("Pipeline saved to %s", path)

    @staticmethod
    def load(path: str) -> "GestureRecognitionPipeline":
        pipeline = joblib.load(path)
        if not isinstance(pipeline, GestureRecognitionPipeline):
            raise TypeError(f"{path} does not contain a GestureRecognitionPipeline")
        log.info("Pipeline loaded from %s", path)
        return pipeline

    # -------------- internals ----------------

    def _forward(self, sample) -> None:
        x = np.asarray(sample, dtype=np.float64).ravel()
        for module in self.pre_processing_modules:
            x = np.asarray(module.process(x), dtype=np.float64)
        self._pre_processed = x

        for module in self.feature_extraction_modules:
            x = np.asarray(module.process(x), dtype=np.float64)
        self._features = x
        self._features_ready = all(getattr(m, "is_ready", True) for m in self.feature_extraction_modules)
