from __future__ import annotations

import copy
import threading
from collections import deque
from typing import List, Optional

import numpy as np

from smartsensors.interface import FrameMailbox
from smartsensors.logging import get_logger
from smartsensors.ml import GestureRecognitionPipeline, TimeSeriesClassificationData, NULL_LABEL
from ._session import Session

log = get_logger("applications.consumer")


class StreamConsumer:
    """
    Application side of a stream: frames arrive on the producer thread via
    ``on_data`` and are queued in a mailbox; ``update`` (UI thread) drains
    them and drives calibration, recording, the pipeline and output streams.

    Parameters
    ----------
    session : Session
        Configured session (``run_setup`` already called).
    history : int
        Rows kept for plotting.
    mailbox_size, policy :
        Mailbox bound and overflow policy (see ``FrameMailbox``).
    """

    def __init__(self, session: Session, history: int = 256, mailbox_size: int = 64,
                 policy: str = "drop_oldest") -> None:
        self.session = session
        self.history = int(history)
        self.mailbox = FrameMailbox(mailbox_size, policy)
        self.training_data: Optional[TimeSeriesClassificationData] = None

        self.input_history: deque = deque(maxlen=self.history)
        self.pre_processed_history: deque = deque(maxlen=self.history)
        self.feature_history: deque = deque(maxlen=self.history)
        self.prediction_history: deque = deque(maxlen=self.history)
        self.last_prediction = NULL_LABEL
        self.last_recorded_prediction: Optional[int] = None

        self._recording = False
        self._recording_label: Optional[int] = None
        self._record_rows: List[np.ndarray] = []
        self._calibrating: Optional[int] = None
        self._calibration_rows: List[np.ndarray] = []

        self._training_thread: Optional[threading.Thread] = None
        self._training_lock = threading.Lock()
        self._pending_pipeline: Optional[GestureRecognitionPipeline] = None
        self.last_training_ok: Optional[bool] = None

        self.bind()

    # -------------- wiring ----------------

    @property
    def stream(self):
        return self.session.stream

    @property
    def pipeline(self) -> Optional[GestureRecognitionPipeline]:
        return self.session.pipeline

    @property
    def is_recording(self) -> bool:
        return self._recording

    @property
    def is_calibrating(self) -> bool:
        return self._calibrating is not None

    def bind(self) -> None:
        """Attach to the session's current stream and size the dataset to it."""
        stream = self.stream
        dims = 0
        if stream is not None:
            stream.on_data_ready(self.on_data)
            dims = stream.get_num_output_dimensions()
        if self.training_data is None or self.training_data.num_dimensions != dims:
            name = type(stream).__name__ if stream is not None else ""
            self.training_data = TimeSeriesClassificationData(dims, name=name, info_text=f"{name} recordings")
        self.mailbox.clear()
        self.input_history.clear()
        self.pre_processed_history.clear()
        self.feature_history.clear()
        self.prediction_history.clear()

    def on_data(self, frame: np.ndarray) -> None:
        self.mailbox.put(frame)

    # -------------- stream control ----------------

    def start_stream(self) -> None:
        if self.stream is not None:
            self.stream.start()

    def stop_stream(self) -> None:
        if self.stream is not None:
            self.stream.stop()
        self.mailbox.clear()
        self.input_history.clear()

    # -------------- UI-thread processing ----------------

    def update(self) -> int:
        """Process every pending frame; returns the number of rows handled."""
        self._install_trained_pipeline()
        n = 0
        for frame in self.mailbox.drain():
            for row in np.atleast_2d(frame):
                self._process_row(np.asarray(row, dtype=np.float64))
                n += 1
        return n

    def _process_row(self, row: np.ndarray) -> None:
        if self._calibrating is not None:
            self._calibration_rows.append(row.copy())

        calibrator = self.session.calibrator
        if calibrator is not None and calibrator.is_calibrated():
            row = calibrator.calibrate(row)
        self.input_history.append(row)

        stream, pipeline = self.stream, self.pipeline
        if stream is not None and stream.has_started and pipeline is not None:
            if pipeline.is_trained and not self._recording:
                if pipeline.predict(row):
                    self._on_prediction(pipeline.get_predicted_class_label())
                self.prediction_history.append(self.last_prediction)
            else:
                pipeline.pre_process_data(row)
            self.pre_processed_history.append(pipeline.get_pre_processed_data())
            self.feature_history.append(pipeline.get_feature_extraction_data())

        if self._recording:
            self._record_rows.append(row.copy())

    def _on_prediction(self, label: int) -> None:
        self.last_prediction = label
        if label == NULL_LABEL:
            return
        for ostream in self.session.ostreams:
            ostream.send(label)

    # -------------- recording ----------------

    def start_recording(self, label: Optional[int] = None) -> bool:
        """
        Begin collecting rows. With a label (>= 1) the rows become a training
        sample; without one they are classified when recording stops.
        """
        if label is not None and int(label) < 1:
            log.error("Class label must be >= 1 (0 is the null label)")
            return False
        self._recording = True
        self._recording_label = None if label is None else int(label)
        self._record_rows = []
        return True

    def stop_recording(self) -> Optional[int]:
        """Finish recording. Returns the sample's label, or the predicted label."""
        if not self._recording:
            return None
        self._recording = False
        rows, self._record_rows = self._record_rows, []
        label, self._recording_label = self._recording_label, None
        if not rows:
            log.warning("Recording stopped with no data")
            return None
        data = np.vstack(rows)
        if label is not None:
            self.training_data.add_sample(label, data)
            log.info("Added sample for class %d (%d rows); %d samples total",
                     label, data.shape[0], self.training_data.num_samples)
            return label
        return self.predict_recorded(data)

    def predict_recorded(self, data: np.ndarray) -> Optional[int]:
        pipeline = self.pipeline
        if pipeline is None or not pipeline.predict(data):
            log.warning("Could not classify the recording")
            return None
        label = pipeline.get_predicted_class_label()
        self.last_recorded_prediction = label
        log.info("Predicted class label: %d", label)
        return label

    # -------------- calibration ----------------

    def start_calibration(self, index: int) -> bool:
        calibrator = self.session.calibrator
        if calibrator is None or not (0 <= index < len(calibrator.processes)):
            log.error("No calibration step %d", index)
            return False
        self._calibrating = int(index)
        self._calibration_rows = []
        log.info("Calibrating '%s': %s", calibrator.process(index).name, calibrator.process(index).description)
        return True

    def stop_calibration(self) -> bool:
        if self._calibrating is None:
            return False
        index, self._calibrating = self._calibrating, None
        rows, self._calibration_rows = self._calibration_rows, []
        if not rows:
            log.error("Calibration collected no data")
            return False
        self.session.calibrator.process(index).set_data(np.vstack(rows))
        return True

    # -------------- training ----------------

    def train_async(self) -> bool:
        """
        Train a copy of the pipeline on a snapshot of the dataset in a
        background thread; the trained copy replaces the live pipeline on the
        next ``update``. A running training is waited for first.
        """
        if self.pipeline is None:
            log.error("No pipeline configured")
            return False
        self.wait_for_training()
        data = self.training_data.copy()
        candidate = copy.deepcopy(self.pipeline)

        def _train():
            log.info("Training started")
            ok = candidate.train(data)
            log.info("Training is successful" if ok else "Failed to train the model")
            with self._training_lock:
                self.last_training_ok = ok
                self._pending_pipeline = candidate if ok else None

        self._training_thread = threading.Thread(target=_train, name="Training", daemon=True)
        self._training_thread.start()
        return True

    def wait_for_training(self, timeout: Optional[float] = None) -> Optional[bool]:
        thread = self._training_thread
        if thread is not None:
            thread.join(timeout)
            if thread.is_alive():
                return None
            self._training_thread = None
        self._install_trained_pipeline()
        return self.last_training_ok

    def _install_trained_pipeline(self) -> None:
        with self._training_lock:
            pending, self._pending_pipeline = self._pending_pipeline, None
        if pending is not None:
            pending.reset()
            self.session.use_pipeline(pending)

    # -------------- persistence ----------------

    def save_samples(self, path: str) -> str:
        return self.training_data.save(path)

    def load_samples(self, path: str) -> bool:
        data = TimeSeriesClassificationData.load(path)
        if data.num_dimensions != self.training_data.num_dimensions:
            log.error("Samples have %d dimensions; the stream has %d",
                      data.num_dimensions, self.training_data.num_dimensions)
            return False
        self.training_data = data
        return True

    def save_model(self, path: str) -> bool:
        if self.pipeline is None:
            log.error("No pipeline to save")
            return False
        self.pipeline.save(path)
        return True

    def load_model(self, path: str) -> None:
        self.session.use_pipeline(GestureRecognitionPipeline.load(path))

    # -------------- tuneables ----------------

    def set_tuneable(self, name: str, value):
        """Change a tuneable and rebuild the session from setup(); restarts a running stream."""
        old = self.stream
        was_running = old is not None and old.has_started
        self.stop_stream()
        if old is not None and hasattr(old, "close"):
            old.close()
        value = self.session.set_tuneable(name, value)
        self.session.run_setup()
        self.bind()
        if was_running:
            self.start_stream()
        log.info("Tuneable '%s' set to %s; retrain to apply it to the model", name, value)
        return value

    # -------------- teardown ----------------

    def close(self) -> None:
        self.wait_for_training()
        stream = self.stream
        if stream is not None:
            stream.stop()
            if hasattr(stream, "close"):
                stream.close()
        self.session.close_outputs()
