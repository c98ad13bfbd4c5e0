"""
Sensor Gesture App
------------------
Loads a user setup module, streams its sensor into live plots, records
labeled samples from the keyboard, trains the gesture pipeline and forwards
predictions to the configured output streams.

    smartsensors-app examples/user_accelerometer_poses.py
"""

import sys
import argparse

import numpy as np
import pyqtgraph as pg
from PyQt5.QtWidgets import (
    QApplication, QMainWindow, QWidget, QVBoxLayout, QHBoxLayout, QFormLayout,
    QPushButton, QLabel, QSpinBox, QDoubleSpinBox, QCheckBox, QFileDialog, QGroupBox,
)
from PyQt5.QtCore import QTimer

from smartsensors import logging as ss_logging
from ._consumer import StreamConsumer
from ._session import Session, load_session

log = ss_logging.get_logger("applications.app")

PEN_COLORS = ['y', 'c', 'm', 'g', 'r', 'b', 'w']


class SensorApp(QMainWindow):
    def __init__(self, session: Session, history=256):
        super().__init__()
        title = session.config_path.name if session.config_path else "Sensor"
        self.setWindowTitle(f"Smart Sensors - {title}")
        self.resize(1200, 800)

        self.session = session
        self.consumer = StreamConsumer(session, history=history)
        self.update_rate = 30  # Hz
        self._held_key = None
        self._training = False

        self.init_ui()

        self.timer = QTimer()
        self.timer.timeout.connect(self.update_plot)
        self.timer.start(int(1000 / self.update_rate))

    # -------------- layout ----------------

    def init_ui(self):
        central = QWidget()
        self.setCentralWidget(central)
        layout = QVBoxLayout(central)

        self.control_panel = QWidget()
        panel = QVBoxLayout(self.control_panel)
        panel.setContentsMargins(0, 0, 0, 0)

        controls = QHBoxLayout()
        for text, slot in (
            ("Start", self.start_stream),
            ("Stop", self.stop_stream),
            ("Train", self.train),
            ("Save Samples", self.save_samples),
            ("Load Samples", self.load_samples),
            ("Save Model", self.save_model),
            ("Load Model", self.load_model),
        ):
            btn = QPushButton(text)
            btn.clicked.connect(slot)
            controls.addWidget(btn)
        controls.addStretch()
        panel.addLayout(controls)

        self.calibration_box = QGroupBox("Calibration")
        self.calibration_layout = QHBoxLayout(self.calibration_box)
        panel.addWidget(self.calibration_box)

        self.tuneable_box = QGroupBox("Tuneables")
        self.tuneable_layout = QFormLayout(self.tuneable_box)
        panel.addWidget(self.tuneable_box)

        layout.addWidget(self.control_panel)

        status = QHBoxLayout()
        self.status_label = QLabel("Status: Stopped")
        status.addWidget(self.status_label)
        self.lbl_prediction = QLabel("Prediction: N/A")
        self.lbl_prediction.setStyleSheet("font-weight: bold; font-size: 14px;")
        status.addWidget(self.lbl_prediction)
        status.addStretch()
        layout.addLayout(status)

        self.plot_widget = pg.GraphicsLayoutWidget()
        layout.addWidget(self.plot_widget, stretch=3)

        self.prob_widget = pg.PlotWidget(title="Class Likelihoods")
        self.prob_widget.setLabel('bottom', "Class Label")
        self.bars = pg.BarGraphItem(x=[], height=[], width=0.6, brush='b')
        self.prob_widget.addItem(self.bars)
        layout.addWidget(self.prob_widget, stretch=1)

        self.rebuild()

    def rebuild(self):
        """Recreate widgets that depend on what setup() configured."""
        self._build_plots()
        self._build_calibration_buttons()
        self._build_tuneable_widgets()

    def _build_plots(self):
        self.plot_widget.clear()
        stream = self.session.stream
        labels = stream.get_labels() if stream is not None else []
        n_in = stream.get_num_output_dimensions() if stream is not None else 0
        if len(labels) != n_in:
            labels = [f"Dim {i + 1}" for i in range(n_in)]

        self.input_plot = self.plot_widget.addPlot(row=0, col=0, title="Input")
        self.input_plot.addLegend()
        self.input_curves = [
            self.input_plot.plot(pen=pg.mkPen(PEN_COLORS[i % len(PEN_COLORS)], width=1), name=labels[i])
            for i in range(n_in)
        ]
        self.pre_plot = self.plot_widget.addPlot(row=1, col=0, title="Pre-processed")
        self.feature_plot = self.plot_widget.addPlot(row=2, col=0, title="Features")
        self.label_plot = self.plot_widget.addPlot(row=3, col=0, title="Predicted Label")
        self.label_curve = self.label_plot.plot(pen=pg.mkPen('w', width=2), stepMode="center")
        for p in (self.pre_plot, self.feature_plot, self.label_plot):
            p.setXLink(self.input_plot)
        self.pre_curves = []
        self.feature_curves = []

    def _build_calibration_buttons(self):
        _clear_layout(self.calibration_layout)
        calibrator = self.session.calibrator
        processes = calibrator.processes if calibrator is not None else []
        self.calibration_box.setVisible(bool(processes))
        for i, process in enumerate(processes):
            btn = QPushButton(process.name)
            btn.setCheckable(True)
            btn.setToolTip(process.description)
            btn.toggled.connect(lambda checked, idx=i: self.toggle_calibration(idx, checked))
            self.calibration_layout.addWidget(btn)
        self.calibration_layout.addStretch()

    def _build_tuneable_widgets(self):
        while self.tuneable_layout.rowCount():
            self.tuneable_layout.removeRow(0)
        self.tuneable_box.setVisible(bool(self.session.tuneables))
        for name, t in self.session.tuneables.items():
            if isinstance(t.value, bool):
                w = QCheckBox()
                w.setChecked(t.value)
                w.toggled.connect(lambda v, n=name: self.set_tuneable(n, v))
            else:
                w = QSpinBox() if isinstance(t.value, int) else QDoubleSpinBox()
                if isinstance(w, QDoubleSpinBox):
                    w.setDecimals(3)
                w.setRange(t.minimum if t.minimum is not None else -1e9,
                           t.maximum if t.maximum is not None else 1e9)
                w.setValue(t.value)
                w.setKeyboardTracking(False)
                w.valueChanged.connect(lambda v, n=name: self.set_tuneable(n, v))
            w.setToolTip(t.description)
            self.tuneable_layout.addRow(name, w)

    # -------------- actions ----------------

    def start_stream(self):
        self.consumer.start_stream()
        if self.session.stream is not None and self.session.stream.has_started:
            self.status_label.setText("Status: Streaming")

    def stop_stream(self):
        self.consumer.stop_stream()
        self.status_label.setText("Status: Stopped")

    def train(self):
        if self.consumer.train_async():
            self._training = True
            self.status_label.setText("Status: Training...")

    def save_samples(self):
        path, _ = QFileDialog.getSaveFileName(self, "Save Samples", "", "Samples (*.npz);;All Files (*)")
        if path:
            saved = self.consumer.save_samples(path)
            self.status_label.setText(f"Status: Samples saved ({saved})")

    def load_samples(self):
        path, _ = QFileDialog.getOpenFileName(self, "Load Samples", "", "Samples (*.npz);;All Files (*)")
        if path and self.consumer.load_samples(path):
            self.status_label.setText(f"Status: Loaded {self.consumer.training_data.num_samples} samples")

    def save_model(self):
        path, _ = QFileDialog.getSaveFileName(self, "Save Model", "", "Pipelines (*.joblib);;All Files (*)")
        if path and self.consumer.save_model(path):
            self.status_label.setText(f"Status: Model saved ({path})")

    def load_model(self):
        path, _ = QFileDialog.getOpenFileName(self, "Load Model", "", "Pipelines (*.joblib);;All Files (*)")
        if not path:
            return
        try:
            self.consumer.load_model(path)
            self.status_label.setText(f"Status: Model Loaded ({path})")
        except (OSError, TypeError) as e:
            log.error("Error loading model: %s", e)
            self.status_label.setText(f"Error loading model: {e}")

    def toggle_calibration(self, index, checked):
        if checked:
            self.consumer.start_calibration(index)
        else:
            try:
                self.consumer.stop_calibration()
            except ValueError as e:
                log.error("Calibration failed: %s", e)

    def set_tuneable(self, name, value):
        self.consumer.set_tuneable(name, value)
        self.session.save_tuneables()
        self._build_plots()
        self._build_calibration_buttons()

    # -------------- keyboard ----------------

    def keyPressEvent(self, event):
        if event.isAutoRepeat():
            return
        text = event.text().lower()
        if text.isdigit() and len(text) == 1:
            if self.consumer.start_recording(int(text)):
                self._held_key = text
                self.status_label.setText(f"Status: Recording class {text}")
        elif text == 'p':
            self.consumer.start_recording(None)
            self._held_key = text
            self.status_label.setText("Status: Recording for prediction")
        elif text == 't':
            self.train()
        elif text == 's':
            self.start_stream()
        elif text == 'e':
            self.stop_stream()
        elif text == 'h':
            self.control_panel.setVisible(not self.control_panel.isVisible())
        else:
            super().keyPressEvent(event)

    def keyReleaseEvent(self, event):
        if event.isAutoRepeat() or self._held_key is None:
            return
        if event.text().lower() == self._held_key:
            self._held_key = None
            result = self.consumer.stop_recording()
            n = self.consumer.training_data.num_samples
            if result is None:
                self.status_label.setText("Status: Recording discarded")
            elif event.text().lower() == 'p':
                self.status_label.setText(f"Status: Recording classified as {result}")
            else:
                self.status_label.setText(f"Status: {n} samples recorded")

    # -------------- refresh ----------------

    def update_plot(self):
        self.consumer.update()
        if self._training and self.consumer.wait_for_training(timeout=0) is not None:
            self._training = False
            ok = self.consumer.last_training_ok
            self.status_label.setText("Status: Trained" if ok else "Status: Training failed")

        _set_curves(self.input_plot, self.input_curves, self.consumer.input_history)
        _set_curves(self.pre_plot, self.pre_curves, self.consumer.pre_processed_history)
        _set_curves(self.feature_plot, self.feature_curves, self.consumer.feature_history)
        predicted = np.asarray(self.consumer.prediction_history, dtype=float)
        if len(predicted):
            self.label_curve.setData(np.arange(len(predicted) + 1), predicted)
        else:
            self.label_curve.clear()

        pipeline = self.session.pipeline
        if pipeline is not None and pipeline.is_trained:
            self.lbl_prediction.setText(f"Prediction: {self.consumer.last_prediction}")
            likelihoods = pipeline.get_class_likelihoods()
            labels = pipeline.get_class_labels()
            if len(likelihoods) == len(labels) and labels:
                self.bars.setOpts(x=labels, height=likelihoods)

    def closeEvent(self, event):
        self.timer.stop()
        self.consumer.close()
        self.session.save_tuneables()
        super().closeEvent(event)


def _set_curves(plot, curves, history):
    rows = [np.ravel(r) for r in history]
    if not rows:
        for c in curves:
            c.setData([], [])
        return
    width = min(len(r) for r in rows)
    if width == 0:
        return
    data = np.vstack([r[:width] for r in rows])
    while len(curves) < width:
        curves.append(plot.plot(pen=pg.mkPen(PEN_COLORS[len(curves) % len(PEN_COLORS)], width=1)))
    for i, c in enumerate(curves):
        if i < width:
            c.setData(np.arange(data.shape[0]), data[:, i])
        else:
            c.setData([], [])


def _clear_layout(layout):
    while layout.count():
        item = layout.takeAt(0)
        if item.widget() is not None:
            item.widget().deleteLater()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Smart sensor gesture recognition app")
    parser.add_argument("config", help="User setup module (a .py file defining setup(session))")
    parser.add_argument("--history", type=int, default=256, help="Rows shown in the plots")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    parser.add_argument("--log-file", default=None, help="Also write log messages to this file")
    args = parser.parse_args(argv)

    ss_logging.configure(args.log_level, args.log_file)
    session = load_session(args.config)

    app = QApplication(sys.argv)
    window = SensorApp(session, history=args.history)
    window.show()
    sys.exit(app.exec_())


if __name__ == "__main__":
    main()
