"""
Accelerometer poses: an ADXL335 read over ASCII serial ("x y z" per line),
calibrated at rest so that 0 means zero-g and 1 means one-g.

    smartsensors-app examples/user_accelerometer_poses.py
"""
import numpy as np

from smartsensors.interface import ASCIISerialStream, TcpOStream
from smartsensors.ml import ANBC, ClassLabelTimeoutFilter, GestureRecognitionPipeline
from smartsensors.processing import Calibrator, TimeDomainFeatures, normalize_adxl335

# Filled in by the "Resting" calibration step
zero_g, one_g = 0.0, 1.0


def process_accelerometer_data(sample):
    if sample.size < 3:
        return sample
    out = sample.copy()
    out[:3] = (sample[:3] - zero_g) / (one_g - zero_g)
    return out


def resting_data_collected(data):
    global zero_g, one_g
    mean = data[:, :3].mean(axis=0)
    # X and Y see no gravity at rest; Z sees one g
    zero_g = (mean[0] + mean[1]) / 2
    one_g = mean[2]


def setup(session):
    timeout = session.register_tuneable(
        "timeout", 500, 10, 1000, "The longer, the more filtering effect on the result")
    null_rej = session.register_tuneable(
        "null_rejection", 5.0, 0.1, 20.0,
        "Multiplied by the standard deviation to set the rejection threshold. "
        "Higher is looser, lower is tighter.")

    stream = ASCIISerialStream(0, 9600, 3)
    stream.use_normalizer(normalize_adxl335)
    stream.set_labels_for_all_dimensions(["x", "y", "z"])
    session.use_stream(stream)

    calibrator = Calibrator(process_accelerometer_data)
    calibrator.add_calibrate_process(
        "Resting", "Rest accelerometer on flat surface, w/ z-axis vertical.", resting_data_collected)
    session.use_calibrator(calibrator)

    pipeline = GestureRecognitionPipeline()
    pipeline.add_feature_extraction_module(TimeDomainFeatures(10, 1, 3, False, True, True, False, False))
    pipeline.set_classifier(ANBC(False, True, null_rej))
    pipeline.add_post_processing_module(ClassLabelTimeoutFilter(timeout))
    session.use_pipeline(pipeline)

    session.use_ostream(TcpOStream("localhost", 5204, ["l", "r", " "]))
