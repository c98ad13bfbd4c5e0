import numpy as np
import pytest

from smartsensors.applications import Session, StreamConsumer
from smartsensors.interface import AudioStream, TcpOStream
from smartsensors.ml import ANBC, GestureRecognitionPipeline
from smartsensors.processing import Calibrator, TimeDomainFeatures
from conftest import FakeAudioStream, FakeSocket, ManualStream


@pytest.fixture
def sock():
    return FakeSocket()


@pytest.fixture
def session(sock):
    offset = {"value": 0.0}

    def resting(data):
        offset["value"] = float(data.mean())

    def setup(s):
        coeff = s.register_tuneable("null_rejection", 5.0, 1.0, 10.0)
        s.use_stream(ManualStream(dims=1))
        pipeline = GestureRecognitionPipeline()
        pipeline.add_feature_extraction_module(TimeDomainFeatures(5, 1, 1, False, True, False, False, False))
        pipeline.set_classifier(ANBC(False, False, coeff))
        s.use_pipeline(pipeline)
        calibrator = Calibrator(lambda x: x - offset["value"])
        calibrator.add_calibrate_process("Resting", "Leave the sensor idle.", resting)
        s.use_calibrator(calibrator)
        s.use_ostream(TcpOStream("localhost", 5204, ["l", "r"], connect=lambda addr, timeout=None: sock))

    s = Session(setup)
    s.run_setup()
    return s


def _rows(value, n=20, seed=0):
    rng = np.random.default_rng(seed)
    return value + rng.normal(0.0, 0.1, size=(n, 1))


def _record(consumer, label, value, seed=0):
    assert consumer.start_recording(label)
    consumer.stream.push(_rows(value, seed=seed))
    consumer.update()
    return consumer.stop_recording()


def test_frames_flow_through_mailbox_to_history(session):
    consumer = StreamConsumer(session, history=8)
    consumer.start_stream()
    session.stream.push(np.arange(12.0).reshape(-1, 1))
    assert len(consumer.mailbox) == 1
    assert consumer.update() == 12
    assert len(consumer.input_history) == 8
    assert consumer.input_history[-1] == pytest.approx([11.0])
    assert len(consumer.feature_history) == 8


def test_record_train_and_predict_live(session, sock):
    consumer = StreamConsumer(session)
    consumer.start_stream()
    for seed in range(2):
        assert _record(consumer, 1, 0.0, seed) == 1
        assert _record(consumer, 2, 10.0, seed) == 2
    assert consumer.training_data.num_samples == 4
    assert consumer.training_data.class_labels == [1, 2]

    untrained = session.pipeline
    assert consumer.train_async()
    assert consumer.wait_for_training(timeout=30) is True
    assert session.pipeline is not untrained
    assert session.pipeline.is_trained
    assert not untrained.is_trained

    session.stream.push(np.full((8, 1), 10.0))
    consumer.update()
    assert consumer.last_prediction == 2
    assert list(consumer.prediction_history)[-4:] == [2, 2, 2, 2]
    assert sock.sent and set(sock.sent) == {b"r"}


def test_predict_recording(session):
    consumer = StreamConsumer(session)
    consumer.start_stream()
    _record(consumer, 1, 0.0)
    _record(consumer, 2, 10.0)
    consumer.train_async()
    consumer.wait_for_training(timeout=30)

    assert _record(consumer, None, 0.0, seed=3) == 1
    assert consumer.last_recorded_prediction == 1


def test_recording_rules(session):
    consumer = StreamConsumer(session)
    assert not consumer.start_recording(0)
    assert consumer.stop_recording() is None
    consumer.start_recording(1)
    assert consumer.stop_recording() is None
    assert consumer.training_data.num_samples == 0


def test_training_without_samples_fails(session):
    consumer = StreamConsumer(session)
    consumer.train_async()
    assert consumer.wait_for_training(timeout=30) is False
    assert not session.pipeline.is_trained


def test_calibration_applies_to_following_rows(session):
    consumer = StreamConsumer(session)
    consumer.start_stream()
    assert consumer.start_calibration(0)
    assert consumer.is_calibrating
    session.stream.push(np.full((4, 1), 5.0))
    consumer.update()
    assert consumer.stop_calibration()
    assert session.calibrator.is_calibrated()

    session.stream.push([[7.0]])
    consumer.update()
    assert consumer.input_history[-1] == pytest.approx([2.0])

    assert not consumer.start_calibration(3)


def test_set_tuneable_rebuilds_and_restarts(session):
    consumer = StreamConsumer(session)
    consumer.start_stream()
    old_stream = session.stream

    assert consumer.set_tuneable("null_rejection", 50) == pytest.approx(10.0)
    assert session.stream is not old_stream
    assert not old_stream.has_started
    assert old_stream.closed
    assert session.stream.has_started
    assert session.pipeline.classifier.null_rejection_coeff == pytest.approx(10.0)

    session.stream.push([[1.0]])
    assert consumer.update() == 1


def test_samples_and_model_persistence(session, tmp_path):
    consumer = StreamConsumer(session)
    consumer.start_stream()
    _record(consumer, 1, 0.0)
    _record(consumer, 2, 10.0)
    path = consumer.save_samples(str(tmp_path / "samples"))

    other = StreamConsumer(session)
    assert other.load_samples(path)
    assert other.training_data.num_samples == 2

    consumer.train_async()
    consumer.wait_for_training(timeout=30)
    model = str(tmp_path / "model.joblib")
    assert consumer.save_model(model)
    session.use_pipeline(GestureRecognitionPipeline())
    consumer.load_model(model)
    assert session.pipeline.is_trained


def test_load_samples_with_wrong_dimensions(session, tmp_path):
    from smartsensors.ml import TimeSeriesClassificationData

    data = TimeSeriesClassificationData(3)
    data.add_sample(1, np.zeros((4, 3)))
    path = data.save(str(tmp_path / "wide"))
    consumer = StreamConsumer(session)
    assert not consumer.load_samples(path)


def test_close_stops_stream_and_outputs(session, sock):
    consumer = StreamConsumer(session)
    consumer.start_stream()
    session.ostreams[0].start()
    consumer.close()
    assert not session.stream.has_started
    assert sock.closed


def test_set_tuneable_closes_audio_driver():
    drivers = []

    def factory(**kwargs):
        drivers.append(FakeAudioStream(**kwargs))
        return drivers[-1]

    def setup(s):
        downsample = s.register_tuneable("downsample", 1, 1, 16)
        s.use_stream(AudioStream(downsample=downsample, stream_factory=factory))

    session = Session(setup)
    session.run_setup()
    consumer = StreamConsumer(session)
    consumer.start_stream()
    assert len(drivers) == 1

    consumer.set_tuneable("downsample", 4)
    assert drivers[0].closed
    assert len(drivers) == 2
    assert drivers[1].started
    assert session.stream.downsample == 4

    consumer.close()
    assert drivers[1].closed
