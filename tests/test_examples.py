from pathlib import Path

import pytest

from smartsensors.applications import Session
from smartsensors.interface import ASCIISerialStream, AudioStream

EXAMPLES = Path(__file__).resolve().parent.parent / "examples"


@pytest.mark.parametrize("name, stream_type, dims", [
    ("user_accelerometer_poses.py", ASCIISerialStream, 3),
    ("user_color_sensor.py", ASCIISerialStream, 3),
    ("user_audio.py", AudioStream, 1),
])
def test_example_setup_builds_session(name, stream_type, dims):
    session = Session.from_config_file(EXAMPLES / name)
    session.run_setup()
    assert isinstance(session.stream, stream_type)
    assert session.stream.get_num_output_dimensions() == dims
    assert session.pipeline is not None
    assert not session.stream.has_started
    assert session.tuneables


def test_accelerometer_calibration_scales_to_g():
    session = Session.from_config_file(EXAMPLES / "user_accelerometer_poses.py")
    session.run_setup()
    cal = session.calibrator
    cal.process(0).set_data([[0.1, -0.1, 1.0], [0.1, -0.1, 1.0]])
    assert cal.calibrate([0.0, 0.0, 1.0]) == pytest.approx([0.0, 0.0, 1.0])
    assert session.stream.get_labels() == ["x", "y", "z"]
