"""
Color sensor: "r g b" lines over ASCII serial, normalized to unit magnitude
so that classification depends on hue rather than brightness.
"""
from smartsensors.interface import ASCIISerialStream, TcpOStream
from smartsensors.ml import ANBC, GestureRecognitionPipeline
from smartsensors.processing import MovingAverageFilter, unit_magnitude


def setup(session):
    scaling = session.register_tuneable(
        "scaling", False,
        description="Scale training and prediction data to a fixed range. Usually off.")
    null_rej = session.register_tuneable(
        "null_rejection", 5.0, 1.0, 10.0,
        "Multiplied by the standard deviation to set the rejection threshold.")

    stream = ASCIISerialStream(0, 9600, 3)
    stream.use_vector_normalizer(unit_magnitude)
    stream.set_labels_for_all_dimensions(["red", "green", "blue"])
    session.use_stream(stream)

    pipeline = GestureRecognitionPipeline()
    pipeline.add_pre_processing_module(MovingAverageFilter(5, 3))
    pipeline.set_classifier(ANBC(scaling, True, null_rej))
    session.use_pipeline(pipeline)

    session.use_ostream(TcpOStream("localhost", 5204, ["l", "r", " "]))
