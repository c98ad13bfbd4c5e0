"""
Microphone input: low-passed, summarized with time-domain features and
classified by a small PyTorch MLP.
"""
from smartsensors.interface import AudioStream
from smartsensors.ml import GestureRecognitionPipeline, MLPClassifier
from smartsensors.processing import LowPassFilter, TimeDomainFeatures

SAMPLE_RATE = 44100


def setup(session):
    downsample = session.register_tuneable("downsample", 4, 1, 16, "Keep every n-th audio frame")
    cutoff = session.register_tuneable("cutoff_hz", 2000.0, 50.0, 5000.0, "Low-pass cutoff")
    epochs = session.register_tuneable("epochs", 50, 1, 500, "MLP training epochs")

    session.use_stream(AudioStream(downsample=downsample, sample_rate=SAMPLE_RATE))

    pipeline = GestureRecognitionPipeline()
    fs = SAMPLE_RATE / downsample
    pipeline.add_pre_processing_module(LowPassFilter(min(cutoff, 0.45 * fs), fs))
    pipeline.add_feature_extraction_module(
        TimeDomainFeatures(256, 4, 1, False, True, True, False, True))
    pipeline.set_classifier(MLPClassifier(hidden=(32, 16), epochs=epochs))
    session.use_pipeline(pipeline)
