"""
Gesture recognition: labeled datasets, classifiers and the realtime pipeline.
"""
from ._classifiers import Classifier, ANBC, NULL_LABEL
from ._models import GestureMLP, MLPClassifier
from ._post_processing import ClassLabelTimeoutFilter
from ._dataset import TimeSeriesClassificationData, LabeledTimeSeries
from ._pipeline import GestureRecognitionPipeline
