from ._normalizers import (
    IdentityNormalizer,
    ScalarNormalizer,
    VectorNormalizer,
    as_normalizer,
    analog_read_to_voltage,
    normalize_adxl335,
    normalize_arduino101,
    unit_magnitude,
)
from ._filters import MovingAverageFilter, LowPassFilter
from ._features import TimeDomainFeatures
from ._calibration import Calibrator, CalibrateProcess
