import pytest


def test_package_import():
    import smartsensors
    assert smartsensors.__version__


def test_submodules_import():
    from smartsensors import processing, ml, applications, io, interface
    assert processing is not None
    assert ml is not None
    assert applications is not None
    assert io is not None
    assert interface is not None


def test_lazy_submodule_access():
    import smartsensors
    assert smartsensors.ml.GestureRecognitionPipeline is not None
    with pytest.raises(AttributeError):
        smartsensors.not_a_module


def test_interface_imports():
    from smartsensors.interface import (
        AudioStream, SerialStream, ASCIISerialStream, FirmataStream, TcpOStream, FrameMailbox,
    )
    assert FirmataStream is not None


def test_app_imports():
    pytest.importorskip("PyQt5.QtWidgets")
    from smartsensors.applications._sensor_app import SensorApp, main
    assert SensorApp is not None
    assert callable(main)
