"""Sensor sources feeding the fusion pipeline."""

from .base import LocationSource, MotionSource
from .network_receiver import NetworkSensorReceiver, NetworkLocationSource, NetworkMotionSource, create_app
