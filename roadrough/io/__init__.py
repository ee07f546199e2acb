"""Register-level helpers for I2C devices."""

from .i2c_utils import read_register, read_int16, read_vertical_accel
