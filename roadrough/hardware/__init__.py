"""Hardware bring-up for the optional on-board accelerometer."""

from .i2c_init import open_bus, probe_icm20948, wake_icm20948
