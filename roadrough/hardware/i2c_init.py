import smbus2
import time
import logging

from ..io.i2c_utils import read_register

logger = logging.getLogger("RoadRough")

# PWR_MGMT_1 bits
DEVICE_RESET = 0x80
CLKSEL_AUTO = 0x01


def open_bus(bus_number=1):
    """Open an SMBus handle, or None if the bus device is missing."""
    try:
        i2c_bus = smbus2.SMBus(bus_number)
    except OSError as e:
        logger.error(f"Cannot open I2C bus {bus_number}: {e}")
        return None
    time.sleep(0.1)
    return i2c_bus


def probe_icm20948(i2c_bus, config):
    addr = config.ICM20948_ADDRESS
    expected = getattr(config, 'ICM20948_WHO_AM_I_VALUE', 0xEA)
    who_am_i = read_register(i2c_bus, addr, config.ICM20948_WHO_AM_I)
    if who_am_i != expected:
        logger.error(f"No ICM20948 at 0x{addr:02x}: WHO_AM_I returned {who_am_i}, expected 0x{expected:02x}")
        return False
    return True


def wake_icm20948(i2c_bus, config):
    """Reset the ICM20948 and bring it out of sleep on the auto-selected clock.

    Returns False when the chip is absent or does not accept the writes.
    """
    if not probe_icm20948(i2c_bus, config):
        return False

    addr = config.ICM20948_ADDRESS
    try:
        # Accelerometer output and PWR_MGMT_1 live in user bank 0
        i2c_bus.write_byte_data(addr, config.ICM20948_REG_BANK_SEL, 0x00)
        i2c_bus.write_byte_data(addr, config.ICM20948_PWR_MGMT_1, DEVICE_RESET)
        time.sleep(0.1)
        i2c_bus.write_byte_data(addr, config.ICM20948_PWR_MGMT_1, CLKSEL_AUTO)
        time.sleep(0.05)
    except OSError as e:
        logger.error(f"Failed to wake ICM20948: {e}")
        return False

    logger.info(f"ICM20948 awake at address 0x{addr:02x}")
    return True
