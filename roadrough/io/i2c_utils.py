import time
import logging

logger = logging.getLogger("RoadRough")

# LSB per g for each ICM20948 accelerometer full-scale range
ACCEL_SENSITIVITY = {2: 16384.0, 4: 8192.0, 8: 4096.0, 16: 2048.0}


def read_register(i2c_bus, addr, reg, retries=3, retry_delay=0.01):
    """Read one register, backing off between attempts. None when every attempt fails."""
    last_error = None
    for attempt in range(1, retries + 1):
        try:
            return i2c_bus.read_byte_data(addr, reg)
        except OSError as e:
            last_error = e
            time.sleep(retry_delay * attempt)
    logger.warning(f"I2C 0x{addr:02x} register 0x{reg:02x} unreadable after {retries} attempts: {last_error}")
    return None


def read_int16(i2c_bus, addr, reg_high):
    """Signed big-endian value from a high/low register pair"""
    high = read_register(i2c_bus, addr, reg_high)
    if high is None:
        return None
    low = read_register(i2c_bus, addr, reg_high + 1)
    if low is None:
        return None
    return int.from_bytes(bytes((high, low)), "big", signed=True)


def read_vertical_accel(i2c_bus, config):
    """Z-axis acceleration in g, or None if the sensor did not answer."""
    raw = read_int16(i2c_bus, config.ICM20948_ADDRESS, config.ICM20948_ACCEL_ZOUT_H)
    if raw is None:
        return None
    full_scale = getattr(config, 'ICM20948_ACCEL_RANGE_G', 2)
    return raw / ACCEL_SENSITIVITY[full_scale]
