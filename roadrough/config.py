import os


class Config:
    # Fusion loop settings
    DATA_INTERVAL_MS = 3000  # Fixed tick period of the fusion loop in ms
    HPF_ALPHA = 0.8  # Per-sample smoothing of the low-pass estimate (higher = slower)

    # Roughness map settings
    PROXIMITY_RADIUS = 10  # Merge radius in meters for map entries
    HIST_RADIUS = 150  # Radius in meters of the nearby historical roughness overlay
    GEO_ID_PRECISION = 4  # Decimals used for the initial cell key (~11 m grid)
    EARTH_RADIUS_M = 6371000.0

    # Roughness classification (grey scale, white = smooth, black = very rough)
    ROUGH_THRESHOLDS = [0, 3, 6, 9, 15, 21, 30]
    ROUGH_COLORS = ['#ffffff', '#dddddd', '#bbbbbb', '#999999',
                    '#777777', '#555555', '#333333', '#000000']

    # Storage settings
    DB_PATH = "road_roughness.db"

    # Network sensor receiver settings (phone posts fixes and motion samples here)
    NETWORK_SENSOR_HOST = '0.0.0.0'  # Listen on all interfaces
    NETWORK_SENSOR_PORT = 5001

    # ICM20948 settings
    ENABLE_I2C_ACCEL = False  # Read the vertical axis from a local ICM20948 instead of the phone
    I2C_BUS_NUMBER = 1
    ICM20948_ADDRESS = 0x69
    ICM20948_WHO_AM_I = 0x00
    ICM20948_WHO_AM_I_VALUE = 0xEA
    ICM20948_REG_BANK_SEL = 0x7F
    ICM20948_PWR_MGMT_1 = 0x06
    ICM20948_ACCEL_ZOUT_H = 0x31
    ICM20948_ACCEL_RANGE_G = 2  # Power-on full scale, +-2g
    ACCEL_POLL_INTERVAL = 0.02  # 50 Hz
    STANDARD_GRAVITY = 9.80665  # m/s^2 per g

    # Logging
    LOG_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "logs")
    LOG_FILE = "road_roughness.log"
