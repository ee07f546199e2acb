#!/usr/bin/env python3
"""
Road Roughness Recorder
-----------------------
Records a ride from a phone streaming its location and accelerometer to this
machine, and updates the shared roughness map as it goes.
"""

import os
import sys
import signal
import logging
import threading
import traceback

from roadrough import Config, DataStorage, RideRecorder
from roadrough.acquisition import NetworkSensorReceiver
from roadrough.core.events import LoggingPresentationSink
from roadrough.logging_config import configure_logging


def main():
    """Main entry point for the road roughness recorder."""
    config = Config()

    # Set up logging to file and console
    os.makedirs(config.LOG_DIR, exist_ok=True)
    log_file = os.path.join(config.LOG_DIR, config.LOG_FILE)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler(sys.stdout)
        ]
    )
    configure_logging()
    logger = logging.getLogger("RoadRough")
    logger.info("Starting Road Roughness Recorder")

    stop_event = threading.Event()
    motion_source = None
    recorder = None

    try:
        storage = DataStorage(config.DB_PATH)

        receiver = NetworkSensorReceiver(config)
        receiver.start()

        if config.ENABLE_I2C_ACCEL:
            from roadrough.acquisition.accel_acquisition import I2CMotionSource
            motion_source = I2CMotionSource(config)
        else:
            motion_source = receiver.motion

        recorder = RideRecorder(
            storage,
            receiver.location,
            motion_source,
            config=config,
            sink=LoggingPresentationSink(),
        )

        signal.signal(signal.SIGINT, lambda sig, frame: stop_event.set())
        signal.signal(signal.SIGTERM, lambda sig, frame: stop_event.set())

        recorder.start()
        logger.info("Recording - Press Ctrl+C to finish the ride")
        while not stop_event.is_set() and recorder.is_recording:
            stop_event.wait(0.5)
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received. Shutting down...")
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        logger.error(f"Stack trace: {traceback.format_exc()}")
    finally:
        if recorder is not None:
            recorder.stop()
        if motion_source is not None and hasattr(motion_source, 'close'):
            motion_source.close()
        logger.info("Road Roughness Recorder shutdown complete")


if __name__ == "__main__":
    main()
