import logging
import math
import threading
import time

from flask import Flask, request, jsonify

from ..core.data_structures import LocationFix, LocationError, MotionSample, LOCATION_ERROR_CODES
from .base import LocationSource, MotionSource

logger = logging.getLogger("RoadRough")


def _is_number(value):
    # get_json accepts NaN and Infinity literals
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


class NetworkLocationSource(LocationSource):
    """Location fixes posted by a phone over HTTP."""


class NetworkMotionSource(MotionSource):
    """Acceleration samples posted by a phone over HTTP."""


def create_app(location, motion):
    """Build the Flask app that forwards posted readings to the sources."""
    app = Flask(__name__)

    @app.route('/gps_data', methods=['POST'])
    def receive_gps_data():
        """
        Receives one location fix, or a location error.
        Expected JSON payload:
        {
            "latitude": float,
            "longitude": float,
            "altitude": float (optional),
            "accuracy": float (optional, meters),
            "timestamp": int (optional, epoch ms, defaults to receive time)
        }
        or {"error": "permission-denied" | "unavailable" | "timeout", "message": str (optional)}
        """
        data = request.get_json(silent=True)
        if not isinstance(data, dict) or not data:
            logger.error("Received empty or non-JSON GPS data.")
            return jsonify({"status": "error", "message": "Invalid or empty JSON payload"}), 400

        if "error" in data:
            code = data.get("error")
            if code not in LOCATION_ERROR_CODES:
                return jsonify({"status": "error", "message": f"Unknown error code: {code}"}), 400
            location.publish_error(LocationError(code=code, message=data.get("message") or ""))
            logger.warning(f"Location source reported error: {code}")
            return jsonify({"status": "success", "message": "GPS error forwarded"}), 200

        for field in ("latitude", "longitude"):
            if field not in data:
                logger.error(f"Missing required field: {field} in received data: {data}")
                return jsonify({"status": "error", "message": f"Missing required field: {field}"}), 400
            if not _is_number(data[field]):
                logger.error(f"Invalid data type for field: {field}. Expected float or int.")
                return jsonify({"status": "error",
                                "message": f"Invalid data type for field: {field}. Expected float or int."}), 400

        for field in ("altitude", "accuracy", "timestamp"):
            if data.get(field) is not None and not _is_number(data[field]):
                return jsonify({"status": "error",
                                "message": f"Invalid data type for field: {field}. Expected float or int."}), 400

        timestamp = data.get("timestamp")
        fix = LocationFix(
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            timestamp=int(timestamp) if timestamp is not None else int(time.time() * 1000),
            accuracy=data.get("accuracy"),
            altitude=data.get("altitude"),
        )
        location.publish_fix(fix)
        logger.debug(f"Received GPS data: {fix}")
        return jsonify({"status": "success", "message": "GPS data received"}), 200

    @app.route('/motion_data', methods=['POST'])
    def receive_motion_data():
        """
        Receives vertical acceleration samples (m/s^2, gravity included).
        Expected JSON payload: {"verticalAcceleration": float | null}
        or a batch: {"samples": [float | null, ...]}
        """
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"status": "error", "message": "Invalid or empty JSON payload"}), 400

        if "samples" in data:
            values = data["samples"]
            if not isinstance(values, list):
                return jsonify({"status": "error", "message": "samples must be a list"}), 400
        elif "verticalAcceleration" in data:
            values = [data["verticalAcceleration"]]
        else:
            return jsonify({"status": "error", "message": "Missing required field: verticalAcceleration"}), 400

        for value in values:
            if value is not None and not _is_number(value):
                return jsonify({"status": "error",
                                "message": "Acceleration values must be numbers or null"}), 400

        for value in values:
            motion.publish_sample(MotionSample(vertical_acceleration=value))
        return jsonify({"status": "success", "received": len(values)}), 200

    return app


class NetworkSensorReceiver:
    """HTTP endpoint a phone streams its fixes and motion samples to."""

    def __init__(self, config=None):
        self.config = config
        self.location = NetworkLocationSource()
        self.motion = NetworkMotionSource()
        self.app = create_app(self.location, self.motion)
        self.thread = None

    def start(self, host=None, port=None):
        """
        Starts the Flask HTTP server in a separate thread.
        """
        host = host or getattr(self.config, 'NETWORK_SENSOR_HOST', '0.0.0.0')
        port = port or getattr(self.config, 'NETWORK_SENSOR_PORT', 5001)
        logger.info(f"Starting network sensor receiver on {host}:{port}")
        # No reloader and no debug mode: the server runs on a background thread
        self.thread = threading.Thread(
            target=lambda: self.app.run(host=host, port=port, debug=False, use_reloader=False),
            name="network-sensor-receiver",
            daemon=True,
        )
        self.thread.start()
        logger.info("Network sensor receiver thread started.")
        return self.thread
