import logging

logger = logging.getLogger("RoadRough")


def _release(action, what):
    """Run a cleanup step; a failure is logged and reported as False."""
    try:
        action()
    except Exception as e:
        logger.error(f"Error {what}: {e}")
        return False
    return True


def release_subscription(source, handle, name="sensor"):
    """Detach ``handle`` from ``source``. Missing source or handle is a no-op."""
    if source is None or handle is None:
        return
    if _release(lambda: source.unsubscribe(handle), f"unsubscribing from {name} stream"):
        logger.info(f"Unsubscribed from {name} stream")


def close_bus(bus, name="I2C bus"):
    if bus is None:
        return
    if _release(bus.close, f"closing {name}"):
        logger.info(f"{name} closed")
