"""Internal constants shared across the library."""

USER_AGENT = "pysignalk"
SELF_CONTEXT = "vessels.self"

# ------------------------------------------------------------------
# REST endpoints
# ------------------------------------------------------------------

LOGIN_ENDPOINT = "/signalk/v1/auth/login"
ACCESS_REQUESTS_ENDPOINT = "/signalk/v1/access/requests"
REQUESTS_ENDPOINT = "/signalk/v1/requests"
VESSELS_ENDPOINT = "/signalk/v1/api/vessels"
SELF_ENDPOINT = "/signalk/v1/api/vessels/self"
AUTOPILOTS_V2_ENDPOINT = "/signalk/v2/api/vessels/self/autopilots"

STREAM_ENDPOINT = "/signalk/v1/stream?subscribe=none"
UNITS_PREFERENCE_STREAM_ENDPOINT = "/plugins/signalk-units-preference/stream"

# ------------------------------------------------------------------
# Autopilot paths (V1 plugin protocol)
# ------------------------------------------------------------------

AUTOPILOT_STATE_PATH = "steering.autopilot.state"
AUTOPILOT_MODE_PATH = "steering.autopilot.mode"
AUTOPILOT_ENGAGED_PATH = "steering.autopilot.engaged"
AUTOPILOT_TARGET_HEADING_PATH = "steering.autopilot.target.headingMagnetic"
AUTOPILOT_ADJUST_HEADING_PATH = "steering.autopilot.actions.adjustHeading"
AUTOPILOT_TACK_PATH = "steering.autopilot.actions.tack"
AUTOPILOT_ADVANCE_WAYPOINT_PATH = "steering.autopilot.actions.advanceWaypoint"
AUTOPILOT_NOTIFICATION_PREFIX = "notifications.steering.autopilot"

STANDBY_STATE = "standby"
ENGAGED_STATE = "auto"

# Notification states that mean the autopilot refused or faulted.
ALARM_NOTIFICATION_STATES: frozenset[str] = frozenset({"alarm", "alert", "warn", "emergency"})


def path_to_url_segment(path: str) -> str:
    """Convert a dotted SignalK path to its REST form (``a.b.c`` -> ``a/b/c``)."""
    return path.strip().strip(".").replace(".", "/")
