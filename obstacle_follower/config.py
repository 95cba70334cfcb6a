"""Configuration parameters for the obstacle follower.

This module centralizes all configuration parameters including:
- Proportional controller gain and carried linear speed
- Scan window sizing
- Coordinate frame names
- Transform cache and lookup tolerances
- Marker appearance
- Visualization and terminal colors
- WebSocket connection parameters

All parameters are documented with their purpose, valid ranges, and tuning rationale.
"""

# ============================================================================
# Proportional Controller Parameters
# ============================================================================

CONTROLLER_KP = 1.5
"""Proportional gain from heading error to angular velocity (1/s, range: (0, 5]).

Control law: angular.z = CONTROLLER_KP * angle_error

Tuning rationale:
- At 1.5 an obstacle 30° off the nose produces ~0.79 rad/s, within the
  Husky's comfortable yaw rate
- Values above ~3 make the robot hunt around the target when the closest
  return jumps between neighbouring scan beams
- No saturation is applied here; actuator limits belong to the caller
"""

DEFAULT_LINEAR_SPEED = 0.3
"""Forward speed seeded into the very first command (m/s).

The controller never changes linear velocity; it only carries the previous
command's linear component forward. This value is what gets carried when no
previous command exists yet.
"""


# ============================================================================
# Scan Window Parameters
# ============================================================================

WINDOW_RANGE_SIZE = 10
"""Half-width of the scan window cropped around the closest point (readings).

The window covers indices [closest - WINDOW_RANGE_SIZE, closest + WINDOW_RANGE_SIZE],
clamped to the scan bounds, i.e. at most 21 readings.

Tuning rationale:
- With a 720-beam, 270° scanner each beam is ~0.375°, so 10 beams ≈ ±3.75°
- Wide enough to keep a pillar in view, narrow enough to ignore walls behind it
"""


# ============================================================================
# Coordinate Frames
# ============================================================================

SCAN_FRAME = "base_laser"
"""Frame the range scanner reports in. Used when a scan arrives without a frame_id."""

BASE_FRAME = "base_link"
"""Robot body frame (REP-103: x forward, y left, z up).

The heading error is computed in this frame, so a positive error means the
obstacle is to the left and a positive angular command turns toward it.
"""

MARKER_FRAME = "odom"
"""Frame the obstacle marker is published in when the transform is available.

Falls back to the scan frame when the transform lookup fails.
"""


# ============================================================================
# Transform Cache Parameters
# ============================================================================

TF_CACHE_TIME = 10.0
"""How long transform history is kept per frame (seconds).

Matches the usual tf2 buffer length. Older samples are dropped on insert.
"""

TF_EXTRAPOLATION_TOLERANCE = 0.1
"""How far outside the stored history a lookup may reach (seconds).

Queries within this margin are clamped to the nearest stored sample; beyond
it the lookup fails with an extrapolation error instead of guessing.

Tuning rationale:
- Laser scans at 10-40 Hz and odometry at 50 Hz usually interleave within 0.1 s
- Larger values hide stale odometry, which makes the marker drift
"""

TRANSFORM_TIMEOUT_SECONDS = 0.05
"""Maximum time a single transform lookup may wait for fresh data (seconds).

Kept well below one control period so a missing transform never stalls the
control cycle.
"""


# ============================================================================
# Marker Parameters
# ============================================================================

MARKER_ID = 0
"""Identifier of the obstacle marker. Reusing the id replaces the previous marker."""

MARKER_NAMESPACE = "closest_obstacle"
"""Namespace the marker is published under."""

MARKER_TYPE = "sphere"
"""Marker shape."""

MARKER_SCALE = (0.3, 0.3, 0.3)
"""Marker size along x, y, z (meters). Roughly the diameter of a pillar."""

MARKER_Z = 0.0
"""Height of the marker (meters). The scan is planar, so markers sit on the ground plane."""

MARKER_LIFETIME = 0.0
"""Marker lifetime (seconds). 0.0 means the marker stays until replaced by id."""

MARKER_COLOR_RGBA = (0.0, 1.0, 0.0, 1.0)
"""Default marker color as (r, g, b, a), each in [0, 1]."""


# ============================================================================
# Visualization Colors
# ============================================================================

PLOT_ORANGE = "#f74823"
"""Primary color - used for the scan points and measured quantities."""

PLOT_BLUE = "#2374f7"
"""Secondary color - used for the cropped window and commands."""

PLOT_CREAM = "#fffdee"
"""Light color for text and labels on dark backgrounds."""

PLOT_TAUPE = "#686a5f"
"""Neutral color for guides, grids, and secondary elements."""

PLOT_YELLOW_ORANGE = "#ffa726"
"""Accent color for the closest point and warnings."""

PLOT_DARK_BLUE = "#0d1b2a"
"""Dark background color for plots."""

# Terminal color codes (ANSI escape sequences)
TERM_ORANGE = "\033[38;2;247;72;35m"
"""Terminal color code for orange (RGB: 247, 72, 35)."""

TERM_BLUE = "\033[38;2;35;116;247m"
"""Terminal color code for blue (RGB: 35, 116, 247)."""

TERM_RESET = "\033[0m"
"""Terminal color reset code."""


# ============================================================================
# WebSocket Configuration
# ============================================================================

WS_URI = "ws://localhost:8765"
"""WebSocket server URI of the robot bridge."""

WS_RETRY_DELAY_SECONDS = 1
"""Initial retry delay for failed WebSocket connections (seconds)."""

WS_MAX_RETRY_DELAY_SECONDS = 60
"""Maximum retry delay with exponential backoff (seconds)."""

WS_TIMEOUT_SECONDS = 5.0
"""Timeout for WebSocket message reception (seconds)."""
