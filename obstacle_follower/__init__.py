"""Obstacle Follower - Reactive Closest-Obstacle Tracking for Mobile Robots

A small control core that steers a robot toward the nearest obstacle seen by
a 2-D laser scanner.

## Architecture Overview

Each incoming scan runs through one control cycle:

### Step 1: Scan Analysis (scan.py)
Finds the closest valid return in the scan.
- Ignores NaN/inf readings and readings outside the sensor's range
- Ties go to the lowest index
- Output: (index, distance), or NO_DETECTION

### Step 2: Window Extraction (scan.py)
Crops the scan to the readings around the closest point.
- Window clamped to the scan bounds
- Angles recomputed so reading i stays at angle_min + i * angle_increment

### Step 3: Pose Transformation (transform.py, tf_buffer.py)
Moves the obstacle from the scan frame into the robot body frame.
- Queries an injected transform provider with a bounded timeout
- TransformBuffer: thread-safe, time-indexed frame tree with interpolation

### Step 4: Proportional Control (controller.py)
Turns the heading error into an angular velocity command.
- angular.z = kp * atan2(y, x) in the body frame
- Linear velocity carried over unchanged from the previous command

### Marker (marker.py)
Builds a visualization marker for the detected point.

Failures (no detection, invalid window, transform unavailable) are returned
as explicit results; the cycle then holds the previous command.

## Modules

### Core Control Modules
- `config.py` - Centralized configuration parameters with documentation
- `messages.py` - Scan, pose, transform, command and marker types
- `scan.py` - Closest point search and window extraction
- `transform.py` - Transform math, provider interface, pose transformer
- `tf_buffer.py` - Time-indexed transform cache
- `controller.py` - Proportional steering law
- `marker.py` - Obstacle marker construction
- `follower.py` - One complete control cycle

### Communication & Data
- `client.py` - WebSocket client and main control loop
- `data_collector.py` - CSV data logging for every cycle

### Visualization
- `visualization.py` - Scan and control history plots
- `plot_results.py` - Standalone script to plot a recorded run

## Quick Start

```python
from obstacle_follower import ObstacleFollower, TransformBuffer
from obstacle_follower.messages import VelocityCommand

buffer = TransformBuffer()
follower = ObstacleFollower(buffer)
result = follower.process_scan(scan, VelocityCommand())
```

Or run the WebSocket client:
```bash
python -m obstacle_follower --uri ws://localhost:8765
python -m obstacle_follower.plot_results --save
```
"""

__version__ = "0.1.0"

from .controller import ProportionalController, calculate_p_ratio
from .data_collector import DataCollector
from .follower import CycleResult, ObstacleFollower
from .marker import create_marker
from .scan import create_scan_around_closest, get_minimal_distance
from .tf_buffer import TransformBuffer
from .transform import PoseTransformer, TransformError

__all__ = [
    "ObstacleFollower",
    "CycleResult",
    "ProportionalController",
    "calculate_p_ratio",
    "PoseTransformer",
    "TransformBuffer",
    "TransformError",
    "get_minimal_distance",
    "create_scan_around_closest",
    "create_marker",
    "DataCollector",
]
