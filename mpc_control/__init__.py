"""MPC Control - Latency-Compensated Model Predictive Control for Path Following

Steers a simulated car along a path given as a handful of world-frame
waypoints. Every telemetry message triggers one control cycle that plans a
short trajectory with a kinematic bicycle model and sends back the first
steering and throttle of the plan.

## Control Cycle

### Step 1: Vehicle Frame (transform.py)
Waypoints are rotated and translated so the car sits at the origin facing +x.

### Step 2: Path Fit (path.py)
A cubic y = f(x) is least-squares fitted to the vehicle-frame waypoints.
Cross-track error is f(0) and heading error is -atan(f'(0)).

### Step 3: Latency Compensation (model.py)
The state is propagated through the actuation delay with the last applied
steering and throttle, so the plan starts where the car will be when the
command actually lands.

### Step 4: Horizon Solve (mpc.py)
SLSQP minimizes tracking error, speed error, actuation effort and actuation
change over N steps subject to the bicycle model and actuator bounds.
- Output: first steering angle (radians) and acceleration, plus the
  predicted trajectory for display

### Step 5: Actuator Mapping (actuator.py)
Steering is normalized to [-1, 1] with the simulator's sign convention and
throttle is clamped.

## Modules

### Core Control Modules
- `config.py` - Centralized constants (vehicle, horizon, weights, solver)
- `horizon.py` - Validated HorizonParams and command-line overrides
- `transform.py` - World/vehicle frame conversion
- `path.py` - Polynomial fit, evaluation and tracking errors
- `model.py` - Bicycle model step and latency prediction
- `mpc.py` - Trajectory optimizer
- `actuator.py` - Actuator unit mapping
- `controller.py` - Per-session control cycle with fallback handling

### Communication & Data
- `telemetry.py` - Event frame codec and telemetry validation
- `server.py` - WebSocket server and logging setup
- `data_collector.py` - CSV logging of telemetry, commands and solver diagnostics

### Visualization
- `plot_styles.py` - Shared plotting helpers and color scheme
- `visualization.py` - Post-run plots
- `plot_results.py` - CLI for visualization

## Quick Start

```bash
python -m mpc_control --horizon 10 --dt 0.1 --record .
python -m mpc_control.plot_results --save
```

## Version

0.1.0 - Initial implementation
"""

__version__ = "0.1.0"

from .controller import ControlSession, CycleResult, run_cycle
from .data_collector import DataCollector
from .horizon import HorizonParams
from .mpc import TrajectoryOptimizer

__all__ = [
    "HorizonParams",
    "ControlSession",
    "CycleResult",
    "run_cycle",
    "TrajectoryOptimizer",
    "DataCollector",
]
