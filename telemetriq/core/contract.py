# telemetriq/core/contract.py
"""
TelemetrIQ Model Contract

Locked constants for how TelemetrIQ turns simulated telemetry into a
health / remaining-useful-life signal, and how faults bend the telemetry.

If you change any constants in here, bump TELEMETRIQ_MODEL_VERSION.
"""

TELEMETRIQ_MODEL_VERSION = "0.1.0"

# State sizing
DEFAULT_WINDOW_SIZE = 20
DEFAULT_LOG_SIZE = 50
DEFAULT_TICK_SECONDS = 3.0

# Health scoring
HEALTH_MAX = 100.0
HEALTH_MIN = 0.0

TEMP_PENALTY_THRESHOLD = 75.0
TEMP_PENALTY_WEIGHT = 2.0
POWER_PENALTY_THRESHOLD = 2000.0
POWER_PENALTY_WEIGHT = 0.02
ANOMALY_PENALTY_THRESHOLD = 0.3
ANOMALY_PENALTY_WEIGHT = 50.0

FAULT_PENALTY_WARNING = 5.0
FAULT_PENALTY_CRITICAL = 15.0

# Irreversible wear per tick
DEFAULT_LIFETIME_DECREMENT = 0.02

# Reduced-order model baseline for power (W); the residual is |power - baseline|
ROM_BASELINE_POWER = 1500.0

# Baseline waves used to seed history: (offset, amplitude, frequency, wave)
BASELINE_WAVES = {
    "j1_angle": (45.0, 15.0, 0.30, "sin"),
    "j2_angle": (60.0, 20.0, 0.40, "cos"),
    "j3_angle": (30.0, 10.0, 0.50, "sin"),
    "j4_angle": (90.0, 12.0, 0.35, "sin"),
    "j5_angle": (120.0, 18.0, 0.45, "cos"),
    "j6_angle": (180.0, 14.0, 0.55, "sin"),
    "motor_temp": (65.0, 10.0, 0.20, "sin"),
    "power": (1500.0, 300.0, 0.40, "sin"),
    "current": (8.5, 2.0, 0.50, "sin"),
    "rpm": (1200.0, 200.0, 0.60, "sin"),
    "payload": (5.2, 1.5, 0.30, "sin"),
    "cycle_time": (2.5, 0.0, 0.00, "sin"),
    "anomaly_score": (0.15, 0.1, 0.80, "sin"),
}
CYCLE_TIME_JITTER = 0.15

# Random-walk step (half-width of the uniform perturbation)
JOINT_STEP = 4.0

# Safe operating bands: channel -> (lo, hi, half-width step)
SAFE_BANDS = {
    "motor_temp": (50.0, 85.0, 2.5),
    "power": (1000.0, 2200.0, 100.0),
    "current": (7.0, 11.0, 0.4),
    "rpm": (800.0, 1500.0, 75.0),
    "payload": (3.0, 8.0, 0.25),
    "cycle_time": (2.0, 3.5, 0.15),
}
ANOMALY_STEP = 0.05

# Fault-driven behaviour
OVERHEAT_RISE_MAX = 2.0
OVERHEAT_CEILING = 95.0
POWER_FLUCTUATION_STEP = 200.0
ENCODER_LOSS_DROP_MAX = 100.0
GRIPPER_LOSS_DROP_MAX = 2.0
COMM_DELAY_RISE_MAX = 0.5
TORQUE_IMBALANCE_RISE_MAX = 0.4
TORQUE_IMBALANCE_CURRENT_CEILING = 16.0

# Human-readable halt reasons
SHUTDOWN_REASON_AUTOMATIC = "EMERGENCY SHUTDOWN - health depleted"
SHUTDOWN_REASON_MANUAL = "System manually shutdown"
LOG_MESSAGE_HEALTH_DEPLETED = "Emergency shutdown - Health depleted"
