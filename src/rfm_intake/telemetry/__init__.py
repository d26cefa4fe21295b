from rfm_intake.telemetry.intake_metrics import INTAKE_EVENTS, IntakeMetrics
from rfm_intake.telemetry.trace import generate_trace_id

__all__ = ["INTAKE_EVENTS", "IntakeMetrics", "generate_trace_id"]
