from .window import ProbeResult, WindowSnapshot, MetricsWindow
from .probe import HealthProbe
from .evaluator import should_rollback, rollback_reasons
from .controller import FailoverController, HealthState, ServingState

__all__ = [
    "ProbeResult",
    "WindowSnapshot",
    "MetricsWindow",
    "HealthProbe",
    "should_rollback",
    "rollback_reasons",
    "FailoverController",
    "HealthState",
    "ServingState",
]
