# rumlab/services/processing_service.py
from typing import Dict, List, Sequence, Tuple, Union

from rumlab.models import LongTaskSample, Metric, MetricName, MetricStatus

Number = Union[int, float]

# metric -> (exclusive "best" upper bound, inclusive "middle" upper bound, labels low..high)
THRESHOLDS: Dict[str, Tuple[Number, Number, Tuple[MetricStatus, MetricStatus, MetricStatus]]] = {
    MetricName.INP_LAB.value: (200, 500, (MetricStatus.GOOD, MetricStatus.NEEDS_IMPROVEMENT, MetricStatus.POOR)),
    MetricName.TBT.value: (200, 600, (MetricStatus.GOOD, MetricStatus.NEEDS_IMPROVEMENT, MetricStatus.POOR)),
    MetricName.JS_BLOCKING_TIME.value: (200, 500, (MetricStatus.LOW, MetricStatus.MEDIUM, MetricStatus.HIGH)),
    MetricName.LONG_TASK_COUNT.value: (10, 50, (MetricStatus.LOW, MetricStatus.MEDIUM, MetricStatus.HIGH)),
}

def classify(name: str, value: Number) -> MetricStatus:
    """
    Maps a metric value onto its status label.

    Values strictly below the first bound get the best label, values up to
    and including the second bound get the middle label, anything above gets
    the worst. Names without a threshold entry are Unknown.

    Args:
        name: The metric's display name (a MetricName value).
        value: The measured value.

    Returns:
        The MetricStatus for the value.
    """
    key = name.value if isinstance(name, MetricName) else name
    if key not in THRESHOLDS:
        return MetricStatus.UNKNOWN
    best_below, middle_upto, (best, middle, worst) = THRESHOLDS[key]
    if value < best_below:
        return best
    if value <= middle_upto:
        return middle
    return worst

def derive_metrics(samples: Sequence[LongTaskSample]) -> List[Metric]:
    """
    Converts raw long-task samples into the classified lab metrics.

    Args:
        samples: Long-task durations in observation order. May be empty.

    Returns:
        INP (lab), TBT, JS blocking time and Long tasks count, in that order.
    """
    durations = [sample.duration_ms for sample in samples]
    total_blocking = _round(sum(durations))
    longest = _round(max(durations)) if durations else 0
    count = len(durations)

    values = [
        (MetricName.INP_LAB, longest, "ms"),
        (MetricName.TBT, total_blocking, "ms"),
        (MetricName.JS_BLOCKING_TIME, total_blocking, "ms"),
        (MetricName.LONG_TASK_COUNT, count, ""),
    ]
    return [
        Metric(name=name.value, value=value, unit=unit, status=classify(name.value, value))
        for name, value, unit in values
    ]

def _round(value: Number) -> Number:
    # Long-task durations come back as fractional milliseconds
    rounded = round(value, 1)
    return int(rounded) if float(rounded).is_integer() else rounded
