"""Kubernetes quantity helpers."""
from decimal import Decimal, InvalidOperation
from typing import Union

from kubernetes.utils import parse_quantity


def _quantity(value: Union[str, int, float, None]) -> Decimal:
    if value is None:
        return Decimal(0)
    text = str(value).strip()
    # calculateResources may report usage as "1.5/4" (used/total); keep the total
    if "/" in text:
        text = text.split("/")[-1].strip()
    if not text:
        return Decimal(0)
    try:
        return parse_quantity(text)
    except (ValueError, InvalidOperation):
        return Decimal(0)


def parse_cpu(value: Union[str, int, float, None]) -> float:
    """Parse a CPU quantity ("500m", "4") into cores."""
    return float(_quantity(value))


def parse_memory(value: Union[str, int, float, None]) -> int:
    """Parse a memory quantity ("8Gi", "512Mi") into bytes."""
    return int(_quantity(value))
