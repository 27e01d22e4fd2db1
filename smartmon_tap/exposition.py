from __future__ import annotations

import math
import os
from pathlib import Path
import tempfile
from typing import Iterable

from smartmon_tap.metrics import Measurement


def escape_label_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def escape_help(text: str) -> str:
    return text.replace("\\", "\\\\").replace("\n", "\\n")


def format_value(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value.is_integer() and abs(value) < 1e15:
        return str(int(value))
    return repr(value)


def format_sample(measurement: Measurement) -> str:
    if not measurement.labels:
        return f"{measurement.name} {format_value(measurement.value)}"
    labels = ",".join(
        f'{key}="{escape_label_value(measurement.labels[key])}"'
        for key in sorted(measurement.labels)
    )
    return f"{measurement.name}{{{labels}}} {format_value(measurement.value)}"


def render(measurements: Iterable[Measurement]) -> str:
    """Render measurements in the Prometheus text exposition format.

    Samples are grouped by metric name so every family gets exactly one
    HELP and TYPE line, as the format requires.
    """
    families: dict[str, list[Measurement]] = {}
    for measurement in measurements:
        families.setdefault(measurement.name, []).append(measurement)

    lines: list[str] = []
    for name in sorted(families):
        samples = families[name]
        first = samples[0]
        lines.append(f"# HELP {name} {escape_help(first.help or name)}")
        lines.append(f"# TYPE {name} {first.kind}")
        lines.extend(format_sample(sample) for sample in samples)
    return "\n".join(lines) + "\n" if lines else ""


def write_textfile(path: str | Path, measurements: Iterable[Measurement]) -> None:
    """Atomically replace ``path`` with the rendered measurements.

    Readers never see a partial file: the content goes to a temporary file
    in the same directory, which is then renamed over ``path``.
    """
    target = Path(path)
    content = render(measurements)
    fd, tmp_name = tempfile.mkstemp(
        dir=target.parent, prefix=f".{target.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
        os.chmod(tmp_name, 0o644)
        os.replace(tmp_name, target)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
