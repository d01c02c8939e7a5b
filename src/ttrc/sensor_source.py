#!/usr/bin/env python3
"""
Temperature sources for temperature-reactive lighting.

Two ways of reading a SensorSpec:

- ``LmSensorsSource`` scrapes the text output of ``sensors`` (lm_sensors),
  handing the GPU-NVIDIA preset to ``NvidiaSmiSource`` (``nvidia-smi``).
- ``PsutilSource`` reads structured values from psutil's hwmon bindings,
  with NVML (pynvml) for NVIDIA GPUs.

All sources raise SensorError when no temperature can be produced; the
temperature-reactive engine turns that into its fallback display.
"""

import logging
import re
import subprocess
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Tuple

from .core.errors import ConfigError, SensorError
from .core.models import SensorKind, SensorSpec

try:
    import psutil
    PSUTIL_AVAILABLE = True
except ImportError:
    PSUTIL_AVAILABLE = False

try:
    import pynvml
    NVML_AVAILABLE = True
except ImportError:
    pynvml = None  # type: ignore[assignment]
    NVML_AVAILABLE = False

log = logging.getLogger(__name__)

COMMAND_TIMEOUT_S = 5

# Line substrings tried in order for each preset (lm_sensors text output)
PRESET_PATTERNS: Dict[str, List[str]] = {
    'cpu': ['Tctl:', 'Package id 0:', 'CPU Temperature:', 'coretemp'],
    'gpu': ['edge:', 'GPU:', 'amdgpu', 'nvidia'],
    'nvme': ['Composite:', 'nvme'],
    'hdd': ['temp1:', 'drivetemp'],
    'ssd': ['temp1:', 'drivetemp'],
}

# psutil.sensors_temperatures() chip names / preferred labels per preset
PRESET_CHIPS: Dict[str, Tuple[List[str], List[str]]] = {
    'cpu': (['k10temp', 'coretemp', 'zenpower', 'cpu_thermal'], ['Tctl', 'Package id 0', 'Tdie']),
    'gpu': (['amdgpu', 'nouveau', 'radeon'], ['edge']),
    'nvme': (['nvme'], ['Composite']),
    'hdd': (['drivetemp'], []),
    'ssd': (['drivetemp', 'nvme'], ['Composite']),
}

NVIDIA_PRESET = 'gpu-nvidia'

_TEMP_RE = re.compile(r'([+-]?\d+(?:\.\d+)?)\s*°?C')
_NVIDIA_TEMP_RE = re.compile(r'GPU Current Temp\s*:\s*(\d+(?:\.\d+)?)\s*C')

Runner = Callable[..., subprocess.CompletedProcess]


# =========================================================================
# Text parsing (lm_sensors / nvidia-smi)
# =========================================================================

def parse_temperature(line: str) -> Optional[float]:
    """Extract the first "<number>[°]C" reading from a line, or None."""
    match = _TEMP_RE.search(line)
    if match:
        return float(match.group(1))
    return None


def find_first_temp_matching(output: str, pattern: str) -> Optional[float]:
    """First temperature on any line containing pattern."""
    for line in output.splitlines():
        if pattern in line:
            temp = parse_temperature(line)
            if temp is not None:
                return temp
    return None


def find_preset_temp(output: str, preset: str) -> float:
    """Resolve a preset against ``sensors`` output.

    Raises:
        SensorError: Unknown preset, or none of its patterns matched.
    """
    patterns = PRESET_PATTERNS.get(preset.lower())
    if patterns is None:
        raise SensorError(f"Unknown sensor preset: {preset}")
    for pattern in patterns:
        temp = find_first_temp_matching(output, pattern)
        if temp is not None:
            return temp
    raise SensorError(
        f"Could not find {preset.upper()} temperature in sensors output")


def find_explicit_temp(output: str, adapter: str, sensor_field: str) -> float:
    """Resolve "adapter:field" against ``sensors`` output.

    ``sensors`` prints one block per chip, separated by blank lines; the
    first line of a block is the chip name (e.g. ``k10temp-pci-00c3``).
    The first block whose name contains adapter is searched for a line
    containing sensor_field.
    """
    in_block = False
    block_matches = False
    for line in output.splitlines():
        if not line.strip():
            in_block = False
            block_matches = False
            continue
        if not in_block:
            in_block = True
            block_matches = adapter in line
            continue
        if block_matches and sensor_field in line and not line.startswith('Adapter:'):
            temp = parse_temperature(line)
            if temp is not None:
                return temp
    raise SensorError(f"Could not find sensor {adapter}:{sensor_field} in sensors output")


def parse_nvidia_smi(output: str) -> float:
    """Parse ``nvidia-smi -q -d TEMPERATURE`` output."""
    for line in output.splitlines():
        match = _NVIDIA_TEMP_RE.search(line)
        if match:
            return float(match.group(1))
    raise SensorError("Could not find GPU temperature in nvidia-smi output")


def run_command(cmd: List[str], run: Runner = subprocess.run) -> str:
    """Run an external command and return its stdout.

    Raises:
        SensorError: Command missing, timed out, or exited non-zero.
    """
    try:
        result = run(cmd, capture_output=True, text=True, timeout=COMMAND_TIMEOUT_S)
    except FileNotFoundError as e:
        raise SensorError(f"Failed to execute '{cmd[0]}': not installed") from e
    except (subprocess.TimeoutExpired, OSError) as e:
        raise SensorError(f"Failed to execute '{cmd[0]}': {e}") from e
    if result.returncode != 0:
        stderr = (result.stderr or '').strip()
        raise SensorError(f"'{cmd[0]}' exited with status {result.returncode}: {stderr}")
    return result.stdout


# =========================================================================
# Sources
# =========================================================================

class TemperatureSource(ABC):
    """Anything that can turn a SensorSpec into degrees Celsius."""

    @abstractmethod
    def read(self, sensor: SensorSpec) -> float:
        """Return the current temperature. Raises SensorError."""


class NvidiaSmiSource(TemperatureSource):
    """NVIDIA GPU temperature via ``nvidia-smi``."""

    def __init__(self, run: Runner = subprocess.run):
        self._run = run

    def read(self, sensor: SensorSpec) -> float:
        output = run_command(['nvidia-smi', '-q', '-d', 'TEMPERATURE'], self._run)
        return parse_nvidia_smi(output)


class LmSensorsSource(TemperatureSource):
    """Temperatures scraped from ``sensors`` text output."""

    def __init__(self, run: Runner = subprocess.run):
        self._run = run
        self._nvidia = NvidiaSmiSource(run)

    def read(self, sensor: SensorSpec) -> float:
        if sensor.kind == SensorKind.PRESET and sensor.name == NVIDIA_PRESET:
            return self._nvidia.read(sensor)

        output = run_command(['sensors'], self._run)
        if sensor.kind == SensorKind.EXPLICIT:
            return find_explicit_temp(output, sensor.adapter, sensor.field)
        return find_preset_temp(output, sensor.name)


class PsutilSource(TemperatureSource):
    """Structured temperatures from psutil (hwmon) and NVML.

    Explicit specs match the adapter against psutil's chip names (hwmon
    driver names such as ``k10temp`` or ``nvme``) and the field against
    the sensor label.
    """

    def __init__(self):
        if not PSUTIL_AVAILABLE:
            raise ImportError("psutil is not installed. Install with: pip install psutil")
        self._nvml_ready = False

    def read(self, sensor: SensorSpec) -> float:
        if sensor.kind == SensorKind.PRESET and sensor.name == NVIDIA_PRESET:
            return self._read_nvml()

        temps = psutil.sensors_temperatures()
        if not temps:
            raise SensorError("psutil reports no temperature sensors")

        if sensor.kind == SensorKind.EXPLICIT:
            return self._find_explicit(temps, sensor.adapter, sensor.field)
        return self._find_preset(temps, sensor.name)

    @staticmethod
    def _find_preset(temps: dict, preset: str) -> float:
        if preset not in PRESET_CHIPS:
            raise SensorError(f"Unknown sensor preset: {preset}")
        chips, labels = PRESET_CHIPS[preset]
        for chip in chips:
            entries = temps.get(chip)
            if not entries:
                continue
            for label in labels:
                for entry in entries:
                    if entry.label == label:
                        return float(entry.current)
            return float(entries[0].current)
        raise SensorError(f"No {preset.upper()} temperature sensor found")

    @staticmethod
    def _find_explicit(temps: dict, adapter: str, sensor_field: str) -> float:
        for chip, entries in temps.items():
            if not (adapter.startswith(chip) or chip.startswith(adapter)):
                continue
            for entry in entries:
                if sensor_field in (entry.label or ''):
                    return float(entry.current)
        raise SensorError(f"Could not find sensor {adapter}:{sensor_field}")

    def _read_nvml(self) -> float:
        if not NVML_AVAILABLE:
            raise SensorError("pynvml is not installed. Install with: pip install nvidia-ml-py")
        try:
            if not self._nvml_ready:
                pynvml.nvmlInit()
                self._nvml_ready = True
            handle = pynvml.nvmlDeviceGetHandleByIndex(0)
            return float(pynvml.nvmlDeviceGetTemperature(handle, pynvml.NVML_TEMPERATURE_GPU))
        except pynvml.NVMLError as e:
            raise SensorError(f"NVML read failed: {e}") from e


SENSOR_BACKENDS = ('lm-sensors', 'psutil')


def make_temperature_source(backend: str = 'lm-sensors') -> TemperatureSource:
    """Build the temperature source named in the daemon config."""
    if backend == 'lm-sensors':
        return LmSensorsSource()
    if backend == 'psutil':
        try:
            return PsutilSource()
        except ImportError as e:
            raise ConfigError(str(e)) from e
    raise ConfigError(
        f"Unknown sensor backend '{backend}'. Choose from: {', '.join(SENSOR_BACKENDS)}")
