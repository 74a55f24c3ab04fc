"""Per-module metric collectors backed by psutil.

Each collector reads its slice of the host state on demand and packages it
as a ``MetricData``. Any failure of the underlying source surfaces as a
``CollectorError`` so the engine can drop that module for the cycle.
"""

from __future__ import annotations

import platform
import socket
import time
from abc import ABC, abstractmethod
from typing import Any

import psutil

from sysglance.errors import CollectorError
from sysglance.metrics import MetricData, MetricValue

# ── Constants ──────────────────────────────────────────────────────────────

CPU_SAMPLE_SECONDS = 0.2
TOP_N = 5

_KB = 1024
_MB = 1024**2
_GB = 1024**3


# ── Formatting helpers ─────────────────────────────────────────────────────


def compact_bytes(n: int) -> str:
    """Short byte count used inside interface summaries, e.g. ``1.50MB``."""
    if n >= _GB:
        return f"{n / _GB:.2f}GB"
    if n >= _MB:
        return f"{n / _MB:.2f}MB"
    if n >= _KB:
        return f"{n / _KB:.2f}KB"
    return f"{n}B"


def format_uptime(secs: int) -> str:
    days, rem = divmod(secs, 86400)
    hours, rem = divmod(rem, 3600)
    minutes = rem // 60
    if days:
        return f"{days}d {hours}h {minutes}m"
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def _percent(part: float, total: float) -> float:
    if total <= 0:
        return 0.0
    return part / total * 100.0


# ── Base ───────────────────────────────────────────────────────────────────


class Collector(ABC):
    """A named source of one module's metrics."""

    name: str = ""

    def collect(self) -> MetricData:
        try:
            metrics = self._read()
        except CollectorError:
            raise
        except Exception as exc:
            raise CollectorError(self.name, exc) from exc
        return MetricData(metrics=metrics)

    @abstractmethod
    def _read(self) -> dict[str, MetricValue]:
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


# ── Modules ────────────────────────────────────────────────────────────────


class CpuCollector(Collector):
    name = "cpu"

    def __init__(self, sample_seconds: float = CPU_SAMPLE_SECONDS) -> None:
        self.sample_seconds = sample_seconds

    def _read(self) -> dict[str, MetricValue]:
        # Blocks for the sampling window; per-core usage needs two readings.
        per_core: list[float] = psutil.cpu_percent(
            interval=self.sample_seconds, percpu=True
        )
        avg = sum(per_core) / len(per_core) if per_core else 0.0

        ram = psutil.virtual_memory()
        swap = psutil.swap_memory()
        return {
            "cpu_usage_percent": float(avg),
            "cpu_count": len(per_core),
            "total_memory_bytes": int(ram.total),
            "used_memory_bytes": int(ram.used),
            "free_memory_bytes": int(ram.free),
            "total_swap_bytes": int(swap.total),
            "used_swap_bytes": int(swap.used),
            "free_swap_bytes": int(swap.free),
        }


class MemoryCollector(Collector):
    name = "memory"

    def _read(self) -> dict[str, MetricValue]:
        ram = psutil.virtual_memory()
        swap = psutil.swap_memory()
        return {
            "total_memory_bytes": int(ram.total),
            "used_memory_bytes": int(ram.used),
            "free_memory_bytes": int(ram.free),
            "available_memory_bytes": int(ram.available),
            "total_swap_bytes": int(swap.total),
            "used_swap_bytes": int(swap.used),
            "free_swap_bytes": int(swap.free),
            "memory_usage_percent": _percent(ram.used, ram.total),
        }


class DiskCollector(Collector):
    name = "disk"

    def _read(self) -> dict[str, MetricValue]:
        total = 0
        free = 0
        count = 0
        for part in psutil.disk_partitions(all=False):
            try:
                usage = psutil.disk_usage(part.mountpoint)
            except OSError:
                # Empty optical drives and stale mounts can't be queried.
                continue
            total += int(usage.total)
            free += int(usage.free)
            count += 1

        used = max(0, total - free)
        return {
            "total_bytes": total,
            "used_bytes": used,
            "free_bytes": free,
            "usage_percent": _percent(used, total),
            "disk_count": count,
        }


class NetworkCollector(Collector):
    name = "network"

    def _read(self) -> dict[str, MetricValue]:
        counters: dict[str, Any] = psutil.net_io_counters(pernic=True) or {}
        total_rx = 0
        total_tx = 0
        details: list[MetricValue] = []
        for iface, io in counters.items():
            rx = int(io.bytes_recv)
            tx = int(io.bytes_sent)
            total_rx += rx
            total_tx += tx
            details.append(f"{iface}: rx={compact_bytes(rx)} tx={compact_bytes(tx)}")

        return {
            "total_received_bytes": total_rx,
            "total_transmitted_bytes": total_tx,
            "interface_count": len(details),
            "interfaces": details,
        }


class ProcessCollector(Collector):
    name = "process"

    def _read(self) -> dict[str, MetricValue]:
        procs: list[dict[str, Any]] = []
        for proc in psutil.process_iter(["pid", "name", "memory_info", "cpu_percent"]):
            try:
                info: dict[str, Any] = proc.info
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
            mem_info = info.get("memory_info")
            procs.append(
                {
                    "pid": info.get("pid", 0),
                    "name": info.get("name") or "?",
                    "rss": int(mem_info.rss) if mem_info else 0,
                    "cpu_percent": float(info.get("cpu_percent") or 0.0),
                }
            )

        # sorted() is stable, so ties keep their process-table order.
        by_memory = sorted(procs, key=lambda p: p["rss"], reverse=True)[:TOP_N]
        by_cpu = sorted(procs, key=lambda p: p["cpu_percent"], reverse=True)[:TOP_N]

        top_mem: list[MetricValue] = [
            f"{p['name']} (pid {p['pid']}) - {p['rss'] / _MB:.1f}MB" for p in by_memory
        ]
        top_cpu: list[MetricValue] = [
            f"{p['name']} (pid {p['pid']}) - {p['cpu_percent']:.1f}%" for p in by_cpu
        ]
        return {
            "total_processes": len(procs),
            "top_by_memory": top_mem,
            "top_by_cpu": top_cpu,
        }


class SystemCollector(Collector):
    name = "system"

    def _read(self) -> dict[str, MetricValue]:
        metrics: dict[str, MetricValue] = {}
        identity = {
            "os_name": _os_name(),
            "os_version": platform.version(),
            "kernel_version": platform.release(),
            "hostname": socket.gethostname(),
            "arch": platform.machine(),
        }
        for key, value in identity.items():
            if value:
                metrics[key] = value

        uptime = max(0, int(time.time() - psutil.boot_time()))
        metrics["uptime_seconds"] = uptime
        metrics["uptime_human"] = format_uptime(uptime)

        load1, load5, load15 = psutil.getloadavg()
        metrics["load_1m"] = float(load1)
        metrics["load_5m"] = float(load5)
        metrics["load_15m"] = float(load15)
        return metrics


def _os_name() -> str:
    """Distribution name where the platform exposes one, else the OS family."""
    try:
        release = platform.freedesktop_os_release()
    except OSError:
        return platform.system()
    return release.get("NAME") or platform.system()


COLLECTORS: dict[str, type[Collector]] = {
    cls.name: cls
    for cls in (
        CpuCollector,
        MemoryCollector,
        DiskCollector,
        NetworkCollector,
        ProcessCollector,
        SystemCollector,
    )
}
