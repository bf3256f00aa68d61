"""!
@brief Static data shared across Game Booster.
@details Centralises the toggle table, score grading bands, timing defaults,
Windows identifiers (power plan GUIDs, registry paths, service names), and
the cleanup locations so the engine and the OS glue work from a single source
of truth.
"""
from __future__ import annotations

from typing import Dict, Mapping, Tuple

try:  # pragma: no cover - Windows registry handles are optional on test hosts.
    import winreg
except ImportError:  # pragma: no cover - non-Windows hosts use the raw values.
    winreg = None  # type: ignore[assignment]


if winreg is not None:  # pragma: no branch - deterministic assignments.
    HKLM = winreg.HKEY_LOCAL_MACHINE
    HKCU = winreg.HKEY_CURRENT_USER
else:  # pragma: no cover - exercised implicitly in non-Windows CI.
    HKLM = 0x80000002
    HKCU = 0x80000001


SCORE_MIN = 0
SCORE_MAX = 100

GRADE_THRESHOLDS: Tuple[Tuple[int, str], ...] = (
    (80, "Excellent"),
    (50, "Good"),
    (20, "Fair"),
)
"""!
@brief ``(exclusive lower bound, grade)`` pairs checked in order.
@details A score strictly greater than the bound earns the grade; anything
at or below the last bound is ``Baseline``.
"""

DEFAULT_NOTIFICATION_LIFETIME = 3.0
DEFAULT_COMMAND_TIMEOUT = 5.0

ACCENT_COLORS: Dict[str, str] = {
    "blue": "#0A84FF",
    "green": "#30D158",
    "red": "#FF453A",
    "orange": "#FF9F0A",
    "purple": "#BF5AF2",
    "pink": "#FF375F",
    "gray": "#EBEBF5",
}

TOGGLE_DEFINITIONS: Tuple[Mapping[str, object], ...] = (
    {
        "name": "high_perf_power",
        "label": "High Performance Power",
        "description": "Maximum CPU + GPU clock speeds",
        "weight": 20,
        "accent": "blue",
        "on_message": "High Performance power plan activated",
        "off_message": "Balanced power plan restored",
    },
    {
        "name": "high_res_timer",
        "label": "High-Res Timer (1ms)",
        "description": "Reduces scheduling latency & input lag",
        "weight": 18,
        "accent": "purple",
        "on_message": "Timer resolution set to 1ms, input lag reduced",
        "off_message": "Timer resolution restored",
    },
    {
        "name": "cpu_priority_boost",
        "label": "CPU Priority Boost",
        "description": "Foreground process gets more CPU time",
        "weight": 0,
        "accent": "orange",
        "on_message": "CPU priority separation maximised",
        "off_message": "CPU priority restored",
    },
    {
        "name": "network_low_latency",
        "label": "Network Low-Latency",
        "description": "Disables Nagle, sets TCP ACK = 1",
        "weight": 7,
        "accent": "blue",
        "on_message": "Network optimised: Nagle off, ACK=1",
        "off_message": "Network settings restored",
    },
    {
        "name": "kill_explorer",
        "label": "Kill Windows Explorer",
        "description": "Frees RAM + CPU | taskbar disappears",
        "weight": 10,
        "accent": "red",
        "on_message": "Explorer killed, taskbar hidden",
        "off_message": "Explorer restarted",
    },
    {
        "name": "superfetch_off",
        "label": "Disable SuperFetch",
        "description": "Stops background prefetching, frees RAM",
        "weight": 15,
        "accent": "orange",
        "on_message": "SuperFetch/SysMain stopped, RAM freed",
        "off_message": "SuperFetch/SysMain re-enabled",
    },
    {
        "name": "animations_off",
        "label": "Disable Windows Animations",
        "description": "Snappier UI, less GPU load",
        "weight": 8,
        "accent": "green",
        "on_message": "Windows animations disabled, less CPU waste",
        "off_message": "Windows animations re-enabled",
    },
    {
        "name": "game_mode",
        "label": "Game Mode",
        "description": "Windows shifts resources to foreground game",
        "weight": 12,
        "accent": "blue",
        "on_message": "Windows Game Mode enabled",
        "off_message": "Windows Game Mode disabled",
    },
    {
        "name": "game_bar_off",
        "label": "Disable Xbox Game Bar/DVR",
        "description": "Reclaims RAM + removes background capture",
        "weight": 10,
        "accent": "pink",
        "on_message": "Game Bar / DVR disabled, reclaims RAM",
        "off_message": "Game Bar enabled",
    },
)

HIGH_PERFORMANCE_POWER_PLAN = "8c5e7fda-e8bf-4a96-9a85-a6e23a8c635c"
BALANCED_POWER_PLAN = "381b4222-f694-41f0-9685-ff5bb260df2e"

PRIORITY_CONTROL_KEY = r"SYSTEM\CurrentControlSet\Control\PriorityControl"
PRIORITY_SEPARATION_VALUE = "Win32PrioritySeparation"
PRIORITY_SEPARATION_BOOSTED = 2
PRIORITY_SEPARATION_DEFAULT = 1

TCPIP_INTERFACES_KEY = r"SYSTEM\CurrentControlSet\Services\Tcpip\Parameters\Interfaces"
TCP_TUNING_VALUES: Tuple[str, ...] = ("TcpAckFrequency", "TCPNoDelay")

GAME_BAR_KEY = r"SOFTWARE\Microsoft\GameBar"
GAME_MODE_VALUE = "AutoGameModeEnabled"
GAME_DVR_KEY = r"SOFTWARE\Microsoft\Windows\CurrentVersion\GameDVR"
GAME_DVR_VALUE = "AppCaptureEnabled"

SUPERFETCH_SERVICE = "SysMain"
EXPLORER_PROCESS = "explorer.exe"

SERVICE_ALREADY_RUNNING = 1056
SERVICE_NOT_ACTIVE = 1062
TASKKILL_NOT_FOUND = 128
ACCESS_DENIED = 5

CLEANUP_STEP_TEMP = "temp"
CLEANUP_STEP_WINDOWS_TEMP = "windows_temp"
CLEANUP_STEP_PREFETCH = "prefetch"
CLEANUP_STEP_DNS = "dns"

CLEANUP_LOCATION_LABELS: Dict[str, str] = {
    CLEANUP_STEP_TEMP: "%TEMP%",
    CLEANUP_STEP_WINDOWS_TEMP: r"C:\Windows\Temp",
    CLEANUP_STEP_PREFETCH: "Prefetch",
}
