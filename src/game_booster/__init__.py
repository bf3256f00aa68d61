"""!
@brief Game Booster package root.
@details Modules under this namespace switch machine-state tweaks on and off,
score the active set, run the background cleanup job and surface short-lived
notifications to the console front ends.
"""

__all__ = [
    "main",
    "actions",
    "app_state",
    "cleanup",
    "config",
    "constants",
    "elevation",
    "exec_utils",
    "fs_tools",
    "launcher",
    "logging_ext",
    "main_progress",
    "notifications",
    "registry_tools",
    "scoring",
    "task_runner",
    "toggle_store",
    "tweaks",
    "ui",
    "version",
]
