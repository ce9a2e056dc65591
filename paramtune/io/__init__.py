from .discovery import TuningTask, discover_task, find_ground_truth_files
from .settings_store import load_settings, read_settings, write_combined, write_settings

__all__ = [
    'TuningTask',
    'discover_task',
    'find_ground_truth_files',
    'load_settings',
    'read_settings',
    'write_settings',
    'write_combined'
]
