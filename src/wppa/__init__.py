from wppa.host import HookRegistry
from wppa.runtime import PerformanceAnalyser
from wppa.settings import WPPASettings, load_settings

__all__ = ["HookRegistry", "PerformanceAnalyser", "WPPASettings", "load_settings"]
