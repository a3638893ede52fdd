"""
Pushscribe - Push-to-Talk Voice Dictation

Hold a trigger key to dictate; the transcript is inserted at the cursor,
optionally rewritten, or used as an instruction to correct selected text.
"""

__version__ = "1.0.0"

from pushscribe.app import DictationApp
from pushscribe.config import Config
from pushscribe.session import DictationOrchestrator
from pushscribe.trigger import TriggerDetector

__all__ = ["DictationApp", "Config", "DictationOrchestrator", "TriggerDetector", "__version__"]
