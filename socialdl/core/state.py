from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from socialdl.services.extractor import ExtractorInvoker
    from socialdl.services.storage import StagedFileStore
    from socialdl.services.sweeper import SweepScheduler


@dataclass
class RuntimeState:
    """Centralized runtime state"""
    store: Optional["StagedFileStore"] = None
    invoker: Optional["ExtractorInvoker"] = None
    sweeper: Optional["SweepScheduler"] = None

state = RuntimeState()
