from socialdl.config.settings import config
from socialdl.core.state import state
from socialdl.services.extractor import ExtractorInvoker
from socialdl.services.storage import StagedFileStore


def get_store() -> StagedFileStore:
    """Process-wide staged file store, created on first use"""
    if state.store is None:
        state.store = StagedFileStore.from_config(config.storage)
        state.store.ensure_directory()
    return state.store


def get_invoker() -> ExtractorInvoker:
    if state.invoker is None:
        state.invoker = ExtractorInvoker(config.extractor, get_store())
    return state.invoker
