from .short_term_memory import MEMORY_LIMIT, ShortTermMemory

__all__ = ["MEMORY_LIMIT", "ShortTermMemory"]
