from thisisme.config.settings import settings

__all__ = ["settings"]
