"""knowledgeVault configuration: environment ``Settings`` plus the YAML loader.

``src.main`` builds the one ``Settings`` instance the application uses and
passes it to ``load_config``; nothing here reads the environment at import.
"""

from src.config.loader import load_config
from src.config.settings import Settings

__all__ = ["Settings", "load_config"]
