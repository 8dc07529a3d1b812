"""
Season-Aware Farming Advisor - Advice Synthesis Engine
Version: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "Farm Advisor Team"

# Core modules
from . import errors
from . import knowledge
from . import forecast
from . import models
from . import advisor
from . import parser

# Service modules
from . import config
from . import weather
from . import gemini
from . import orchestrator

__all__ = [
    # Core
    'errors', 'knowledge', 'forecast', 'models', 'advisor', 'parser',
    # Services
    'config', 'weather', 'gemini', 'orchestrator'
]
