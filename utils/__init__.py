"""
Utilities Package
Fee calculation and configuration loading
"""

from .gas_calculator import GasCalculator
from .config import DeployerConfig, load_config

__all__ = [
    'GasCalculator',
    'DeployerConfig',
    'load_config'
]
