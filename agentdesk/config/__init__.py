"""AgentDesk Configuration Module"""
from .config_manager import ConfigurationManager, get_config_manager

__all__ = ['ConfigurationManager', 'get_config_manager']
