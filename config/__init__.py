"""
Configuration module for the rental reservation reconciliation pipeline.
"""

from .settings import mailbox_config, supabase_config, app_config

__all__ = ['mailbox_config', 'supabase_config', 'app_config']
