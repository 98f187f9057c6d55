"""
Calendar feed synchronization.
"""
from .airbnb import AirbnbPlatform
from .platforms import register_platform, get_platform

register_platform(AirbnbPlatform())

__all__ = ['register_platform', 'get_platform']
