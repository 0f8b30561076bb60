"""
Utilities

Copyright (c) 2026 Andreas Wagner. All rights reserved.
"""

__all__ = ['logging_config']
