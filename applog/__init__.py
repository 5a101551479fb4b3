"""
applog - stream application logs from the platform to your terminal.
"""

__version__ = "0.1.0"
