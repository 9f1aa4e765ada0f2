# =======================================================================================
# access_station/__init__.py - Package Initialization
# =======================================================================================
"""
NFC Access Station - Single-station access control host

Drives one NFC reader/servo device over a serial line, decides entry per
tag, keeps a crash-tolerant local log of every attempt and gates credential
enrollment behind the administrator card.
"""

__version__ = "1.0.0"
__author__ = "Access Station Team"
