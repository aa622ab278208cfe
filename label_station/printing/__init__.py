"""
Printing subsystem for Label Station.

- spooler: CUPS queue enumeration and removal
"""

from .spooler import *
