"""
slotbooker - 1:1 booking windows for project managers and students.
"""

__version__ = "0.1.0"
