"""
Shared Kernel

This module contains value objects and infrastructure helpers shared across
all domain apps (money arithmetic, time windows, object storage).
"""
