"""
ESU Activation Agent

Detection and remediation of Windows Extended Security Updates activation.
"""

__version__ = "1.0.0"
