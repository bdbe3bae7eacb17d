"""
QR Phone Scanner.

Decodes QR codes from a live camera or a still image and extracts a
normalized phone number from the payload.
"""

__version__ = "1.0.0"
