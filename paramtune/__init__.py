"""
paramtune - black-box parameter tuning of a staged image-analysis pipeline against annotated ground truth.
"""

__version__ = "0.1.0"
