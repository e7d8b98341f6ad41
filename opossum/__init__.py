"""
oPOSSUM Counts - Backend Application

Computes per-gene TFBS cluster hit counts and covered lengths for
over-representation analysis of target versus background gene sets.
"""

__version__ = "0.1.0"
__author__ = "oPOSSUM Team"
