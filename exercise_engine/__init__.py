"""
Interactive Exercise Engine.

Parses authored lesson blocks into checkable units, captures learner
responses, scores them and enforces attempt/lock rules against an
external grading service.
"""

__version__ = "1.0.0"
