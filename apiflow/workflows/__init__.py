"""
Workflow definitions

Pre-built workflow graphs for common use cases.
"""

from .signup import create_signup_workflow, SAMPLE_SIGNUP

__all__ = [
    "create_signup_workflow",
    "SAMPLE_SIGNUP"
]
