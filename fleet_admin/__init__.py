"""
Fleet Admin module.

Command-line tools for operators: one-shot engine commands and queries
against a running fleet controller's status API.
"""
