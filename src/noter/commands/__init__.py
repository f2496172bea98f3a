"""CLI command modules for noter.

    - note: add a note interactively, detect the opencode binary
    - queue: inspect, drain and edit the retry queue
    - history: review and prune submission history
    - templates: list and preview quick note templates
"""
