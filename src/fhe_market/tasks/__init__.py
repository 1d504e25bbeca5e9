"""
Task subsystem.

Components:
- task_models.py: data structures (Task, Stats, TaskDraft, receipts)
- orchestrator.py: lifecycle orchestrator (bootstrap, refresh, create, decrypt/verify)
"""
