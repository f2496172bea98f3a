"""Core submission pipeline: process runner, submission stream, queue and history."""
