# config_local.example.py

"""
Example local overrides.

Usage:
  1) Copy this file to `config_local.py`
  2) Adjust values for your machine
  3) Never commit `config_local.py` (it is gitignored)

Prefer `.env` for secrets. This file should contain only safe overrides.
"""

# Example: enable Matrix connector locally
# MATRIX_ENABLED = True

# Example: run without the console REPL
# CONSOLE_ENABLED = False

# Example: keep tasks somewhere else
# TASKS_PATH = "/var/lib/todo/tasks.json"
