"""
Entry point for running locklearn-notify as a module.

Usage:
    python -m locklearn_notify plan
    python -m locklearn_notify run user-1
    python -m locklearn_notify --help
"""
from .cli import main

if __name__ == "__main__":
    main()
