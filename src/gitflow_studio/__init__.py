"""GitFlow Studio: discovery, cleanup, and setup of git worktrees."""

__version__ = "0.1.0"
