"""Remote guard — keep a remote branch free of commits by a disallowed author.

This package provides:
- Policy: decide whether a commit's author is disallowed
- Watcher: the polling loop that synchronizes, evaluates, reverts and pushes
"""
