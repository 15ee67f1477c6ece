"""Revert engine — compute and apply the inverse of a commit.

This package provides:
- Content merge: git's three-way file merge with conflict markers
- Tree merge: path-level three-way merge of Git trees
- Engine: revert commits onto the current tip, staging conflicts on failure
"""
