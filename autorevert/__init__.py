"""autorevert — watch a remote Git repository and revert commits by a disallowed author."""

__version__ = "0.1.0"
