"""Disposable multipass VMs running OpenGrok over a local, git, or demo codebase."""

__version__ = '0.1.0'
