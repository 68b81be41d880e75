"""Helpers for tooling that manages Linux virtual machine instances: argument
guessing, yq edit flags, editors, cached downloads and cloud-init data pieces."""

__version__ = "0.1.0"