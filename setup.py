"""
Setup shim for tools that still call setup.py directly.
Project metadata, dependencies and the pdf-highlights entry point live in pyproject.toml.
"""

from setuptools import setup

setup()
