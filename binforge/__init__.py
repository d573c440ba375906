# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
binforge — tag-driven release builds for native binaries.

A pushed version tag fans out into one pipeline per platform. Each pipeline
expands its build matrix, compiles every surviving configuration, packages
the result as a bzip2 artifact with a SHA-256 record, and publishes the set
to object storage.
"""

__version__ = "0.1.0"
