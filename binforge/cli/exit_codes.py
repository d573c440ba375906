# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
CLI exit codes.

  SUCCESS           run finished (or the tag was not a release tag)
  USER_ERROR        bad command-line usage
  CONFIG_ERROR      config file missing, unparsable, or invalid
  RUNTIME_ERROR     run produced no artifacts, or partial failure under fail_on_partial
  VALIDATION_ERROR  structural abort (bad matrix, bad version) or failed verification
"""

SUCCESS: int = 0
USER_ERROR: int = 1
CONFIG_ERROR: int = 2
RUNTIME_ERROR: int = 3
VALIDATION_ERROR: int = 4
