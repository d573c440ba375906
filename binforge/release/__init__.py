# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Release artifact production for binforge.

Provides artifact naming, version resolution, bzip2 packaging, and SHA256
checksum records. Given the same binary bytes, everything in here produces
the same files with the same names, so a re-run of a release tag overwrites
rather than duplicates.
"""
