# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Compilation of single build jobs.

Each job compiles inside its own workspace directory with its own toolchain
output directory, so jobs for different CPU targets can run side by side
without overwriting each other's objects.
"""
