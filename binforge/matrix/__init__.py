# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Build matrix planning.

Turns a platform's declared axes and exclusion rules into the concrete,
ordered list of build jobs for one release run.
"""
