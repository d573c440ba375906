# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Top-level release runs: tag in, published artifacts and a report out.
"""
