# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Publishing of packaged artifacts to object storage.

One upload per file, every upload attempted, every outcome recorded.
"""
