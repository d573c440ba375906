# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

r"""
Tag triggers.

A run starts from a tag string. Only tags matching the release pattern
(default `^v[0-9]+\.[0-9]+\.[0-9]+$`) start anything; every other tag is
ignored without being treated as an error, the same way a CI tag filter would.

Patterns are matched with re.ASCII, so `\d` in a custom pattern means 0-9
and never other Unicode digits.
"""

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass

from binforge.config.schema import DEFAULT_TAG_PATTERN

_TAG_REF_PREFIX = "refs/tags/"


@dataclass(frozen=True)
class Trigger:
    """An accepted tag event. Lives for exactly one run."""

    tag: str

    @property
    def tag_version(self) -> str:
        """The tag without its leading 'v'."""
        return self.tag[1:] if self.tag.startswith("v") else self.tag


def parse_trigger(tag: str, pattern: str = DEFAULT_TAG_PATTERN) -> Trigger | None:
    """Return a Trigger if `tag` is a release tag, None otherwise."""
    tag = tag.strip()
    if tag.startswith(_TAG_REF_PREFIX):
        tag = tag[len(_TAG_REF_PREFIX):]
    if re.search(pattern, tag, flags=re.ASCII) is None:
        return None
    return Trigger(tag=tag)


def tag_from_environment(environ: Mapping[str, str] | None = None) -> str | None:
    """
    Find the pushed tag in a CI environment.

    BINFORGE_TAG wins if set. Otherwise GITHUB_REF is used, but only when it
    points at a tag — a branch push has no tag to release.
    """
    env = os.environ if environ is None else environ
    explicit = env.get("BINFORGE_TAG", "").strip()
    if explicit:
        return explicit
    ref = env.get("GITHUB_REF", "").strip()
    if ref.startswith(_TAG_REF_PREFIX):
        return ref[len(_TAG_REF_PREFIX):]
    return None
