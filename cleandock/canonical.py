####
## Copyright 2022 Buoy Health, Inc.

## Licensed under the Apache License, Version 2.0 (the "License"); you may not use this file except in compliance with the License. You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0.

## Unless required by applicable law or agreed to in writing, software distributed under the License is distributed on an "AS IS" BASIS, WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied. See the License for the specific language governing permissions and limitations under the License.
####

"""Turn a bundle path into the file:// locator the Dock stores.

A Dock tile pointing at a symlink shows an alias arrow, so symlinked bundles
are followed to their physical location first.
"""

import enum
import logging
import os
from dataclasses import dataclass

log = logging.getLogger(__name__)

SAFE_CHARS = frozenset("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789./_~-")

# Everything not listed here or in SAFE_CHARS passes through untouched
ESCAPES = {c: f"%{ord(c):02X}" for c in " !\"#$%&'()*+,:;=?@[]"}


class Tier(enum.Enum):
	NORMALIZED = "normalized"
	RAW_SYMLINK_TARGET = "raw-symlink-target"
	ORIGINAL_PATH = "original-path"


@dataclass(frozen=True)
class CanonicalPath:
	path: str
	tier: Tier


def _physical_dir(path):
	"""Like `cd path && pwd -P`: None if the directory cannot be entered."""

	if not (os.path.isdir(path) and os.access(path, os.X_OK)):
		return None
	return os.path.realpath(path)


def _normalize(path):
	if os.path.isdir(path):
		return _physical_dir(path)

	if os.path.exists(path):
		parent, base = os.path.split(path)
		physical_parent = _physical_dir(parent or ".")
		if physical_parent is not None:
			return os.path.join(physical_parent, base)

	return None


def canonicalize(path):
	"""Resolve a symlinked bundle path to its physical location.

	Non-symlinks come back unchanged. When the link target cannot be
	normalized the raw target is used instead.
	"""

	if not os.path.islink(path):
		return CanonicalPath(path, Tier.ORIGINAL_PATH)

	try:
		target = os.readlink(path)
	except OSError as e:
		log.warning("Could not read symlink %s: %s", path, e)
		return CanonicalPath(path, Tier.ORIGINAL_PATH)

	if not target:
		return CanonicalPath(path, Tier.ORIGINAL_PATH)

	# Relative targets are relative to the link, not to our cwd
	if not os.path.isabs(target):
		target = os.path.join(os.path.dirname(path), target)
	log.info("Resolved symlink: %s -> %s", path, target)

	normalized = _normalize(target)
	if normalized and os.path.exists(normalized):
		log.info("Normalized to: %s", normalized)
		return CanonicalPath(normalized, Tier.NORMALIZED)

	return CanonicalPath(target, Tier.RAW_SYMLINK_TARGET)


def url_encode(path):
	return "".join(c if c in SAFE_CHARS else ESCAPES.get(c, c) for c in path)


def dock_locator(path):
	"""Bundles are directories, so the locator always ends in a slash."""

	return f"file://{url_encode(path)}/"
