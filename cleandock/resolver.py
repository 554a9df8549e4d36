####
## Copyright 2022 Buoy Health, Inc.

## Licensed under the Apache License, Version 2.0 (the "License"); you may not use this file except in compliance with the License. You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0.

## Unless required by applicable law or agreed to in writing, software distributed under the License is distributed on an "AS IS" BASIS, WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied. See the License for the specific language governing permissions and limitations under the License.
####

"""Find an installed application bundle from its bundle identifier.

Spotlight is asked first since it is fast when the index is current. If it
comes back empty or points at something that is gone, the conventional
install locations are walked and each bundle's Info.plist is checked.
"""

import logging
import os
import plistlib

from cleandock.commands import TIMEOUT_DEFAULT, run_with_timeout

log = logging.getLogger(__name__)

SYSTEM_SEARCH_PATHS = (
	"/Applications",
	"/System/Applications",
	"/Applications/Utilities",
	"/System/Applications/Utilities",
)

# Direct children and one level of nested bundles
SEARCH_DEPTH = 2


class SpotlightIndex:
	"""Query the Spotlight index with mdfind."""

	def __init__(self, timeout=TIMEOUT_DEFAULT, mdfind="/usr/bin/mdfind"):
		self.timeout = timeout
		self.mdfind = mdfind

	def lookup_by_identifier(self, bid):
		result = run_with_timeout([self.mdfind, f"kMDItemCFBundleIdentifier == '{bid}'"], self.timeout)
		if result is None or result.returncode != 0:
			return []
		return [line for line in result.stdout.splitlines() if line]


class InfoPlistReader:
	"""Read CFBundleIdentifier out of a bundle's Contents/Info.plist."""

	def read_bundle_identifier(self, app_path):
		info_plist = os.path.join(app_path, "Contents", "Info.plist")
		if not os.path.isfile(info_plist):
			return None

		try:
			with open(info_plist, "rb") as f:
				info = plistlib.load(f)
		except (OSError, ValueError, plistlib.InvalidFileException) as e:
			log.debug("Could not read %s: %s", info_plist, e)
			return None

		if not isinstance(info, dict):
			return None
		bid = info.get("CFBundleIdentifier")
		return bid if isinstance(bid, str) else None


def iter_bundles(base_dir, depth=SEARCH_DEPTH):
	"""Yield *.app directories under base_dir, pre-order, down to depth.

	Symlinked bundles are yielded but never descended into.
	"""

	try:
		entries = sorted(os.scandir(base_dir), key=lambda e: e.name)
	except OSError:
		return

	for entry in entries:
		if entry.name.endswith(".app") and entry.is_dir():
			yield entry.path
		if depth > 1 and entry.is_dir(follow_symlinks=False):
			yield from iter_bundles(entry.path, depth - 1)


class Resolver:
	"""Map a bundle identifier to one installed bundle path."""

	def __init__(self, target, index=None, reader=None, search_paths=None):
		self.target = target
		self.index = index if index is not None else SpotlightIndex()
		self.reader = reader if reader is not None else InfoPlistReader()
		if search_paths is None:
			search_paths = SYSTEM_SEARCH_PATHS + (target.applications_dir,)
		self.search_paths = tuple(search_paths)

	def resolve(self, bid):
		"""Return the bundle path for bid, or None if it is not installed."""

		if not bid:
			raise ValueError("bundle identifier must not be empty")

		path = self.from_index(bid)
		if path is not None:
			return path

		return self.from_walk(bid)

	def from_index(self, bid):
		for path in self.index.lookup_by_identifier(bid):
			if not path.endswith(".app"):
				continue
			if os.path.exists(path):
				return path
			# Spotlight can lag behind deletions
			log.debug("Index entry for %s is stale: %s", bid, path)
			return None
		return None

	def from_walk(self, bid):
		for base_dir in self.search_paths:
			if not os.path.isdir(base_dir):
				continue

			for app_path in iter_bundles(base_dir):
				if self.reader.read_bundle_identifier(app_path) == bid:
					return app_path

		return None
