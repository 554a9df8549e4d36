####
## Copyright 2022 Buoy Health, Inc.

## Licensed under the Apache License, Version 2.0 (the "License"); you may not use this file except in compliance with the License. You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0.

## Unless required by applicable law or agreed to in writing, software distributed under the License is distributed on an "AS IS" BASIS, WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied. See the License for the specific language governing permissions and limitations under the License.
####

import enum
import logging
import os
from dataclasses import dataclass, field

from cleandock.canonical import canonicalize, dock_locator
from cleandock.dock import make_tile
from cleandock.errors import DockWriteError
from cleandock.identifiers import FALLBACKS, fallback_for, validate_bundle_id

log = logging.getLogger(__name__)


class Outcome(enum.Enum):
	ADDED = "added"
	NOT_FOUND = "not-found"
	VANISHED = "vanished"
	WRITE_FAILED = "write-failed"


@dataclass(frozen=True)
class DockEntry:
	bundle_id: str
	requested: str
	path: str
	locator: str


@dataclass
class RunReport:
	added: list = field(default_factory=list)
	skipped: list = field(default_factory=list)

	@property
	def success_count(self):
		return len(self.added)


def add_app(bid, resolver, store, requested=None):
	"""Resolve one identifier and append it to the Dock.

	Returns (Outcome, DockEntry or None). Never raises for a per-app problem.
	"""

	path = resolver.resolve(bid)
	if path is None:
		return Outcome.NOT_FOUND, None
	log.info("Found: %s", path)

	if not os.path.exists(path):
		log.warning("Path no longer exists: %s", path)
		return Outcome.VANISHED, None

	canonical = canonicalize(path)
	locator = dock_locator(canonical.path)

	try:
		store.append(make_tile(locator))
	except DockWriteError as e:
		log.warning("Failed to add %s to Dock: %s", canonical.path, e)
		return Outcome.WRITE_FAILED, None

	log.info("Added to Dock: %s", canonical.path)
	return Outcome.ADDED, DockEntry(bundle_id=bid, requested=requested or bid, path=canonical.path, locator=locator)


def populate_dock(identifiers, resolver, store, fallbacks=FALLBACKS):
	"""Add each identifier to the Dock in order, skipping any that fail."""

	report = RunReport()

	for bid in identifiers:
		if not bid or not bid.strip():
			continue

		if not validate_bundle_id(bid):
			log.warning("Skipping invalid bundle ID: %s", bid)
			report.skipped.append(bid)
			continue

		log.info("Processing: %s", bid)
		outcome, entry = add_app(bid, resolver, store)

		if outcome is Outcome.NOT_FOUND:
			alternate = fallback_for(bid, fallbacks)
			if alternate is None:
				log.warning("Bundle ID not found: %s - App may not be installed or bundle ID is incorrect", bid)
			else:
				log.info("%s not found, attempting fallback to %s", bid, alternate)
				outcome, entry = add_app(alternate, resolver, store, requested=bid)
				if outcome is Outcome.ADDED:
					log.info("Successfully added fallback app to Dock")
				elif outcome is Outcome.NOT_FOUND:
					log.warning("Bundle ID not found: %s (and fallback %s also not found)", bid, alternate)

		if outcome is Outcome.ADDED:
			report.added.append(entry)
		else:
			report.skipped.append(bid)

	return report
