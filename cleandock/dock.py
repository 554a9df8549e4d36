####
## Copyright 2022 Buoy Health, Inc.

## Licensed under the Apache License, Version 2.0 (the "License"); you may not use this file except in compliance with the License. You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0.

## Unless required by applicable law or agreed to in writing, software distributed under the License is distributed on an "AS IS" BASIS, WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied. See the License for the specific language governing permissions and limitations under the License.
####

"""Writers for the Dock's persistent-apps list.

DefaultsDockStore drives `defaults` as the target user and is what runs from
a Jamf policy as root. DocklibDockStore goes through docklib and is meant for
runs inside the user's own session.
"""

import logging
import subprocess
from time import sleep
from xml.sax.saxutils import escape

from cleandock.commands import TIMEOUT_DEFAULT, TIMEOUT_SHORT, run_as_user
from cleandock.errors import DockNotRunning, DockWriteError, FatalError

log = logging.getLogger(__name__)

DOCK_DOMAIN = "com.apple.dock"
PERSISTENT_APPS = "persistent-apps"
URL_STRING_TYPE = 15


def make_tile(locator):
	return {
		"tile-data": {
			"file-data": {
				"_CFURLString": locator,
				"_CFURLStringType": URL_STRING_TYPE,
			},
		},
		"tile-type": "file-tile",
	}


def tile_xml(tile):
	"""Render a tile as the inline plist dict `defaults -array-add` expects."""

	file_data = tile["tile-data"]["file-data"]
	return (
		"<dict><key>tile-data</key><dict><key>file-data</key><dict>"
		f"<key>_CFURLString</key><string>{escape(file_data['_CFURLString'])}</string>"
		f"<key>_CFURLStringType</key><integer>{file_data['_CFURLStringType']}</integer>"
		"</dict></dict>"
		f"<key>tile-type</key><string>{escape(tile['tile-type'])}</string></dict>"
	)


def wait_for_dock(max_time=300, sleep=sleep):
	"""Wait for Dock to launch. Bail out if we reach max_time seconds."""

	count = 0
	check_cmd = ["/usr/bin/pgrep", "-qx", "Dock"]

	# Check every 1 second for the Dock process
	while subprocess.run(check_cmd).returncode != 0:
		if count >= max_time:
			# We reached our max_time
			raise DockNotRunning(f"Dock did not start within {max_time} seconds")

		# Increment count and wait one second before looping
		count += 1
		sleep(1)


class DefaultsDockStore:
	def __init__(self, target, timeout=TIMEOUT_DEFAULT, restart_timeout=TIMEOUT_SHORT, runner=run_as_user):
		self.target = target
		self.timeout = timeout
		self.restart_timeout = restart_timeout
		self._run = runner

	def _defaults(self, *args):
		result = self._run(self.target, ["/usr/bin/defaults", "write", DOCK_DOMAIN, PERSISTENT_APPS, *args], self.timeout)
		if result is None or result.returncode != 0:
			detail = result.stderr.strip() if result is not None else "timed out"
			raise DockWriteError(f"defaults write {DOCK_DOMAIN} {PERSISTENT_APPS} failed: {detail}")

	def clear(self):
		log.info("Clearing Dock (%s array)", PERSISTENT_APPS)
		self._defaults("-array")

	def append(self, tile):
		self._defaults("-array-add", tile_xml(tile))

	def reload(self):
		log.info("Restarting Dock for %s", self.target.name)
		result = self._run(self.target, ["/usr/bin/killall", "Dock"], self.restart_timeout)
		if result is None or result.returncode != 0:
			raise DockWriteError("Dock restart may have failed or timed out")


class DocklibDockStore:
	"""Stage changes on a docklib Dock and write them all on reload."""

	def __init__(self, max_wait=300, dock=None):
		if dock is None:
			# Wait for Dock to start before loading its preferences
			wait_for_dock(max_wait)
			try:
				from docklib import Dock
				dock = Dock()
			except Exception as e:
				raise FatalError(f"Cannot load the Dock with docklib: {e}") from e
		self.dock = dock

	def clear(self):
		log.info("Clearing Dock (%s array)", PERSISTENT_APPS)
		self.dock.items[PERSISTENT_APPS] = []

	def append(self, tile):
		self.dock.items[PERSISTENT_APPS].append(tile)

	def reload(self):
		# Save changes and relaunch Dock
		try:
			self.dock.save()
		except Exception as e:
			raise DockWriteError(f"docklib could not save the Dock: {e}") from e
