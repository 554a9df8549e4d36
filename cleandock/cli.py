####
## Copyright 2022 Buoy Health, Inc.

## Licensed under the Apache License, Version 2.0 (the "License"); you may not use this file except in compliance with the License. You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0.

## Unless required by applicable law or agreed to in writing, software distributed under the License is distributed on an "AS IS" BASIS, WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied. See the License for the specific language governing permissions and limitations under the License.
####

"""Clear a user's Dock and add apps by bundle identifier.

Run from a Jamf Pro policy: parameters 1-3 are the ones Jamf reserves
(target drive, computer name, username) and every parameter after that is
a bundle identifier, added left to right.
"""

import argparse
import logging
import os
import sys
from dataclasses import dataclass
from logging.handlers import SysLogHandler

from cleandock import __version__
from cleandock.commands import TIMEOUT_DEFAULT, TIMEOUT_SHORT
from cleandock.dock import DefaultsDockStore, DocklibDockStore
from cleandock.errors import DockWriteError, FatalError
from cleandock.lock import LOCKFILE_DIR, DirectoryLock, lock_path
from cleandock.pipeline import populate_dock
from cleandock.resolver import Resolver, SpotlightIndex
from cleandock.target import resolve_target

log = logging.getLogger("cleandock")

LOGTAG = "clean_dock"
SYSLOG_SOCKET = "/var/run/syslog"


@dataclass(frozen=True)
class Settings:
	store: str = "auto"
	lock_dir: str = LOCKFILE_DIR
	timeout: int = TIMEOUT_DEFAULT
	restart_timeout: int = TIMEOUT_SHORT
	dock_wait: int = 300
	lock_wait: int = 30


class TagFormatter(logging.Formatter):
	"""`[clean_dock] message`, with the level spelled out for anything above INFO.

	With tag=None the bracketed tag is left off, for handlers that add their own.
	"""

	def __init__(self, fmt="%(message)s", tag=LOGTAG):
		super().__init__(fmt)
		self.tag = tag

	def format(self, record):
		message = super().format(record)
		if record.levelno > logging.INFO:
			message = f"{record.levelname}: {message}"
		if self.tag is None:
			return message
		return f"[{self.tag}] {message}"


def configure_logging(verbose=False):
	logger = logging.getLogger("cleandock")
	logger.setLevel(logging.DEBUG if verbose else logging.INFO)
	logger.handlers.clear()

	stream = logging.StreamHandler(sys.stdout)
	stream.setFormatter(TagFormatter("%(message)s"))
	logger.addHandler(stream)

	# Mirror everything to the system log, like `logger -t clean_dock`
	if os.path.exists(SYSLOG_SOCKET):
		syslog = SysLogHandler(address=SYSLOG_SOCKET)
		syslog.ident = f"{LOGTAG}: "
		syslog.setFormatter(TagFormatter(tag=None))
		logger.addHandler(syslog)

	return logger


def build_parser():
	parser = argparse.ArgumentParser(prog="clean-dock", description=__doc__.splitlines()[0])
	parser.add_argument("mount_point", nargs="?", help="Jamf parameter 1 (unused)")
	parser.add_argument("computer_name", nargs="?", help="Jamf parameter 2 (unused)")
	parser.add_argument("username", nargs="?", help="Jamf parameter 3; defaults to the console user")
	parser.add_argument("bundle_ids", nargs="*", metavar="bundle_id", help="apps to add, left to right")
	parser.add_argument("--store", choices=("auto", "defaults", "docklib"), default=Settings.store,
		help="how to write the Dock (auto: defaults when root, docklib otherwise)")
	parser.add_argument("--lock-dir", default=Settings.lock_dir)
	parser.add_argument("--lock-wait", type=int, default=Settings.lock_wait, help="seconds to wait for another run to finish")
	parser.add_argument("--timeout", type=int, default=Settings.timeout, help="seconds allowed per lookup or write")
	parser.add_argument("--restart-timeout", type=int, default=Settings.restart_timeout)
	parser.add_argument("--dock-wait", type=int, default=Settings.dock_wait, help="seconds to wait for the Dock (docklib store)")
	parser.add_argument("-v", "--verbose", action="store_true")
	parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
	return parser


def make_store(settings, target):
	kind = settings.store
	if kind == "auto":
		kind = "defaults" if os.geteuid() == 0 else "docklib"

	if kind == "docklib":
		return DocklibDockStore(max_wait=settings.dock_wait)
	return DefaultsDockStore(target, timeout=settings.timeout, restart_timeout=settings.restart_timeout)


def run(bundle_ids, username=None, settings=Settings(), resolve=resolve_target, store_factory=make_store, resolver_factory=None):
	"""Configure the Dock and return the process exit status."""

	try:
		target = resolve(username)
	except FatalError as e:
		log.error("%s", e)
		return 1

	log.info("Script version: %s", __version__)
	log.info("Target user: %s", target.name)

	try:
		with DirectoryLock(lock_path(target, settings.lock_dir), max_wait=settings.lock_wait):
			store = store_factory(settings, target)
			store.clear()

			if resolver_factory is None:
				resolver = Resolver(target, index=SpotlightIndex(timeout=settings.timeout))
			else:
				resolver = resolver_factory(target)

			log.info("Processing %d bundle IDs...", len(bundle_ids))
			report = populate_dock(bundle_ids, resolver, store)
			log.info("Successfully added %d apps to Dock", report.success_count)

			try:
				store.reload()
			except DockWriteError as e:
				log.warning("%s", e)
			else:
				log.info("Dock restarted successfully")
	except (FatalError, DockWriteError) as e:
		log.error("%s", e)
		return 1

	log.info("Dock setup complete for %s", target.name)
	return 0


def main(argv=None):
	args = build_parser().parse_args(argv)
	configure_logging(args.verbose)
	settings = Settings(
		store=args.store,
		lock_dir=args.lock_dir,
		timeout=args.timeout,
		restart_timeout=args.restart_timeout,
		dock_wait=args.dock_wait,
		lock_wait=args.lock_wait,
	)
	return run(args.bundle_ids, args.username, settings)


if __name__ == "__main__":
	sys.exit(main())
