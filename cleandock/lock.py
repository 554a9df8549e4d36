####
## Copyright 2022 Buoy Health, Inc.

## Licensed under the Apache License, Version 2.0 (the "License"); you may not use this file except in compliance with the License. You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0.

## Unless required by applicable law or agreed to in writing, software distributed under the License is distributed on an "AS IS" BASIS, WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied. See the License for the specific language governing permissions and limitations under the License.
####

import os
import shutil
from time import sleep

from cleandock.errors import FatalError, LockBusy

LOCKFILE_DIR = "/tmp"


def lock_path(target, lock_dir=LOCKFILE_DIR):
	return os.path.join(lock_dir, f"clean_dock_{target.name}.lock")


class DirectoryLock:
	"""Advisory lock held by creating a directory. mkdir is atomic, so only one run wins."""

	def __init__(self, path, max_wait=30, sleep=sleep):
		self.path = path
		self.max_wait = max_wait
		self._sleep = sleep

	def acquire(self):
		count = 0

		# Check every 1 second for the lock to be released
		while True:
			try:
				os.mkdir(self.path)
				break
			except FileExistsError:
				if count >= self.max_wait:
					raise LockBusy(f"Another instance is already running (or stale lock exists): {self.path}") from None
			except OSError as e:
				raise FatalError(f"Cannot create lock {self.path}: {e}") from e

			count += 1
			self._sleep(1)

		try:
			with open(os.path.join(self.path, "pid"), "w") as f:
				f.write(f"{os.getpid()}\n")
		except OSError as e:
			# Never leave a lock behind that no run holds
			self.release()
			raise FatalError(f"Cannot write pid file in {self.path}: {e}") from e

	def release(self):
		shutil.rmtree(self.path, ignore_errors=True)

	def __enter__(self):
		self.acquire()
		return self

	def __exit__(self, *exc):
		self.release()
		return False
