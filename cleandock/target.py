####
## Copyright 2022 Buoy Health, Inc.

## Licensed under the Apache License, Version 2.0 (the "License"); you may not use this file except in compliance with the License. You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0.

## Unless required by applicable law or agreed to in writing, software distributed under the License is distributed on an "AS IS" BASIS, WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied. See the License for the specific language governing permissions and limitations under the License.
####

"""Work out whose Dock we are configuring."""

import os
import pwd
import re
from dataclasses import dataclass

from cleandock.errors import FatalError

USERNAME_RE = re.compile(r"[a-zA-Z0-9_.-]+")


@dataclass(frozen=True)
class TargetUser:
	name: str
	uid: int
	home: str

	@property
	def applications_dir(self):
		return os.path.join(self.home, "Applications")


def console_user(console="/dev/console"):
	"""Return the name of the user who owns the console, or None."""

	try:
		return pwd.getpwuid(os.stat(console).st_uid).pw_name
	except (OSError, KeyError):
		return None


def resolve_target(name=None, lookup=pwd.getpwnam, console=console_user):
	"""Return the TargetUser for name, falling back to the console user.

	Raises FatalError if no user can be determined, the user is root, the
	name is malformed or the account does not exist.
	"""

	name = name or console()

	if not name:
		raise FatalError("Cannot determine console user")

	if name == "root":
		raise FatalError("Cannot run for root user")

	if not USERNAME_RE.fullmatch(name):
		raise FatalError(f"Invalid username format: {name}")

	try:
		entry = lookup(name)
	except KeyError:
		raise FatalError(f"User does not exist: {name}") from None

	return TargetUser(name=entry.pw_name, uid=entry.pw_uid, home=entry.pw_dir)
