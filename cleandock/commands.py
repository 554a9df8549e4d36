####
## Copyright 2022 Buoy Health, Inc.

## Licensed under the Apache License, Version 2.0 (the "License"); you may not use this file except in compliance with the License. You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0.

## Unless required by applicable law or agreed to in writing, software distributed under the License is distributed on an "AS IS" BASIS, WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied. See the License for the specific language governing permissions and limitations under the License.
####

"""Subprocess helpers with bounded waits."""

import logging
import os
import subprocess

log = logging.getLogger(__name__)

TIMEOUT_DEFAULT = 30
TIMEOUT_SHORT = 10


def run_with_timeout(cmd, timeout=TIMEOUT_DEFAULT):
	"""Run cmd and return the CompletedProcess, or None if it timed out or could not start.

	A timeout is treated the same as a command that found nothing; callers
	decide whether that matters.
	"""

	try:
		return subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
	except subprocess.TimeoutExpired:
		log.warning("Timed out after %ss: %s", timeout, cmd[0])
	except OSError as e:
		log.debug("Could not run %s: %s", cmd[0], e)
	return None


def as_user(target, cmd):
	"""Wrap cmd so it runs as the target user with their HOME."""

	if os.geteuid() == target.uid:
		return list(cmd)
	return ["/usr/bin/sudo", "-u", target.name, "/usr/bin/env", f"HOME={target.home}", *cmd]


def run_as_user(target, cmd, timeout=TIMEOUT_DEFAULT):
	return run_with_timeout(as_user(target, cmd), timeout)
