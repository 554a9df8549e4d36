####
## Copyright 2022 Buoy Health, Inc.

## Licensed under the Apache License, Version 2.0 (the "License"); you may not use this file except in compliance with the License. You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0.

## Unless required by applicable law or agreed to in writing, software distributed under the License is distributed on an "AS IS" BASIS, WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied. See the License for the specific language governing permissions and limitations under the License.
####

"""Bundle identifier validation and the fallback table."""

import logging
import re
from types import MappingProxyType

log = logging.getLogger(__name__)

BUNDLE_ID_RE = re.compile(r"[a-zA-Z0-9][a-zA-Z0-9.-]*[a-zA-Z0-9]")
DANGEROUS_CHARS_RE = re.compile(r"[;$()` |\\]")

# Requested identifier -> identifier tried when the first is not installed
FALLBACKS = MappingProxyType({
	# Self Service+ falls back to classic Self Service
	"com.jamf.selfserviceplus": "com.jamfsoftware.selfservice.mac",
})


def validate_bundle_id(bid):
	"""Return True if bid is safe to hand to mdfind and friends."""

	if not BUNDLE_ID_RE.fullmatch(bid):
		log.warning("Invalid bundle ID format: %s", bid)
		return False

	if DANGEROUS_CHARS_RE.search(bid):
		log.warning("Bundle ID contains suspicious characters: %s", bid)
		return False

	return True


def fallback_for(bid, fallbacks=FALLBACKS):
	return fallbacks.get(bid)
