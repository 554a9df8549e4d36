import os
import plistlib

import pytest

from cleandock.errors import DockWriteError
from cleandock.target import TargetUser


class FakeIndex:
	"""Spotlight stand-in: bundle id -> list of paths, in index order."""

	def __init__(self, entries=None):
		self.entries = dict(entries or {})
		self.queries = []

	def lookup_by_identifier(self, bid):
		self.queries.append(bid)
		return list(self.entries.get(bid, []))


class FakeStore:
	def __init__(self, fail_on=()):
		self.tiles = []
		self.cleared = 0
		self.reloaded = 0
		self.fail_on = set(fail_on)

	def clear(self):
		self.cleared += 1
		self.tiles = []

	def append(self, tile):
		locator = tile["tile-data"]["file-data"]["_CFURLString"]
		if any(part in locator for part in self.fail_on):
			raise DockWriteError(f"refused {locator}")
		self.tiles.append(tile)

	def reload(self):
		self.reloaded += 1

	@property
	def locators(self):
		return [t["tile-data"]["file-data"]["_CFURLString"] for t in self.tiles]


@pytest.fixture
def make_bundle():
	def _make(parent, name, bid):
		app = os.path.join(str(parent), name)
		os.makedirs(os.path.join(app, "Contents"))
		with open(os.path.join(app, "Contents", "Info.plist"), "wb") as f:
			plistlib.dump({"CFBundleIdentifier": bid, "CFBundleName": name[:-4]}, f)
		return app
	return _make


@pytest.fixture
def target(tmp_path):
	home = tmp_path / "home" / "alice"
	home.mkdir(parents=True)
	return TargetUser(name="alice", uid=501, home=str(home))


@pytest.fixture
def fake_index():
	return FakeIndex()


@pytest.fixture
def fake_store():
	return FakeStore()
