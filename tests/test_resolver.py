import os
import subprocess

import pytest

from cleandock import resolver as resolver_module
from cleandock.resolver import InfoPlistReader, Resolver, SpotlightIndex, iter_bundles


@pytest.fixture
def apps(tmp_path):
	path = tmp_path / "Applications"
	path.mkdir()
	return path


def test_index_hit_is_returned(apps, target, fake_index, make_bundle):
	safari = make_bundle(apps, "Safari.app", "com.apple.Safari")
	fake_index.entries["com.apple.Safari"] = [safari]
	resolver = Resolver(target, index=fake_index, search_paths=[])

	assert resolver.resolve("com.apple.Safari") == safari


def test_index_skips_entries_that_are_not_bundles(apps, target, fake_index, make_bundle):
	safari = make_bundle(apps, "Safari.app", "com.apple.Safari")
	fake_index.entries["com.apple.Safari"] = [os.path.join(safari, "Contents", "Info.plist"), safari]
	resolver = Resolver(target, index=fake_index, search_paths=[])

	assert resolver.resolve("com.apple.Safari") == safari


def test_stale_index_entry_falls_back_to_walk(apps, target, fake_index, make_bundle):
	safari = make_bundle(apps, "Safari.app", "com.apple.Safari")
	fake_index.entries["com.apple.Safari"] = ["/Applications/Gone Forever.app"]
	resolver = Resolver(target, index=fake_index, search_paths=[str(apps)])

	assert resolver.resolve("com.apple.Safari") == safari


def test_walk_finds_bundle_one_level_down(apps, target, fake_index, make_bundle):
	utilities = apps / "Utilities"
	utilities.mkdir()
	terminal = make_bundle(utilities, "Terminal.app", "com.apple.Terminal")
	resolver = Resolver(target, index=fake_index, search_paths=[str(apps)])

	assert resolver.resolve("com.apple.Terminal") == terminal


def test_walk_does_not_go_deeper_than_two_levels(apps, target, fake_index, make_bundle):
	deep = apps / "Vendor" / "Suite"
	deep.mkdir(parents=True)
	make_bundle(deep, "Tool.app", "com.example.tool")
	resolver = Resolver(target, index=fake_index, search_paths=[str(apps)])

	assert resolver.resolve("com.example.tool") is None


def test_walk_follows_search_path_order(tmp_path, target, fake_index, make_bundle):
	first = tmp_path / "first"
	second = tmp_path / "second"
	first.mkdir()
	second.mkdir()
	make_bundle(second, "Copy.app", "com.example.copy")
	winner = make_bundle(first, "Copy.app", "com.example.copy")
	resolver = Resolver(target, index=fake_index, search_paths=[str(tmp_path / "missing"), str(first), str(second)])

	assert resolver.resolve("com.example.copy") == winner


def test_walk_includes_user_applications_by_default(target, fake_index, make_bundle):
	os.makedirs(target.applications_dir)
	mine = make_bundle(target.applications_dir, "Mine.app", "com.example.mine")
	resolver = Resolver(target, index=fake_index)

	assert resolver.search_paths[-1] == target.applications_dir
	assert resolver.resolve("com.example.mine") == mine


def test_not_installed_returns_none(apps, target, fake_index, make_bundle):
	make_bundle(apps, "Safari.app", "com.apple.Safari")
	resolver = Resolver(target, index=fake_index, search_paths=[str(apps)])

	assert resolver.resolve("com.example.missing") is None
	assert fake_index.queries == ["com.example.missing"]


def test_empty_identifier_fails_fast(target, fake_index):
	with pytest.raises(ValueError):
		Resolver(target, index=fake_index, search_paths=[]).resolve("")


def test_same_bundle_from_index_or_walk(apps, target, fake_index, make_bundle):
	slack = make_bundle(apps, "Slack.app", "com.tinyspeck.slackmacgap")
	by_walk = Resolver(target, index=fake_index, search_paths=[str(apps)]).resolve("com.tinyspeck.slackmacgap")
	fake_index.entries["com.tinyspeck.slackmacgap"] = [slack]
	by_index = Resolver(target, index=fake_index, search_paths=[]).resolve("com.tinyspeck.slackmacgap")

	assert by_walk == by_index == slack


def test_iter_bundles_yields_symlinked_bundle_without_descending(tmp_path, make_bundle):
	real = tmp_path / "real"
	apps = tmp_path / "apps"
	real.mkdir()
	apps.mkdir()
	make_bundle(real, "Linked.app", "com.example.linked")
	make_bundle(real, "Nested.app", "com.example.nested")
	os.symlink(str(real / "Linked.app"), str(apps / "Linked.app"))
	os.symlink(str(real), str(apps / "Folder"))

	found = list(iter_bundles(str(apps)))

	assert found == [str(apps / "Linked.app")]


def test_info_plist_reader_handles_bad_bundles(tmp_path, make_bundle):
	reader = InfoPlistReader()
	good = make_bundle(tmp_path, "Good.app", "com.example.good")
	empty = tmp_path / "Empty.app"
	empty.mkdir()
	broken = tmp_path / "Broken.app" / "Contents"
	broken.mkdir(parents=True)
	(broken / "Info.plist").write_text("not a plist at all")

	assert reader.read_bundle_identifier(good) == "com.example.good"
	assert reader.read_bundle_identifier(str(empty)) is None
	assert reader.read_bundle_identifier(str(tmp_path / "Broken.app")) is None


def test_spotlight_index_without_mdfind_finds_nothing(tmp_path):
	index = SpotlightIndex(timeout=1, mdfind=str(tmp_path / "no-such-mdfind"))

	assert index.lookup_by_identifier("com.apple.Safari") == []


def test_spotlight_index_parses_mdfind_output(monkeypatch):
	calls = []

	def fake_run(cmd, timeout):
		calls.append((cmd, timeout))
		return subprocess.CompletedProcess(cmd, 0, stdout="/Applications/Safari.app\n\n/Volumes/Old/Safari.app\n", stderr="")

	monkeypatch.setattr(resolver_module, "run_with_timeout", fake_run)

	found = SpotlightIndex(timeout=7).lookup_by_identifier("com.apple.Safari")

	assert found == ["/Applications/Safari.app", "/Volumes/Old/Safari.app"]
	assert calls == [(["/usr/bin/mdfind", "kMDItemCFBundleIdentifier == 'com.apple.Safari'"], 7)]
