from __future__ import annotations

import signal

import pytest

from mirroradmin.cli.main import COMMANDS, run


@pytest.fixture
def added(admin_context):
    assert run(["add", "m1", "--http", "M1.example.org/pub", "--rsync", "rsync://m1.example.org/pub"],
               admin_context) == 0
    return "m1"


def test_help(admin_context, capsys) -> None:
    assert run([], admin_context) == 0
    assert run(["help"], admin_context) == 0
    err = capsys.readouterr().err
    for name in COMMANDS:
        assert name in err


def test_unknown_command(admin_context, capsys) -> None:
    assert run(["frobnicate"], admin_context) == 0
    err = capsys.readouterr().err
    assert "Command not found: frobnicate" in err
    assert "Commands:" in err


def test_command_help(admin_context, capsys) -> None:
    assert run(["add", "--help"], admin_context) == 0
    assert "--http" in capsys.readouterr().out


def test_add_then_list(added, admin_context, sync_redis, capsys) -> None:
    fields = sync_redis.hgetall("MIRROR_m1")
    assert fields["http"] == "http://m1.example.org/pub/"
    assert fields["rsync"] == "rsync://m1.example.org/pub/"
    assert fields["countryCodes"] == "FR"
    assert fields["continentCode"] == "EU"
    assert fields["asnum"] == "64500"
    assert fields["enabled"] == "0"
    capsys.readouterr()

    assert run(["list", "--http"], admin_context) == 0
    out = capsys.readouterr().out
    assert "Identifier" in out
    assert "http://m1.example.org/pub/" in out
    assert "down" in out


def test_add_without_location_warns(admin_context, geo_info, capsys) -> None:
    geo_info.country_code = ""
    geo_info.continent_code = ""
    assert run(["add", "m1", "--http", "http://m1.example.org/"], admin_context) == 0
    assert "unable to guess the geographic location of m1" in capsys.readouterr().err


def test_duplicate_add_fails(added, admin_context, sync_redis, capsys) -> None:
    before = sync_redis.hgetall("MIRROR_m1")
    capsys.readouterr()

    assert run(["add", "m1", "--http", "http://elsewhere.example.org/"], admin_context) == 1
    assert "Mirror m1 already exists!" in capsys.readouterr().err
    assert sync_redis.hgetall("MIRROR_m1") == before
    assert sync_redis.lrange("MIRRORS", 0, -1) == ["m1"]


@pytest.mark.parametrize(
    "argv",
    [
        ["add", "bad id", "--http", "http://m1.example.org/"],
        ["add", "m1"],
        ["add", "m1", "--http", "http://m1.example.org:notaport/"],
    ],
)
def test_add_validation(admin_context, sync_redis, argv) -> None:
    assert run(argv, admin_context) == 1
    assert sync_redis.lrange("MIRRORS", 0, -1) == []


def test_add_with_unparseable_url(admin_context, sync_redis, capsys) -> None:
    assert run(["add", "m1", "--http", "http://[::1"], admin_context) == 1
    assert "Error: Can't parse URL" in capsys.readouterr().err
    assert not sync_redis.exists("MIRROR_m1")


def test_edit_with_unparseable_url(seed, admin_context, fake_editor, sync_redis, capsys) -> None:
    seed("m1")
    fake_editor.rewrite = lambda text: text.replace("ftp: ''", 'ftp: "ftp://[broken"')

    assert run(["edit", "m1"], admin_context) == 1
    assert "Parse error" in capsys.readouterr().err
    assert sync_redis.hget("MIRROR_m1", "ftp") == ""


def test_verbs_are_case_insensitive(seed, admin_context, sync_redis) -> None:
    seed("m1")
    assert run(["ENABLE", "m1"], admin_context) == 0
    assert sync_redis.hget("MIRROR_m1", "enabled") == "1"


def test_enable_disable_by_substring(seed, admin_context, sync_redis, capsys) -> None:
    seed("mirror-one")
    assert run(["enable", "one"], admin_context) == 0
    assert sync_redis.hget("MIRROR_mirror-one", "enabled") == "1"
    assert run(["disable", "one"], admin_context) == 0
    assert sync_redis.hget("MIRROR_mirror-one", "enabled") == "0"
    assert "Mirror disabled successfully" in capsys.readouterr().out


def test_ambiguous_target_changes_nothing(seed, admin_context, sync_redis, capsys) -> None:
    seed("alpha")
    seed("alphabeta")

    assert run(["enable", "alpha"], admin_context) == 0

    err = capsys.readouterr().err
    assert "Multiple match:" in err
    assert "alphabeta" in err
    assert sync_redis.hget("MIRROR_alpha", "enabled") == "0"
    assert sync_redis.hget("MIRROR_alphabeta", "enabled") == "0"


def test_no_match(seed, admin_context, capsys) -> None:
    seed("m1")
    assert run(["remove", "zzz"], admin_context) == 0
    assert "No match for zzz" in capsys.readouterr().err


def test_missing_argument_is_a_usage_error(admin_context) -> None:
    assert run(["enable"], admin_context) == 0


def test_remove(seed, admin_context, sync_redis, capsys) -> None:
    seed("m1", files=("a", "b"))
    seed("m2")

    assert run(["remove", "m1"], admin_context) == 0

    assert "Mirror removed successfully" in capsys.readouterr().out
    assert sync_redis.lrange("MIRRORS", 0, -1) == ["m2"]
    assert not sync_redis.exists("MIRROR_m1", "MIRROR_m1_FILES", "FILEINFO_m1_a")


def test_export(seed, admin_context, capsys) -> None:
    seed("m1", rsync_url="rsync://m1/pub/", country_codes="FR", admin_email="ops@m1", enabled=True)
    seed("m2", http_url="http://m2/", admin_email="ops@m2")

    assert run(["export", "mirmon", "--no-disabled"], admin_context) == 0
    assert capsys.readouterr().out.splitlines() == [
        "FR rsync://m1/pub/ ops@m1",
        "FR http://m1.example.org/ ops@m1",
    ]

    assert run(["export", "mirmon", "--no-rsync"], admin_context) == 0
    assert capsys.readouterr().out.splitlines() == [
        "FR http://m1.example.org/ ops@m1",
        "-- http://m2/ ops@m2",
    ]


def test_export_unsupported_format(seed, admin_context, capsys) -> None:
    seed("m1")
    assert run(["export", "csv"], admin_context) == 0
    captured = capsys.readouterr()
    assert "Unsupported format" in captured.err
    assert captured.out == ""


def test_edit(seed, admin_context, fake_editor, sync_redis, capsys) -> None:
    seed("m1")
    fake_editor.rewrite = lambda text: text.replace("score: 0", "score: 12")

    assert run(["edit", "m1"], admin_context) == 0
    assert "Mirror edited successfully" in capsys.readouterr().out
    assert sync_redis.hget("MIRROR_m1", "score") == "12"


def test_edit_without_change(seed, admin_context, capsys) -> None:
    seed("m1")
    assert run(["edit", "m1"], admin_context) == 0
    assert "Aborted" in capsys.readouterr().out


def test_edit_without_editor(seed, unconfigured_editor_context, capsys) -> None:
    seed("m1")
    assert run(["edit", "m1"], unconfigured_editor_context) == 1
    assert "Environment variable $EDITOR not set" in capsys.readouterr().err


def test_reload_without_daemon(admin_context, fake_kill, capsys) -> None:
    assert run(["reload"], admin_context) == 0
    assert "No pid found. Ensure the server is running." in capsys.readouterr().err
    assert fake_kill.calls == []


def test_reload_and_upgrade(admin_context, settings, fake_kill, capsys) -> None:
    settings.PID_FILE.write_text("4242\n")

    assert run(["reload"], admin_context) == 0
    assert run(["upgrade"], admin_context) == 0

    assert (4242, signal.SIGHUP) in fake_kill.calls
    assert (4242, signal.SIGUSR2) in fake_kill.calls
    out = capsys.readouterr().out
    assert "Sent reload-configuration to pid 4242" in out
    assert "Sent begin-seamless-upgrade to pid 4242" in out


def test_scan_requires_indexed_repository(seed, admin_context, fake_scanner, capsys) -> None:
    seed("m1", rsync_url="rsync://m1/pub/")
    assert run(["scan", "m1"], admin_context) == 1
    assert "run 'refresh' first" in capsys.readouterr().err
    assert fake_scanner.calls == []


def test_scan(seed, admin_context, fake_scanner, sync_redis) -> None:
    sync_redis.sadd("FILES", "/pub/file.iso")
    seed("m1", rsync_url="rsync://m1/pub/")

    assert run(["scan", "m1"], admin_context) == 0
    assert fake_scanner.calls == [("rsync", "rsync://m1/pub/", "m1")]


def test_scan_all_continues_past_failures(seed, admin_context, fake_scanner, sync_redis, capsys) -> None:
    sync_redis.sadd("FILES", "/pub/file.iso")
    seed("web-only")
    seed("m2", ftp_url="ftp://m2/pub/")

    assert run(["scan", "--all"], admin_context) == 1

    assert fake_scanner.calls == [("ftp", "ftp://m2/pub/", "m2")]
    assert "1 of 2 mirror(s) could not be scanned" in capsys.readouterr().err


def test_scan_arguments(admin_context) -> None:
    assert run(["scan"], admin_context) == 0
    assert run(["scan", "m1", "--all"], admin_context) == 0


def test_refresh(admin_context, fake_scanner, capsys) -> None:
    assert run(["refresh"], admin_context) == 0
    assert fake_scanner.calls == [("source",)]
    assert "Local repository refreshed" in capsys.readouterr().out


def test_version(admin_context, capsys) -> None:
    assert run(["version"], admin_context) == 0
    out = capsys.readouterr().out
    assert "Version:" in out
    assert "localhost:6379/0" in out
