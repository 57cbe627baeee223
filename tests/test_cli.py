"""Tests for ``python -m playlist_profiler``."""

from __future__ import annotations

import json

import playlist_profiler.__main__ as cli
from playlist_profiler.errors import EmptyPlaylist, UpstreamUnavailable

from conftest import sample_profile as _profile


def test_writes_profile_json(monkeypatch, tmp_path):
    async def fake_analyze(token, playlist_id, max_tracks):
        assert (token, max_tracks) == ("tok", 50)
        return _profile(playlist_id)

    monkeypatch.setattr(cli, "analyze_playlist", fake_analyze)
    out = tmp_path / "profile.json"

    assert cli.main(["p1", "--max-tracks", "50", "--out", str(out), "--token", "tok"]) == 0
    data = json.loads(out.read_text())
    assert data["playlistId"] == "p1"
    assert data["recommendations"]["energyLevel"] == "high"


def test_prints_to_stdout_with_env_token(monkeypatch, capsys):
    async def fake_analyze(token, playlist_id, max_tracks):
        assert token == "env-token"
        return _profile(playlist_id)

    monkeypatch.setenv("SPOTIFY_ACCESS_TOKEN", "env-token")
    monkeypatch.setattr(cli, "analyze_playlist", fake_analyze)

    assert cli.main(["p2"]) == 0
    assert json.loads(capsys.readouterr().out)["playlistId"] == "p2"


def test_empty_playlist_exits_2(monkeypatch):
    async def fake_analyze(token, playlist_id, max_tracks):
        raise EmptyPlaylist(playlist_id)

    monkeypatch.setattr(cli, "analyze_playlist", fake_analyze)
    assert cli.main(["p1", "--token", "tok"]) == 2


def test_upstream_failure_exits_1(monkeypatch):
    async def fake_analyze(token, playlist_id, max_tracks):
        raise UpstreamUnavailable("boom")

    monkeypatch.setattr(cli, "analyze_playlist", fake_analyze)
    assert cli.main(["p1", "--token", "tok"]) == 1


def test_missing_token_exits_1(monkeypatch):
    monkeypatch.delenv("SPOTIFY_ACCESS_TOKEN", raising=False)
    assert cli.main(["p1"]) == 1
