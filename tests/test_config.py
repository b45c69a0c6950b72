"""Tests for settings and preset persistence."""

import json

from ffqueue.config import (
    AppSettings,
    config_dir,
    find_preset,
    load_presets,
    load_settings,
    preset_from_dict,
    preset_to_dict,
    presets_store,
    save_preset_as,
    settings_store,
    spec_from_dict,
    spec_to_dict,
)
from ffqueue.models import ProcessingSpec, RGBAColor
from ffqueue.presets import Preset, new_default_preset, unique_preset_name


def test_config_dir_override(monkeypatch, tmp_path):
    monkeypatch.setenv("FFQUEUE_CONFIG_DIR", str(tmp_path))
    assert config_dir() == tmp_path


def test_settings_round_trip(tmp_path):
    store = settings_store(tmp_path)
    assert store.load() is None
    assert load_settings(store) == AppSettings()

    store.save(AppSettings(ffmpeg_path="/opt/ffmpeg", output_dir="/out", etr_interval_ms=500))
    loaded = load_settings(store)
    assert loaded.ffmpeg_path == "/opt/ffmpeg"
    assert loaded.output_dir == "/out"
    assert loaded.etr_interval_ms == 500
    assert loaded.max_log_lines == 500


def test_settings_ignore_unknown_keys(tmp_path):
    (tmp_path / "settings.json").write_text(json.dumps({"hwaccel": "cuda", "theme": "dark"}))
    assert load_settings(settings_store(tmp_path)).hwaccel == "cuda"


def test_malformed_file_loads_as_missing(tmp_path):
    (tmp_path / "settings.json").write_text("{not json")
    (tmp_path / "presets.json").write_text('"just a string"')
    assert settings_store(tmp_path).load() is None
    assert [p.name for p in load_presets(presets_store(tmp_path))] == ["New Preset"]


def test_effective_hwaccel():
    assert AppSettings(hwaccel="none").effective_hwaccel == ""
    assert AppSettings(hwaccel="cuda").effective_hwaccel == "cuda"
    assert AppSettings().effective_hwaccel in ("auto", "videotoolbox")


def test_spec_round_trip_keeps_colours():
    spec = ProcessingSpec(subtitle_enabled=True, subtitle_color=RGBAColor(1.0, 0.0, 0.0, 0.5),
                          speed_enabled=True, speed_percentage="150")
    restored = spec_from_dict(json.loads(json.dumps(spec_to_dict(spec))))
    assert restored == spec


def test_spec_from_dict_clears_conflicting_modes():
    spec = spec_from_dict({"audio_only": True, "video_only": True, "bogus": 1})
    assert spec.audio_only and not spec.video_only


def test_presets_never_store_subtitle_file(tmp_path):
    preset = Preset(name="Proxy", spec=ProcessingSpec(subtitle_path="/subs/a.srt",
                                                      resolution_enabled=True))
    assert preset.spec.subtitle_path == ""
    assert "subtitle_path" not in preset_to_dict(preset)["spec"]

    store = presets_store(tmp_path)
    store.save([new_default_preset(), preset])
    loaded = load_presets(store)

    assert [p.name for p in loaded] == ["New Preset", "Proxy"]
    proxy = find_preset(loaded, "Proxy")
    assert proxy.spec.resolution_enabled
    assert proxy.to_spec("/subs/b.srt").subtitle_path == "/subs/b.srt"
    assert find_preset(loaded, "Missing") is None


def test_preset_from_dict_without_spec():
    assert preset_from_dict({"name": "Bare"}).spec == ProcessingSpec()


def test_unique_preset_name():
    presets = [Preset(name="New Preset"), Preset(name="New Preset 2")]
    assert unique_preset_name([]) == "New Preset"
    assert unique_preset_name(presets) == "New Preset 3"
    assert unique_preset_name(presets, base="Proxy") == "Proxy"


def test_save_preset_as_picks_free_name(tmp_path):
    store = presets_store(tmp_path)
    presets = [Preset(name="Proxy")]
    spec = ProcessingSpec(container_enabled=True, container="MKV")

    saved = save_preset_as(store, presets, spec, "Proxy")

    assert saved.name == "Proxy 2"
    reloaded = load_presets(store)
    assert [p.name for p in reloaded] == ["Proxy", "Proxy 2"]
    assert find_preset(reloaded, "Proxy 2").spec.container == "MKV"
