import argparse
import sys
from pathlib import Path

from PySide6.QtWidgets import QApplication, QMessageBox
from PySide6.QtGui import QFont
from qt_material import apply_stylesheet

from ffqueue import BatchItem, BatchOrchestrator, DirectoryCapability, ProcessSupervisor
from ffqueue.config import find_preset, load_presets, load_settings, presets_store, save_preset_as, settings_store
from ffqueue.paths import resolve_binary, validate_binaries
from ffqueue.scanner import collect_media_files
from ui import ProcessingWindow


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="ffqueue",
        description="Transcode a batch of media files with ffmpeg, one after another.",
    )
    parser.add_argument("inputs", nargs="+", type=Path,
                        help="media files or folders (folders are scanned, non-recursive)")
    parser.add_argument("-o", "--output", type=Path, default=None,
                        help="output folder (default: last used, else next to the first input)")
    parser.add_argument("--preset", default=None,
                        help="name of a stored preset (default: the first one)")
    parser.add_argument("--subtitles", default="",
                        help="subtitle file to burn into every item")
    parser.add_argument("--match-source", action="store_true",
                        help="start each item's size, frame rate and bitrates from the probed source")
    parser.add_argument("--save-preset", metavar="NAME", default=None,
                        help="store the chosen preset under a new name before running")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    store = settings_store()
    settings = load_settings(store)
    preset_store = presets_store()
    presets = load_presets(preset_store)

    preset = find_preset(presets, args.preset) if args.preset else presets[0]
    if preset is None:
        sys.exit(f"Unknown preset: {args.preset} "
                 f"(available: {', '.join(p.name for p in presets)})")

    if args.save_preset:
        saved = save_preset_as(preset_store, presets, preset.spec, args.save_preset)
        print(f"[CONFIG] Saved preset '{saved.name}'")

    files = collect_media_files(args.inputs)
    if not files:
        sys.exit("No media files found.")

    output_dir = args.output or (Path(settings.output_dir) if settings.output_dir else files[0].parent)
    settings.output_dir = str(output_dir)
    store.save(settings)

    spec = preset.to_spec(args.subtitles)
    items = [BatchItem(source=f, spec=spec, match_source=args.match_source) for f in files]

    app = QApplication(sys.argv[:1])

    # Base font
    font = QFont("Segoe UI", 10)
    app.setFont(font)

    apply_stylesheet(app, theme="dark_lightgreen.xml")

    ffmpeg_bin = resolve_binary("ffmpeg", settings.ffmpeg_path)
    ffprobe_bin = resolve_binary("ffprobe", settings.ffprobe_path)
    errors = validate_binaries(ffmpeg_bin, ffprobe_bin)
    if errors:
        QMessageBox.critical(None, "FFQueue", "\n".join(errors))
        sys.exit(1)

    supervisor = ProcessSupervisor(
        ffmpeg_bin=ffmpeg_bin,
        hwaccel=settings.effective_hwaccel,
        max_log_lines=settings.max_log_lines,
        success_hold_ms=settings.success_hold_ms,
    )
    orchestrator = BatchOrchestrator(
        supervisor=supervisor,
        ffprobe_bin=ffprobe_bin,
        etr_interval_ms=settings.etr_interval_ms,
    )

    window = ProcessingWindow(orchestrator, len(items), settings.max_log_lines)
    window.show()
    orchestrator.start(items, DirectoryCapability(output_dir))
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
